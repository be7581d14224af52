"""
Resolution of files referenced by recorded file-input actions.

Browsers record only the file name (often as `C:\\fakepath\\name.pdf`), so
the file has to be found again on the replaying machine. When it cannot be
found a small placeholder of the same type is synthesized so the upload
step still exercises the page.
"""

import base64
import re
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from reenact.replication.errors import FileUploadMissingError
from reenact.utils.logging_config import logger

# 1x1 transparent PNG
_PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

_PDF_BYTES = (
    b"%PDF-1.4\n1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[]/Count 0>>endobj\n"
    b"trailer<</Root 1 0 R>>\n%%EOF\n"
)

_PLACEHOLDER_CONTENT = {
    ".png": _PNG_BYTES,
    ".pdf": _PDF_BYTES,
    ".txt": b"reenact placeholder upload\n",
    ".csv": b"column\nvalue\n",
    ".json": b"{}\n",
}


def recorded_file_name(value: str) -> str:
    """Strip browser path masking from a recorded file input value."""
    first = value.split(",")[0].strip()
    return re.split(r"[\\/]", first)[-1]


def resolve_upload_file(value: str, search_dirs: Iterable[Path]) -> Path:
    """Find the recorded upload file in the conventional search locations.

    Raises:
        FileUploadMissingError: If no search directory contains the file
    """
    file_name = recorded_file_name(value)
    if not file_name:
        raise FileUploadMissingError("File input recorded without a file name")

    direct = Path(value).expanduser()
    if direct.is_file():
        return direct

    for directory in search_dirs:
        candidate = directory / file_name
        if candidate.is_file():
            return candidate

    raise FileUploadMissingError(f"Upload file not found: {file_name}", file_name=file_name)


def create_placeholder_file(file_name: str, directory: Optional[Path] = None) -> Path:
    """Write a minimal file of the same extension and return its path."""
    target_dir = directory or Path(tempfile.gettempdir()) / "reenact-uploads"
    target_dir.mkdir(parents=True, exist_ok=True)

    path = target_dir / (file_name or "placeholder.txt")
    content = _PLACEHOLDER_CONTENT.get(path.suffix.lower(), b"reenact placeholder upload\n")
    path.write_bytes(content)
    return path


def resolve_or_placeholder(value: str, search_dirs: Iterable[Path]) -> Path:
    try:
        return resolve_upload_file(value, search_dirs)
    except FileUploadMissingError as e:
        logger.warning(f"⚠️ {e}, uploading a placeholder instead")
        return create_placeholder_file(e.file_name or recorded_file_name(value))

"""
Recording model and loaders.

A `Recording` is the immutable input of a replay: the start URL, browser
environment captured at record time and the ordered list of actions.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from reenact.replication.errors import RecordingMalformedError
from reenact.schemas.actions import Action, RecordedModel


class Viewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class Recording(RecordedModel):
    """A captured browser session ready to be replayed.

    Example:
        ```python
        from reenact.schemas import Recording

        recording = Recording.from_json_file(Path("recordings/checkout.json"))
        print(recording.test_name, len(recording.actions))
        ```
    """

    id: str
    version: str = "1.0.0"
    test_name: str
    url: str
    start_time: float = 0
    end_time: Optional[float] = None
    viewport: Viewport = Field(default_factory=lambda: Viewport(width=1280, height=720))
    window_size: Optional[Viewport] = None
    screen_size: Optional[Viewport] = None
    device_pixel_ratio: Optional[float] = None
    user_agent: Optional[str] = None
    actions: List[Action] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        """Validate a decoded recording document.

        Raises:
            RecordingMalformedError: If required fields are missing or invalid
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RecordingMalformedError(f"Invalid recording: {e}") from e

    @classmethod
    def from_json_string(cls, raw: Union[str, bytes]) -> "Recording":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RecordingMalformedError(f"Recording is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RecordingMalformedError("Recording root must be a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_json_file(cls, path: Path) -> "Recording":
        """Load a recording from a JSON file on disk.

        Args:
            path (Path): Path to the recording file

        Returns:
            Recording: The validated recording

        Raises:
            RecordingMalformedError: If the file is missing, unreadable or invalid
        """
        if not path.exists():
            raise RecordingMalformedError(f"Recording file does not exist: {path}")
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RecordingMalformedError(f"Could not read recording {path}: {e}") from e
        return cls.from_json_string(raw)

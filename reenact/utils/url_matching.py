"""
URL comparison helpers used by navigation and page-state validation.
"""

from fnmatch import fnmatch
from typing import Iterable, List, Optional
from urllib.parse import urlparse

AUTH_URL_MARKERS = ("login", "signin", "sign-in", "auth", "oauth", "sso", "account")


def _normalize_path(path: str) -> str:
    return path.rstrip("/") or "/"


def urls_match(first: Optional[str], second: Optional[str]) -> bool:
    """Compare two URLs by host and path, ignoring scheme, query and fragment.

    Example:
        ```python
        urls_match("https://shop.test/cart?x=1", "http://shop.test/cart/")  # True
        ```
    """
    if not first or not second:
        return False
    a, b = urlparse(first), urlparse(second)
    if not a.netloc or not b.netloc:
        return first.rstrip("/") == second.rstrip("/")
    return a.hostname == b.hostname and _normalize_path(a.path) == _normalize_path(b.path)


def same_host(first: Optional[str], second: Optional[str]) -> bool:
    if not first or not second:
        return False
    return urlparse(first).hostname == urlparse(second).hostname


def matches_any_pattern(url: str, patterns: Iterable[str]) -> bool:
    """Check a URL against success-flow patterns.

    Patterns containing `*` are glob patterns matched against the full URL and
    the path; anything else matches as a substring of the URL.
    """
    parsed = urlparse(url)
    for pattern in patterns:
        if not pattern:
            continue
        if "*" in pattern:
            if fnmatch(url, pattern) or fnmatch(parsed.path, pattern):
                return True
        elif pattern in url:
            return True
    return False


def is_auth_url(url: str) -> bool:
    lowered = url.lower()
    return any(marker in lowered for marker in AUTH_URL_MARKERS)


def url_path_segments(url: str) -> List[str]:
    return [segment for segment in urlparse(url).path.split("/") if segment]

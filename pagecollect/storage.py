"""Path building, title sanitization, and chapter file writing."""
import logging
import os
import posixpath
import tempfile
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

from pagecollect.errors import PersistError

logger = logging.getLogger(__name__)

# Characters not allowed in file names on common file systems, mapped to
# their full-width look-alikes so titles stay readable.
_INVALID_PATH_CHARS = str.maketrans({
    "<": "〈",
    ">": "〉",
    ":": "：",
    '"': "“",
    "/": "／",
    "\\": "＼",
    "|": "｜",
    "?": "？",
    "*": "＊",
})

FAILED_MARKER_PREFIX = "failed - "
FAILED_MARKER_SUFFIX = ".mark"


def sanitize_title(title: str) -> str:
    """Replace characters that are invalid in file names."""
    return title.strip().translate(_INVALID_PATH_CHARS)


def chapter_file_name(chap_index: int, title: str) -> str:
    """File name of a chapter, ``0001 - Title.html`` or ``Chap.0001.html``."""
    name = sanitize_title(title)
    if not name:
        return f"Chap.{chap_index + 1:04d}.html"
    return f"{chap_index + 1:04d} - {name}.html"


def volume_dir_name(vol_index: int, title: str) -> str:
    """Directory name of a volume, ``001 - Title`` or ``Vol.001``."""
    name = sanitize_title(title)
    if not name:
        return f"Vol.{vol_index + 1:03d}"
    return f"{vol_index + 1:03d} - {name}"


def failure_marker_path(output_path: Path) -> Path:
    """Marker path placed beside where ``output_path`` would have been written."""
    return output_path.parent / f"{FAILED_MARKER_PREFIX}{output_path.name}{FAILED_MARKER_SUFFIX}"


def image_basename(url: str) -> str:
    """File name for a downloaded illustration, taken from the URL path."""
    name = posixpath.basename(urlparse(url).path)
    return sanitize_title(name) or "image"


def atomic_write_text(path: Path, segments: Iterable[str]) -> None:
    """
    Write text segments to ``path`` without ever exposing a partial file.

    Content goes to a temporary file in the same directory first and is
    moved into place once fully written. Parent directories are created.

    Raises:
        OSError: if the directory or file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            for segment in segments:
                f.write(segment)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_chapter(path: Path, segments: Iterable[str]) -> None:
    """
    Write chapter content segments to ``path``.

    ``path`` never holds a partially written chapter.

    Raises:
        PersistError: if the directory or file cannot be written
    """
    try:
        atomic_write_text(path, segments)
    except OSError as e:
        raise PersistError(f"failed to write chapter file {path}: {e}") from e


def write_failure_marker(output_path: Path, url: str, error: str) -> Path:
    """Record a failed chapter download beside its would-be output file."""
    marker = failure_marker_path(output_path)
    try:
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text(f"{url}\n{error}", encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to write failure marker {marker}: {e}")
    return marker

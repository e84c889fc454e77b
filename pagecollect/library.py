"""Library file and request header loading."""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import ValidationError

from pagecollect.errors import LibraryError
from pagecollect.schemas import BookTarget, LibraryInfo, SiteProfile

logger = logging.getLogger(__name__)

NAME_MAP_BASENAME = "name_map.json"


def load_library(path: Union[str, Path]) -> LibraryInfo:
    """
    Read a library file.

    Relative book directories are resolved against the library file's
    directory.

    Raises:
        LibraryError: if the file is missing, malformed, or a book uses an
            unknown profile
    """
    path = Path(path)
    try:
        library = LibraryInfo.model_validate_json(path.read_bytes())
    except OSError as e:
        raise LibraryError(f"failed to read library file {path}: {e}") from e
    except ValidationError as e:
        raise LibraryError(f"failed to parse library file {path}: {e}") from e

    base_dir = path.parent
    books = []
    for book in library.books:
        if book.profile not in library.profiles:
            raise LibraryError(f"book {book.title or book.toc_url!r} uses unknown profile {book.profile!r}")
        books.append(_resolve_book_paths(book, base_dir))

    logger.info(f"Loaded {len(books)} books from {path}")
    return library.model_copy(update={"books": books})


def _resolve_book_paths(book: BookTarget, base_dir: Path) -> BookTarget:
    def resolve(value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        p = Path(value).expanduser()
        return str(p if p.is_absolute() else base_dir / p)

    return book.model_copy(update={
        "raw_dir": resolve(book.raw_dir),
        "img_dir": resolve(book.img_dir),
        "header_file": resolve(book.header_file),
        "name_map_file": resolve(book.name_map_file),
    })


def name_map_path(book: BookTarget) -> Path:
    """Name map file of a book."""
    if book.name_map_file:
        return Path(book.name_map_file)
    return Path(book.raw_dir) / NAME_MAP_BASENAME


def get_profile(library: LibraryInfo, name: str) -> SiteProfile:
    try:
        return library.profiles[name]
    except KeyError:
        raise LibraryError(f"unknown profile {name!r}") from None


def load_headers(path: Optional[Union[str, Path]]) -> Dict[str, str]:
    """
    Read extra request headers from a JSON object file.

    Raises:
        LibraryError: if the file cannot be read or is not a JSON object of
            strings
    """
    if not path:
        return {}

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise LibraryError(f"failed to read header file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise LibraryError(f"failed to parse header file {path}: {e}") from e

    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        raise LibraryError(f"header file {path} must contain a JSON object of strings")

    return data

"""Chapter name map: durable record of downloaded chapters."""
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Union

from pydantic import ValidationError

from pagecollect.errors import NameMapError
from pagecollect.schemas import NameMapEntry, NameMapList
from pagecollect.storage import atomic_write_text

logger = logging.getLogger(__name__)


class ResumeMap:
    """
    Map from chapter URL to the title its file was saved under.

    Shared by every chapter download of a book. All operations are
    serialized by an internal lock, callers never need to lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, NameMapEntry] = {}

    def load(self, path: Union[str, Path]) -> None:
        """
        Read entries from a JSON file into memory.

        A missing file leaves the map empty.

        Raises:
            NameMapError: if the file cannot be read or is malformed
        """
        path = Path(path)
        with self._lock:
            try:
                data = path.read_bytes()
            except FileNotFoundError:
                logger.debug(f"No name map at {path}, starting empty")
                return
            except OSError as e:
                raise NameMapError(f"failed to read {path}: {e}") from e

            try:
                entries = NameMapList.validate_json(data)
            except ValidationError as e:
                raise NameMapError(f"failed to parse {path}: {e}") from e

            for entry in entries:
                self._entries[entry.url] = entry

            logger.info(f"Loaded {len(entries)} name map entries from {path}")

    def save(self, path: Union[str, Path]) -> None:
        """
        Write all entries to a JSON file, replacing its content.

        The old file stays intact until the new content is fully written.

        Raises:
            NameMapError: if the file cannot be written
        """
        path = Path(path)
        with self._lock:
            data = [entry.model_dump() for entry in self._entries.values()]
            try:
                atomic_write_text(path, [json.dumps(data, indent=4, ensure_ascii=False)])
            except OSError as e:
                raise NameMapError(f"failed to write name map {path}: {e}") from e

    def lookup(self, url: str) -> str:
        """Title used by the saved file of chapter ``url``, or empty string."""
        with self._lock:
            entry = self._entries.get(url)
            return entry.file if entry else ""

    def upsert(self, entry: NameMapEntry) -> None:
        with self._lock:
            self._entries[entry.url] = entry

    def entries(self) -> List[NameMapEntry]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

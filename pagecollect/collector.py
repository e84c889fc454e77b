"""
Chapter orchestration.

Drives the download of one chapter from its first page request to the
saved file, then follows the next chapter link when the site provides one.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union
from urllib.parse import urljoin, urlparse

from pagecollect.assembler import PageAssembler
from pagecollect.errors import NameMapError, PersistError
from pagecollect.fetch import FetchTrigger
from pagecollect.items import ChapterInfo
from pagecollect.name_map import ResumeMap
from pagecollect.schemas import NameMapEntry
from pagecollect.storage import write_chapter, write_failure_marker
from pagecollect.waiter import ERR_REQUEST_FAILED, CompletionWaiter, PageChannel, WaitState

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("http", "https")


class CollectStatus(str, enum.Enum):
    """Outcome of one chapter attempt."""
    SAVED = "saved"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"
    VISITED = "visited"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class CollectResult:
    """What happened to one chapter."""
    info: ChapterInfo
    status: CollectStatus
    title: str = ""
    path: Optional[Path] = None
    page_count: int = 0
    error: Optional[str] = None


class ChapterCollector:
    """
    Downloads chapters of one book.

    The name map, the fetch trigger and the timeout are injected; one
    collector is shared by all chapter downloads of a book.
    """

    def __init__(
        self,
        name_map: ResumeMap,
        name_map_file: Union[str, Path],
        fetch_trigger: FetchTrigger,
        timeout: float,
    ):
        self.name_map = name_map
        self.name_map_file = Path(name_map_file)
        self.fetch_trigger = fetch_trigger
        self.timeout = timeout

    async def collect_volume(self, chapters: Iterable[ChapterInfo]) -> List[CollectResult]:
        """Download all chapters of a volume concurrently."""
        groups = await asyncio.gather(*(self.collect(info) for info in chapters))
        return [result for group in groups for result in group]

    async def collect(self, info: ChapterInfo) -> List[CollectResult]:
        """
        Download a chapter and every chapter chained after it.

        Following stops at the last chapter of the volume, at a chapter
        without next chapter link, at an already visited URL, and at the
        first chapter that is not saved.
        """
        results = []
        current = info
        while True:
            result, next_url = await self._collect_one(current)
            results.append(result)

            if result.status is not CollectStatus.SAVED or not next_url:
                break
            if current.is_last_in_volume:
                break

            next_url = urljoin(current.url, next_url)
            if self.fetch_trigger.has_visited(next_url):
                break

            current = current.next_chapter(next_url)

        return results

    async def _collect_one(self, info: ChapterInfo):
        if urlparse(info.url).scheme.lower() not in SUPPORTED_SCHEMES:
            logger.warning(f"not supported chapter URL {info.log_name(info.title)}: {info.url}")
            return CollectResult(info, CollectStatus.UNSUPPORTED), ""

        if self.fetch_trigger.has_visited(info.url):
            logger.debug(f"chapter already visited: {info.url}")
            return CollectResult(info, CollectStatus.VISITED), ""

        existing_title = self._skip_title(info)
        if existing_title:
            self._update_name_map(info, existing_title)
            logger.info(f"skip chapter: {info.log_name(existing_title)}")
            return CollectResult(
                info,
                CollectStatus.SKIPPED,
                title=existing_title,
                path=info.output_path(existing_title),
            ), ""

        channel = PageChannel()
        waiter = CompletionWaiter(channel, PageAssembler(), info.title, self.timeout)
        self.fetch_trigger.fetch_chapter(info, channel)

        result = await waiter.wait()
        if result.state is not WaitState.DONE:
            # Late pages of an abandoned chapter are dropped
            channel.close(result.error or ERR_REQUEST_FAILED)
            self._on_wait_error(info, result.error)
            status = (
                CollectStatus.TIMED_OUT
                if result.state is WaitState.TIMED_OUT
                else CollectStatus.FAILED
            )
            return CollectResult(info, status, title=result.title, error=result.error), ""

        page_cnt = len(result.assembler)
        result.assembler.prepend_heading(result.title)
        content = result.assembler.flatten()

        output_path = info.output_path(result.title)
        try:
            write_chapter(output_path, [content])
        except PersistError as e:
            logger.warning(f"error occured during saving {output_path}: {e}")
            return CollectResult(
                info,
                CollectStatus.FAILED,
                title=result.title,
                page_count=page_cnt,
                error=str(e),
            ), ""

        self._update_name_map(info, result.title)
        logger.info(f"save chapter ({page_cnt}p): {info.log_name(result.title)}")

        return CollectResult(
            info,
            CollectStatus.SAVED,
            title=result.title,
            path=output_path,
            page_count=page_cnt,
        ), result.next_chapter_url

    def _skip_title(self, info: ChapterInfo) -> str:
        """
        Title of the previously saved file of this chapter.

        Empty when the name map has no entry or the file is gone.
        """
        title = self.name_map.lookup(info.url)
        if not title:
            return ""

        if not info.output_path(title).exists():
            return ""

        return title

    def _update_name_map(self, info: ChapterInfo, file_title: str) -> None:
        title = info.title or file_title
        self.name_map.upsert(NameMapEntry(
            url=info.url,
            title=info.name_map_key(title),
            file=file_title,
        ))

        try:
            self.name_map.save(self.name_map_file)
        except NameMapError as e:
            logger.error(f"Failed to save name map: {e}")

    def _on_wait_error(self, info: ChapterInfo, error: Optional[str]) -> None:
        marker = write_failure_marker(info.output_path(info.title), info.url, error or "")
        logger.warning(f"failed to download {info.log_name(info.title)}: {error}")
        logger.debug(f"Failure marker written to {marker}")

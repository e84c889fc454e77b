"""Base spider class for all chapter download spiders."""
import asyncio
from abc import abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import scrapy

from pagecollect.collector import ChapterCollector, CollectResult
from pagecollect.fetch import ChapterDownloadState, ScrapyFetchTrigger
from pagecollect.items import ChapterInfo, IllustrationItem, PageFragment, VolumeInfo
from pagecollect.name_map import ResumeMap
from pagecollect.schemas import BookTarget, SiteProfile
from pagecollect.storage import volume_dir_name
from pagecollect.waiter import ERR_REQUEST_FAILED, effective_timeout


@dataclass
class VolumeEntry:
    """A volume block found on the table of contents page."""
    title: str
    chapters: List[Tuple[str, str]] = field(default_factory=list)  # (title, url)


@dataclass
class ParsedPage:
    """Fields extracted from one chapter page."""
    content: str
    title: str = ""
    next_page_url: str = ""
    next_chapter_url: str = ""
    image_urls: List[str] = field(default_factory=list)


class BaseSpider(scrapy.Spider):
    """
    Base spider that all chapter download spiders must inherit from.

    Parses the book's table of contents, starts one chapter collection per
    chapter and turns every fetched chapter page into a page fragment for
    the chapter's completion waiter.
    """

    # Must be set by child spiders
    name: str = "base"

    def __init__(
        self,
        target: BookTarget,
        profile: SiteProfile,
        name_map: ResumeMap,
        name_map_file: str,
        timeout: Optional[float] = None,
        retry_count: int = 1,
        *args,
        **kwargs,
    ):
        """
        Initialize spider with the book to download.

        Args:
            target: Book entry from the library file
            profile: Selectors and timing defaults of the book's site
            name_map: Loaded chapter name map of the book
            name_map_file: Path the name map is saved to
            timeout: Seconds to wait for a chapter page, profile default if None
            retry_count: Retry count of page requests
        """
        super().__init__(*args, **kwargs)
        self.start_urls = [target.toc_url]
        self.target = target
        self.profile = profile
        self.download_delay = profile.request_delay
        self.name_map = name_map
        self.name_map_file = name_map_file
        self.timeout = effective_timeout(profile, timeout, retry_count)
        self.results: List[CollectResult] = []

    @classmethod
    def from_crawler(cls, crawler, *args, **kwargs):
        """Bind the fetch trigger and chapter collector to the crawler."""
        spider = super(BaseSpider, cls).from_crawler(crawler, *args, **kwargs)
        spider.fetch_trigger = ScrapyFetchTrigger(
            crawler,
            callback=spider.parse_chapter_page,
            errback=spider.handle_page_error,
        )
        spider.collector = ChapterCollector(
            name_map=spider.name_map,
            name_map_file=spider.name_map_file,
            fetch_trigger=spider.fetch_trigger,
            timeout=spider.timeout,
        )
        return spider

    async def parse(self, response):
        """
        Main entry point - parse the book's table of contents page.

        Chapters of all volumes are downloaded concurrently. The callback
        returns once every chapter collection has finished.
        """
        self.logger.info(f"Parsing TOC page: {response.url}")

        volumes = self.extract_volumes(response)
        self.logger.info(f"Found {len(volumes)} volumes for book")

        tasks = []
        for vol_index, entry in enumerate(volumes):
            volume = self.make_volume_info(vol_index, entry)
            Path(volume.output_dir).mkdir(parents=True, exist_ok=True)
            self.logger.info(f"volume {vol_index + 1}: {entry.title} ({len(entry.chapters)} chapters)")

            chapters = [
                ChapterInfo(
                    volume=volume,
                    chap_index=chap_index,
                    title=title,
                    url=response.urljoin(url),
                )
                for chap_index, (title, url) in enumerate(entry.chapters)
            ]
            tasks.append(self.collector.collect_volume(chapters))

        for group in await asyncio.gather(*tasks):
            self.results.extend(group)

    def make_volume_info(self, vol_index: int, entry: VolumeEntry) -> VolumeInfo:
        dir_name = volume_dir_name(vol_index, entry.title)
        img_dir = Path(self.target.img_dir) if self.target.img_dir else Path(self.target.raw_dir)
        return VolumeInfo(
            book=self.target.title,
            vol_index=vol_index,
            title=entry.title,
            total_chapter_cnt=len(entry.chapters),
            output_dir=Path(self.target.raw_dir) / dir_name,
            img_output_dir=img_dir / dir_name,
        )

    @abstractmethod
    def extract_volumes(self, response) -> List[VolumeEntry]:
        """
        Extract volumes and their chapter links from the TOC page.

        Args:
            response: Scrapy response object for the TOC page

        Returns:
            Volume entries in reading order
        """
        pass

    @abstractmethod
    def extract_page(self, response, state: ChapterDownloadState) -> ParsedPage:
        """
        Extract content and navigation links from one chapter page.

        Args:
            response: Scrapy response object for a chapter page
            state: Download state of the chapter the page belongs to
        """
        pass

    def parse_chapter_page(self, response, state: ChapterDownloadState):
        """Send one chapter page to its waiter and request the next page."""
        page = self.extract_page(response, state)
        is_first = state.cur_page_number == 1

        state.channel.send(PageFragment(
            page_number=state.cur_page_number,
            content=page.content,
            is_finished=not page.next_page_url,
            title=page.title if is_first else "",
            next_chapter_url=page.next_chapter_url or None,
        ))

        if page.image_urls and self.profile.download_images:
            yield IllustrationItem(
                file_urls=page.image_urls,
                image_dir=state.info.volume.img_output_dir.name,
                chapter_url=state.info.url,
            )

        if page.next_page_url and state.channel.closed:
            self.logger.debug(f"Chapter given up, not following page {page.next_page_url}")
        elif page.next_page_url:
            self.fetch_trigger.request_page(response.urljoin(page.next_page_url), state.next_page())

    def handle_page_error(self, failure):
        """
        Handle chapter page download errors.

        Closes the chapter's channel so its waiter fails right away instead
        of waiting for the timeout. Other chapters are not affected.
        """
        state = failure.request.cb_kwargs.get("state")
        self.logger.warning(f"Page request failed: {failure.request.url}: {failure.value}")
        if isinstance(state, ChapterDownloadState):
            state.channel.close(f"{ERR_REQUEST_FAILED}: {failure.value}")

    def closed(self, reason):
        """Called when spider closes."""
        counts = Counter(result.status.value for result in self.results)
        summary = ", ".join(f"{status}={count}" for status, count in sorted(counts.items()))
        self.logger.info(f"Spider closed: {reason}")
        self.logger.info(f"Chapter results: {summary or 'none'}")

"""Run chapter download crawls for books of a library."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from scrapy.crawler import Crawler, CrawlerProcess
from scrapy.settings import Settings

from pagecollect.collector import CollectResult, CollectStatus
from pagecollect.library import get_profile, load_headers, name_map_path
from pagecollect.name_map import ResumeMap
from pagecollect.schemas import BookTarget, LibraryInfo, SiteProfile
from pagecollect.spiders.selector_spider import SelectorSpider

logger = logging.getLogger(__name__)

SETTINGS_MODULE = "pagecollect.settings"


@dataclass
class DownloadOptions:
    """Options shared by every book of one run."""
    timeout: Optional[float] = None  # seconds
    retry_count: int = 3
    request_delay: Optional[float] = None  # seconds
    concurrent_requests: int = 8
    user_agent: Optional[str] = None
    header_file: Optional[str] = None
    image_dir: Optional[str] = None
    name_map_file: Optional[str] = None
    ignore_taken_down: bool = False
    log_level: str = "INFO"


@dataclass
class BookReport:
    """Chapter results of one book."""
    book: BookTarget
    results: List[CollectResult] = field(default_factory=list)

    def count(self, status: CollectStatus) -> int:
        return sum(1 for result in self.results if result.status is status)


class BookDownloader:
    """
    Run the chapter spider for books of a library in one Scrapy process.

    Name maps and header files are read before crawling starts, so a
    malformed file stops the run before any request is made.
    """

    def __init__(self, library: LibraryInfo, options: DownloadOptions):
        self.library = library
        self.options = options

    def base_settings(self) -> Settings:
        settings = Settings()
        settings.setmodule(SETTINGS_MODULE, priority="project")
        settings.set("LOG_LEVEL", self.options.log_level, priority="cmdline")
        settings.set("RETRY_TIMES", self.options.retry_count, priority="cmdline")
        settings.set("CONCURRENT_REQUESTS", self.options.concurrent_requests, priority="cmdline")
        # Logging is configured by the calling entry point
        settings.set("LOG_INSTALL_ROOT_HANDLER", False, priority="cmdline")
        return settings

    def book_settings(self, book: BookTarget, profile: SiteProfile) -> Settings:
        """Scrapy settings of one book's crawler."""
        settings = self.base_settings()

        headers = dict(settings.getdict("DEFAULT_REQUEST_HEADERS"))
        headers.update(load_headers(book.header_file or self.options.header_file))
        if self.options.user_agent:
            headers["User-Agent"] = self.options.user_agent
        settings.set("DEFAULT_REQUEST_HEADERS", headers, priority="cmdline")
        if "User-Agent" in headers:
            settings.set("USER_AGENT", headers["User-Agent"], priority="cmdline")

        delay = self.options.request_delay
        settings.set("DOWNLOAD_DELAY", profile.request_delay if delay is None else delay, priority="cmdline")
        settings.set("DOWNLOAD_TIMEOUT", self.options.timeout or profile.default_timeout, priority="cmdline")

        img_dir = book.img_dir or self.options.image_dir or book.raw_dir
        settings.set("FILES_STORE", str(Path(img_dir)), priority="cmdline")

        return settings

    def select_books(self, index: Optional[int] = None) -> List[BookTarget]:
        """Books to download: the one at ``index`` if valid, else all."""
        books = self.library.books
        if index is not None and 0 <= index < len(books):
            books = [books[index]]

        selected = []
        for book in books:
            if book.is_taken_down and not self.options.ignore_taken_down:
                logger.info(f"Skipping taken down book: {book.title or book.toc_url}")
                continue
            selected.append(book)

        return selected

    def spider_kwargs(
        self,
        book: BookTarget,
        profile: SiteProfile,
        name_maps: Optional[Dict[Path, ResumeMap]] = None,
    ) -> dict:
        """
        Spider arguments of one book, with its name map loaded.

        Books whose name map file is the same share one loaded map through
        ``name_maps``, keyed by resolved path.
        """
        map_file = Path(self.options.name_map_file) if self.options.name_map_file else name_map_path(book)

        if name_maps is None:
            name_maps = {}
        key = map_file.resolve()
        name_map = name_maps.get(key)
        if name_map is None:
            name_map = ResumeMap()
            name_map.load(map_file)
            name_maps[key] = name_map

        return {
            "target": book,
            "profile": profile,
            "name_map": name_map,
            "name_map_file": str(map_file),
            "timeout": self.options.timeout,
            "retry_count": self.options.retry_count,
        }

    def run(self, books: List[BookTarget]) -> List[BookReport]:
        """Crawl all given books and block until every crawl finished."""
        if not books:
            logger.warning("No book to download")
            return []

        name_maps: Dict[Path, ResumeMap] = {}
        jobs = []
        for book in books:
            profile = get_profile(self.library, book.profile)
            kwargs = self.spider_kwargs(book, profile, name_maps)
            jobs.append((book, self.book_settings(book, profile), kwargs))

        process = CrawlerProcess(self.base_settings())

        crawlers = []
        for book, settings, kwargs in jobs:
            logger.info(f"Queueing book: {book.title or book.toc_url}")
            # The first crawler installs the reactor named in TWISTED_REACTOR
            crawler = Crawler(SelectorSpider, settings, init_reactor=not crawlers)
            process.crawl(crawler, **kwargs)
            crawlers.append((book, crawler))

        process.start()

        reports = []
        for book, crawler in crawlers:
            spider = crawler.spider
            reports.append(BookReport(book=book, results=list(spider.results) if spider else []))

        return reports

"""Fetch trigger: issues the first page request of a chapter."""
import logging
import posixpath
from dataclasses import dataclass
from typing import Callable, Set
from urllib.parse import urlparse

import scrapy
from w3lib.url import canonicalize_url

from pagecollect.items import ChapterInfo
from pagecollect.waiter import PageChannel

logger = logging.getLogger(__name__)


@dataclass
class ChapterDownloadState:
    """
    Per-chapter state handed to page callbacks through ``cb_kwargs``.

    ``cur_page_number`` is the number of the page the request carrying this
    state will fetch.
    """
    info: ChapterInfo
    channel: PageChannel
    root_name_stem: str
    root_name_ext: str
    cur_page_number: int = 1

    @classmethod
    def for_chapter(cls, info: ChapterInfo, channel: PageChannel) -> "ChapterDownloadState":
        base = posixpath.basename(urlparse(info.url).path)
        stem, ext = posixpath.splitext(base)
        return cls(info=info, channel=channel, root_name_stem=stem, root_name_ext=ext)

    def guess_next_page_url(self, page_url: str) -> str:
        """
        URL the next page would have if the chapter continues.

        Sites that split chapters by file name put page N+1 of ``123.html``
        at ``123_<N+1>.html`` in the same directory.
        """
        parsed = urlparse(page_url)
        directory = posixpath.dirname(parsed.path)
        name = f"{self.root_name_stem}_{self.cur_page_number + 1}{self.root_name_ext}"
        return parsed._replace(path=posixpath.join(directory, name), query="", fragment="").geturl()

    def next_page(self) -> "ChapterDownloadState":
        return ChapterDownloadState(
            info=self.info,
            channel=self.channel,
            root_name_stem=self.root_name_stem,
            root_name_ext=self.root_name_ext,
            cur_page_number=self.cur_page_number + 1,
        )


class FetchTrigger:
    """
    Interface between chapter collection and the fetch layer.

    Implementations deliver every fetched page of the chapter to ``channel``
    and close it if a request fails.
    """

    def has_visited(self, url: str) -> bool:
        raise NotImplementedError

    def fetch_chapter(self, info: ChapterInfo, channel: PageChannel) -> None:
        raise NotImplementedError


class ScrapyFetchTrigger(FetchTrigger):
    """Schedules chapter page requests on a running Scrapy crawler."""

    def __init__(
        self,
        crawler,
        callback: Callable,
        errback: Callable,
    ):
        self.crawler = crawler
        self.callback = callback
        self.errback = errback
        self._visited: Set[str] = set()

    def has_visited(self, url: str) -> bool:
        return canonicalize_url(url) in self._visited

    def mark_visited(self, url: str) -> None:
        self._visited.add(canonicalize_url(url))

    def fetch_chapter(self, info: ChapterInfo, channel: PageChannel) -> None:
        state = ChapterDownloadState.for_chapter(info, channel)
        self.request_page(info.url, state)

    def request_page(self, url: str, state: ChapterDownloadState) -> None:
        """Schedule the request for one page of a chapter."""
        self.mark_visited(url)
        request = scrapy.Request(
            url=url,
            callback=self.callback,
            errback=self.errback,
            cb_kwargs={"state": state},
            dont_filter=True,
        )
        logger.debug(f"Requesting page {state.cur_page_number} of {state.info.url}: {url}")
        self.crawler.engine.crawl(request)

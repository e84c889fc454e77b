"""Scrapy middlewares for chapter page error handling."""
from scrapy import signals
import logging

from pagecollect.fetch import ChapterDownloadState

logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware:
    """
    Fails a chapter when parsing one of its pages raises.

    Without this the chapter's waiter would only give up after its timeout.
    """

    @classmethod
    def from_crawler(cls, crawler):
        middleware = cls()
        crawler.signals.connect(middleware.spider_error, signal=signals.spider_error)
        return middleware

    def spider_error(self, failure, response, spider):
        """Handle spider errors without killing the entire crawl."""
        logger.error(f"Spider error in {spider.name}: {failure.value}")
        logger.error(f"URL: {response.url}")

        request = response.request
        state = request.cb_kwargs.get("state") if request is not None else None
        if isinstance(state, ChapterDownloadState):
            state.channel.close(f"page parsing failed: {failure.value}")

"""Background download jobs on a Redis queue."""
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from redis import Redis
from rq import Queue

from pagecollect.collector import CollectStatus
from pagecollect.library import load_library
from pagecollect.runner import BookDownloader, DownloadOptions

logger = logging.getLogger(__name__)

QUEUE_NAME = "downloads"


class DownloadQueue:
    """
    Enqueues book downloads for RQ workers.

    Each job runs in its own work horse process, so every book gets a fresh
    Scrapy reactor.
    """

    def __init__(self, queue: Queue):
        self.queue = queue

    @classmethod
    def from_url(cls, redis_url: str) -> "DownloadQueue":
        return cls(Queue(QUEUE_NAME, connection=Redis.from_url(redis_url)))

    def enqueue_library(self, library_file: str, options: DownloadOptions, index: Optional[int] = None) -> int:
        """
        Enqueue one job per selected book of a library file.

        Returns:
            Number of jobs enqueued
        """
        library_file = str(Path(library_file).resolve())
        library = load_library(library_file)
        books = BookDownloader(library, options).select_books(index)

        for book in books:
            book_index = library.books.index(book)
            logger.info(f"Enqueueing book {book_index}: {book.title or book.toc_url}")
            self.queue.enqueue(
                "pagecollect.jobs.process_book",
                library_file,
                book_index,
                asdict(options),
                job_timeout="6h",
                result_ttl=86400,  # Keep result for 24 hours
                failure_ttl=604800,  # Keep failures for 7 days
            )

        return len(books)


# Worker function (called by RQ worker)
def process_book(library_file: str, index: int, options: dict) -> dict:
    """
    Download one book of a library file.

    Returns:
        Chapter count per result status
    """
    logger.info(f"WORKER: Starting book {index} of {library_file}")

    library = load_library(library_file)
    downloader = BookDownloader(library, DownloadOptions(**options))
    reports = downloader.run([library.books[index]])

    counts = {status.value: 0 for status in CollectStatus}
    for report in reports:
        for result in report.results:
            counts[result.status.value] += 1

    logger.info(f"WORKER: Book {index} of {library_file} finished: {counts}")
    return counts

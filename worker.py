"""
RQ Worker for processing queued book downloads.

Every job downloads one book in its own work horse process, so each crawl
starts with a fresh Scrapy reactor.

Usage:
    python worker.py            # Keep waiting for new jobs
    python worker.py --burst    # Exit once the queue is empty

    Or with RQ directly:
    rq worker downloads --url redis://localhost:6379/0

Multiple workers can run simultaneously, one book per worker at a time.
"""
import argparse
import logging

from redis import Redis
from rq import Worker

from config import settings
from pagecollect.jobs import QUEUE_NAME

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Start RQ worker."""
    parser = argparse.ArgumentParser(description="Worker for queued book downloads")
    parser.add_argument("--burst", action="store_true", help="Exit when the queue is empty")
    args = parser.parse_args()

    logger.info(f"Starting RQ worker for queue '{QUEUE_NAME}'")
    logger.info(f"Redis URL: {settings.redis_url}")

    redis_conn = Redis.from_url(settings.redis_url)
    worker = Worker([QUEUE_NAME], connection=redis_conn)

    logger.info("Worker ready. Waiting for jobs...")
    worker.work(burst=args.burst, with_scheduler=False)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        raise

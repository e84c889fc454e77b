"""
CLI utility for downloading paginated book chapters.

Usage:
    python cli.py download <library-file> [index]       # Download books of a library
    python cli.py fetch <toc-url> --library <file> --profile <name> --output <dir>
    python cli.py name-map <file>                       # List downloaded chapters
    python cli.py enqueue <library-file> [index]        # Queue books for RQ workers
"""
import argparse
import logging
import sys

from config import settings
from pagecollect.collector import CollectStatus
from pagecollect.errors import PageCollectError
from pagecollect.jobs import DownloadQueue
from pagecollect.library import load_library, get_profile
from pagecollect.name_map import ResumeMap
from pagecollect.runner import BookDownloader, DownloadOptions
from pagecollect.schemas import BookTarget

logger = logging.getLogger(__name__)


def make_options(args) -> DownloadOptions:
    """Merge command line flags over application settings."""
    return DownloadOptions(
        timeout=args.timeout if args.timeout is not None else settings.timeout,
        retry_count=args.retry if args.retry is not None else settings.retry_count,
        request_delay=settings.request_delay,
        concurrent_requests=settings.concurrent_requests,
        user_agent=settings.user_agent,
        header_file=settings.header_file,
        image_dir=settings.image_dir,
        name_map_file=settings.name_map_file,
        ignore_taken_down=getattr(args, "ignore_taken_down", False),
        log_level=settings.log_level,
    )


def print_reports(reports):
    print(f"\n{'Book':<40} {'Saved':<8} {'Skipped':<8} {'Failed':<8} {'Timeout':<8}")
    print("-" * 72)

    for report in reports:
        title = report.book.title or report.book.toc_url
        title = title[:37] + "..." if len(title) > 40 else title
        print(
            f"{title:<40} "
            f"{report.count(CollectStatus.SAVED):<8} "
            f"{report.count(CollectStatus.SKIPPED):<8} "
            f"{report.count(CollectStatus.FAILED):<8} "
            f"{report.count(CollectStatus.TIMED_OUT):<8}"
        )

    print(f"\nTotal: {len(reports)} books")


def cmd_download(args):
    """Download books listed in a library file."""
    library = load_library(args.library_file)
    downloader = BookDownloader(library, make_options(args))

    books = downloader.select_books(args.index)
    if not books:
        print("Error: no download target found")
        sys.exit(1)

    reports = downloader.run(books)
    print_reports(reports)


def cmd_fetch(args):
    """Download one book from its table of contents URL."""
    library = load_library(args.library)
    get_profile(library, args.profile)

    book = BookTarget(
        title=args.title or "",
        toc_url=args.url,
        raw_dir=args.output or settings.output_dir,
        img_dir=args.image_output or settings.image_dir,
        profile=args.profile,
    )

    downloader = BookDownloader(library, make_options(args))
    reports = downloader.run([book])
    print_reports(reports)


def cmd_name_map(args):
    """List entries of a chapter name map file."""
    name_map = ResumeMap()
    name_map.load(args.file)

    entries = sorted(name_map.entries(), key=lambda entry: entry.title)

    print(f"\n{'Title':<40} {'File':<30} {'URL':<50}")
    print("-" * 120)

    for entry in entries:
        title = entry.title[:37] + "..." if len(entry.title) > 40 else entry.title
        file = entry.file[:27] + "..." if len(entry.file) > 30 else entry.file
        print(f"{title:<40} {file:<30} {entry.url:<50}")

    print(f"\nTotal: {len(entries)} chapters")


def cmd_enqueue(args):
    """Queue books of a library file for background workers."""
    queue = DownloadQueue.from_url(settings.redis_url)
    count = queue.enqueue_library(args.library_file, make_options(args), args.index)
    print(f"Enqueued {count} books")


def add_request_flags(parser):
    parser.add_argument(
        "--retry",
        type=int,
        default=None,
        help="Retry count for page download requests"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for a chapter page before giving up"
    )


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Paginated chapter downloader"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Download command
    download_parser = subparsers.add_parser("download", aliases=["dl"], help="Download books of a library file")
    download_parser.add_argument("library_file", help="Library JSON file")
    download_parser.add_argument(
        "index",
        type=int,
        nargs="?",
        default=None,
        help="Index of the book to download, all books if omitted"
    )
    download_parser.add_argument(
        "--ignore-taken-down",
        action="store_true",
        help="Also download books flagged as taken down"
    )
    add_request_flags(download_parser)
    download_parser.set_defaults(func=cmd_download)

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Download one book from its TOC URL")
    fetch_parser.add_argument("url", help="TOC page URL")
    fetch_parser.add_argument("--library", required=True, help="Library JSON file with site profiles")
    fetch_parser.add_argument("--profile", required=True, help="Site profile name")
    fetch_parser.add_argument("--title", help="Book title")
    fetch_parser.add_argument("--output", help="Output directory for chapter files")
    fetch_parser.add_argument("--image-output", help="Output directory for illustrations")
    add_request_flags(fetch_parser)
    fetch_parser.set_defaults(func=cmd_fetch)

    # Enqueue command
    enqueue_parser = subparsers.add_parser("enqueue", help="Queue books of a library file for RQ workers")
    enqueue_parser.add_argument("library_file", help="Library JSON file")
    enqueue_parser.add_argument("index", type=int, nargs="?", default=None, help="Index of the book to queue")
    enqueue_parser.add_argument(
        "--ignore-taken-down",
        action="store_true",
        help="Also queue books flagged as taken down"
    )
    add_request_flags(enqueue_parser)
    enqueue_parser.set_defaults(func=cmd_enqueue)

    # Name map command
    name_map_parser = subparsers.add_parser("name-map", help="List chapters recorded in a name map file")
    name_map_parser.add_argument("file", help="Name map JSON file")
    name_map_parser.set_defaults(func=cmd_name_map)

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Run command
    try:
        args.func(args)
    except PageCollectError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

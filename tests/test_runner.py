import asyncio
import functools
import json
import os
import subprocess
import sys
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from pagecollect.collector import ChapterCollector, CollectResult, CollectStatus
from pagecollect.errors import NameMapError
from pagecollect.items import ChapterInfo, PageFragment, VolumeInfo
from pagecollect.runner import BookDownloader, BookReport, DownloadOptions
from pagecollect.schemas import BookTarget, LibraryInfo, SiteProfile

from conftest import FakeFetchTrigger


@pytest.fixture
def library(tmp_path):
    return LibraryInfo(
        profiles={"site": SiteProfile(content="div#content", request_delay=0.5, default_timeout=7.0)},
        books=[
            BookTarget(title="First", toc_url="https://example.com/1/", raw_dir=str(tmp_path / "one"), profile="site"),
            BookTarget(
                title="Gone",
                toc_url="https://example.com/2/",
                raw_dir=str(tmp_path / "two"),
                profile="site",
                is_taken_down=True,
            ),
            BookTarget(
                title="Third",
                toc_url="https://example.com/3/",
                raw_dir=str(tmp_path / "three"),
                img_dir=str(tmp_path / "three-images"),
                profile="site",
            ),
        ],
    )


def test_select_books_skips_taken_down(library):
    downloader = BookDownloader(library, DownloadOptions())

    assert [b.title for b in downloader.select_books()] == ["First", "Third"]
    assert [b.title for b in downloader.select_books(2)] == ["Third"]
    assert downloader.select_books(1) == []


def test_select_books_out_of_range_index_selects_all(library):
    downloader = BookDownloader(library, DownloadOptions(ignore_taken_down=True))

    assert [b.title for b in downloader.select_books(9)] == ["First", "Gone", "Third"]
    assert [b.title for b in downloader.select_books(1)] == ["Gone"]


def test_book_settings_use_profile_defaults(library, tmp_path):
    downloader = BookDownloader(library, DownloadOptions(retry_count=5))
    book = library.books[0]

    settings = downloader.book_settings(book, library.profiles["site"])

    assert settings.getfloat("DOWNLOAD_DELAY") == 0.5
    assert settings.getfloat("DOWNLOAD_TIMEOUT") == 7.0
    assert settings.getint("RETRY_TIMES") == 5
    assert settings.get("FILES_STORE") == str(tmp_path / "one")
    assert settings.get("TWISTED_REACTOR") == "twisted.internet.asyncioreactor.AsyncioSelectorReactor"
    assert not settings.getbool("LOG_INSTALL_ROOT_HANDLER")


def test_book_settings_apply_options_and_headers(library, tmp_path):
    headers = tmp_path / "headers.json"
    headers.write_text(json.dumps({"Referer": "https://example.com/"}), encoding="utf-8")
    options = DownloadOptions(
        timeout=3.0,
        request_delay=0.0,
        user_agent="TestAgent/1.0",
        header_file=str(headers),
    )
    downloader = BookDownloader(library, options)
    book = library.books[2]

    settings = downloader.book_settings(book, library.profiles["site"])

    assert settings.getfloat("DOWNLOAD_DELAY") == 0.0
    assert settings.getfloat("DOWNLOAD_TIMEOUT") == 3.0
    assert settings.get("USER_AGENT") == "TestAgent/1.0"
    assert settings.getdict("DEFAULT_REQUEST_HEADERS")["Referer"] == "https://example.com/"
    assert settings.get("FILES_STORE") == str(tmp_path / "three-images")


def test_spider_kwargs_load_name_map(library, tmp_path):
    raw_dir = tmp_path / "one"
    raw_dir.mkdir()
    (raw_dir / "name_map.json").write_text(json.dumps([
        {"url": "https://example.com/1/1.html", "title": "001-0001-A", "file": "A"},
    ]), encoding="utf-8")
    downloader = BookDownloader(library, DownloadOptions(timeout=4.0))

    kwargs = downloader.spider_kwargs(library.books[0], library.profiles["site"])

    assert kwargs["name_map"].lookup("https://example.com/1/1.html") == "A"
    assert kwargs["name_map_file"] == str(raw_dir / "name_map.json")
    assert kwargs["timeout"] == 4.0


def test_spider_kwargs_malformed_name_map_is_fatal(library, tmp_path):
    raw_dir = tmp_path / "one"
    raw_dir.mkdir()
    (raw_dir / "name_map.json").write_text("{oops", encoding="utf-8")
    downloader = BookDownloader(library, DownloadOptions())

    with pytest.raises(NameMapError):
        downloader.spider_kwargs(library.books[0], library.profiles["site"])


def test_run_without_books_returns_empty(library):
    assert BookDownloader(library, DownloadOptions()).run([]) == []


def test_book_report_counts(library):
    report = BookReport(book=library.books[0], results=[
        CollectResult(info=None, status=CollectStatus.SAVED),
        CollectResult(info=None, status=CollectStatus.SAVED),
        CollectResult(info=None, status=CollectStatus.TIMED_OUT),
    ])

    assert report.count(CollectStatus.SAVED) == 2
    assert report.count(CollectStatus.TIMED_OUT) == 1
    assert report.count(CollectStatus.FAILED) == 0


def test_books_sharing_a_name_map_file_share_one_map(library, tmp_path):
    map_file = tmp_path / "shared" / "name_map.json"
    downloader = BookDownloader(library, DownloadOptions(name_map_file=str(map_file)))
    profile = library.profiles["site"]
    name_maps = {}

    first = downloader.spider_kwargs(library.books[0], profile, name_maps)
    third = downloader.spider_kwargs(library.books[2], profile, name_maps)

    assert first["name_map"] is third["name_map"]
    assert first["name_map_file"] == third["name_map_file"] == str(map_file)

    volume_a = VolumeInfo("First", 0, "", 1, tmp_path / "one" / "Vol.001", tmp_path / "img")
    volume_b = VolumeInfo("Third", 0, "", 1, tmp_path / "three" / "Vol.001", tmp_path / "img")
    chapter_a = ChapterInfo(volume_a, 0, "A", "https://a.example/1.html")
    chapter_b = ChapterInfo(volume_b, 0, "B", "https://b.example/1.html")
    trigger = FakeFetchTrigger({
        chapter_a.url: [PageFragment(page_number=1, content="a", is_finished=True)],
        chapter_b.url: [PageFragment(page_number=1, content="b", is_finished=True)],
    })

    async def download():
        for kwargs, chapter in ((first, chapter_a), (third, chapter_b)):
            collector = ChapterCollector(kwargs["name_map"], kwargs["name_map_file"], trigger, timeout=0.5)
            await collector.collect(chapter)

    asyncio.run(download())

    saved = json.loads(map_file.read_text(encoding="utf-8"))
    assert sorted(entry["url"] for entry in saved) == ["https://a.example/1.html", "https://b.example/1.html"]


def test_books_with_own_name_map_files_get_separate_maps(library):
    downloader = BookDownloader(library, DownloadOptions())
    profile = library.profiles["site"]
    name_maps = {}

    first = downloader.spider_kwargs(library.books[0], profile, name_maps)
    third = downloader.spider_kwargs(library.books[2], profile, name_maps)

    assert first["name_map"] is not third["name_map"]
    assert len(name_maps) == 2


SITE_PAGES = {
    "toc.html": """<html><body><ul class="toc">
        <li><a href="100.html">Chapter 1</a></li>
        <li><a href="101.html">Second</a></li>
    </ul></body></html>""",
    "100.html": """<html><body><h1>Intro</h1>
        <div id="content"><p>p1</p></div>
        <a class="next-page" href="100_2.html">next</a></body></html>""",
    "100_2.html": """<html><body><h1>Intro</h1>
        <div id="content"><p>p2</p></div></body></html>""",
    "101.html": """<html><body><h1>Second</h1>
        <div id="content"><p>s1</p></div></body></html>""",
}

CRAWL_SCRIPT = """
import json, sys
from pagecollect.library import load_library
from pagecollect.runner import BookDownloader, DownloadOptions

library = load_library(sys.argv[1])
options = DownloadOptions(timeout=10.0, retry_count=1, log_level="WARNING")
reports = BookDownloader(library, options).run(library.books)
print(json.dumps([
    [result.status.value, result.path.name if result.path else None]
    for report in reports
    for result in report.results
]))
"""


@pytest.fixture
def local_site(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    for name, body in SITE_PAGES.items():
        (site / name).write_text(body, encoding="utf-8")

    handler = functools.partial(SimpleHTTPRequestHandler, directory=str(site))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_run_downloads_books_from_site(local_site, tmp_path):
    library_file = tmp_path / "library.json"
    library_file.write_text(json.dumps({
        "profiles": {"local": {
            "chapter_link": "ul.toc a",
            "content": "div#content",
            "page_title": "h1",
            "next_page": "a.next-page",
            "request_delay": 0,
        }},
        "books": [{
            "title": "Local Book",
            "toc_url": f"{local_site}/toc.html",
            "raw_dir": "raw",
            "profile": "local",
        }],
    }), encoding="utf-8")

    # Twisted reactors cannot be restarted, so the crawl gets its own process
    root = Path(__file__).resolve().parents[1]
    env = dict(os.environ, PYTHONPATH=os.pathsep.join(filter(None, [str(root), os.environ.get("PYTHONPATH")])))
    proc = subprocess.run(
        [sys.executable, "-c", CRAWL_SCRIPT, str(library_file)],
        cwd=str(tmp_path),
        env=env,
        capture_output=True,
        text=True,
        timeout=120,
    )

    assert proc.returncode == 0, proc.stderr
    results = json.loads(proc.stdout.strip().splitlines()[-1])
    assert sorted(results) == [["saved", "0001 - Intro.html"], ["saved", "0002 - Second.html"]]

    volume_dir = tmp_path / "raw" / "Vol.001"
    assert (volume_dir / "0001 - Intro.html").read_text(encoding="utf-8") == (
        '<h1 class="chapter-title">Intro</h1>\n<p>p1</p><p>p2</p>'
    )
    assert (volume_dir / "0002 - Second.html").read_text(encoding="utf-8") == (
        '<h1 class="chapter-title">Second</h1>\n<p>s1</p>'
    )

    saved = json.loads((tmp_path / "raw" / "name_map.json").read_text(encoding="utf-8"))
    assert sorted(entry["title"] for entry in saved) == ["001-0001-Chapter 1", "001-0002-Second"]

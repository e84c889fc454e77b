"""Shared fixtures for chapter download tests."""
import asyncio
from typing import Dict, List

import pytest

from pagecollect.fetch import FetchTrigger
from pagecollect.items import ChapterInfo, PageFragment, VolumeInfo
from pagecollect.name_map import ResumeMap


class FakeFetchTrigger(FetchTrigger):
    """
    Fetch trigger that delivers prepared pages instead of fetching.

    Pages of a chapter are sent in list order, one event loop iteration
    apart, so tests control the arrival order. URLs in ``fail_urls`` close
    the channel, URLs without pages stay silent.
    """

    def __init__(self, pages: Dict[str, List[PageFragment]] = None, fail_urls=()):
        self.pages = pages or {}
        self.fail_urls = set(fail_urls)
        self.visited = set()
        self.requested: List[str] = []
        self.channels = {}

    def has_visited(self, url: str) -> bool:
        return url in self.visited

    def fetch_chapter(self, info, channel) -> None:
        self.visited.add(info.url)
        self.requested.append(info.url)
        self.channels[info.url] = channel

        loop = asyncio.get_running_loop()
        if info.url in self.fail_urls:
            loop.call_soon(channel.close)
            return

        for page in self.pages.get(info.url, []):
            loop.call_soon(channel.send, page)


@pytest.fixture
def volume(tmp_path):
    return VolumeInfo(
        book="Test Book",
        vol_index=0,
        title="First Volume",
        total_chapter_cnt=3,
        output_dir=tmp_path / "raw" / "001 - First Volume",
        img_output_dir=tmp_path / "image" / "001 - First Volume",
    )


@pytest.fixture
def make_chapter(volume):
    def _make(chap_index=0, title="Chapter One", url="https://example.com/novel/1/100.html"):
        return ChapterInfo(volume=volume, chap_index=chap_index, title=title, url=url)
    return _make


@pytest.fixture
def name_map_file(tmp_path):
    return tmp_path / "raw" / "name_map.json"


@pytest.fixture
def name_map():
    return ResumeMap()

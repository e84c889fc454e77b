"""Data carried through the chapter download pipeline."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import scrapy

from pagecollect.storage import chapter_file_name


@dataclass(frozen=True)
class VolumeInfo:
    """Volume context shared by every chapter discovered in one volume."""
    book: str
    vol_index: int  # 0-based
    title: str
    total_chapter_cnt: int
    output_dir: Path
    img_output_dir: Path


@dataclass(frozen=True)
class ChapterInfo:
    """
    Descriptor of one chapter to download.

    ``url`` is the absolute URL of the chapter's first page and is the key
    used by the chapter name map.
    """
    volume: VolumeInfo
    chap_index: int  # 0-based, within volume
    title: str
    url: str

    @property
    def is_last_in_volume(self) -> bool:
        return self.chap_index >= self.volume.total_chapter_cnt - 1

    def output_path(self, title: str) -> Path:
        """Path of the chapter file when saved under ``title``."""
        return self.volume.output_dir / chapter_file_name(self.chap_index, title)

    def name_map_key(self, title: str) -> str:
        return f"{self.volume.vol_index + 1:03d}-{self.chap_index + 1:04d}-{title}"

    def log_name(self, title: str) -> str:
        return f"Vol.{self.volume.vol_index + 1:03d} - Chap.{self.chap_index + 1:04d} - {title}"

    def next_chapter(self, url: str) -> "ChapterInfo":
        """Descriptor for the chapter following this one in the same volume."""
        return ChapterInfo(
            volume=self.volume,
            chap_index=self.chap_index + 1,
            title="",
            url=url,
        )


@dataclass(frozen=True)
class PageFragment:
    """One fetched page of a chapter."""
    page_number: int  # 1-based
    content: str
    is_finished: bool = False  # last page of the chapter
    title: str = ""  # only meaningful on page 1
    next_chapter_url: Optional[str] = None


class IllustrationItem(scrapy.Item):
    """Images found in a chapter page, downloaded by the files pipeline."""
    file_urls = scrapy.Field()
    files = scrapy.Field()
    image_dir = scrapy.Field()  # volume directory, relative to FILES_STORE
    chapter_url = scrapy.Field()

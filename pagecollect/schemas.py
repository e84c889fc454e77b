"""Pydantic schemas for the name map and library files."""
from pydantic import BaseModel, Field, ConfigDict, TypeAdapter
from typing import Optional, List, Dict


# Name map schemas
class NameMapEntry(BaseModel):
    """Record of a chapter that has been downloaded."""
    url: str = Field(..., description="URL of the first page of the chapter")
    title: str = Field(..., description="Chapter title as listed on the TOC page")
    file: str = Field(..., description="Title used in the file name of the saved chapter")

    model_config = ConfigDict(frozen=True)


NameMapList = TypeAdapter(List[NameMapEntry])


# Library schemas
class SiteProfile(BaseModel):
    """
    CSS selectors and timing defaults for one site.

    Selectors for the TOC page:
    - ``volume``: one element per volume block; when empty the whole page
      is a single volume
    - ``volume_title``: text of the volume title, relative to a volume block
    - ``chapter_link``: ``a`` elements of chapters, relative to a volume block

    Selectors for chapter pages:
    - ``content``: content container, its children are kept as HTML
    - ``page_title``: chapter title, read on the first page only
    - ``next_page``: link to the next page of the same chapter; a page
      without it is the last one
    - ``next_chapter``: link to the first page of the following chapter
    - ``content_exclude``: children of the content container to drop

    With ``next_page_by_name`` a next page link only counts when its file
    name continues the first page's name (``123.html`` -> ``123_2.html``),
    any other link is taken as the next chapter.
    """
    volume: str = ""
    volume_title: str = ""
    chapter_link: str = "a"
    content: str
    page_title: str = ""
    next_page: str = ""
    next_chapter: str = ""
    content_exclude: str = ""
    next_page_by_name: bool = False

    request_delay: float = Field(0.05, ge=0, description="Seconds between requests")
    default_timeout: float = Field(10.0, gt=0, description="Seconds to wait for a page")
    scale_timeout_by_retry: bool = False
    download_images: bool = True


class BookTarget(BaseModel):
    """One book listed in a library file."""
    title: str = ""
    author: str = ""
    toc_url: str
    raw_dir: str
    img_dir: str = ""
    header_file: Optional[str] = None
    name_map_file: Optional[str] = None
    profile: str
    is_taken_down: bool = False


class LibraryInfo(BaseModel):
    """Library file: site profiles and the books to download."""
    profiles: Dict[str, SiteProfile] = {}
    books: List[BookTarget] = []

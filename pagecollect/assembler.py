"""Ordered buffer of chapter pages."""
from typing import List

from pagecollect.errors import AssemblerClosed
from pagecollect.items import PageFragment

HEADING_TEMPLATE = '<h1 class="chapter-title">{title}</h1>\n'


class PageAssembler:
    """
    Keeps the pages of one chapter sorted by page number.

    Pages may be inserted in any order. A page whose number is already
    present replaces the old one. Chapters rarely have more than a few dozen
    pages, so insertion walks the list from the head.
    """

    def __init__(self):
        self._pages: List[PageFragment] = []
        self._heading = ""
        self._flushed = False

    def insert(self, fragment: PageFragment) -> None:
        self._check_open()

        index = 0
        while index < len(self._pages) and self._pages[index].page_number < fragment.page_number:
            index += 1

        if index < len(self._pages) and self._pages[index].page_number == fragment.page_number:
            self._pages[index] = fragment
        else:
            self._pages.insert(index, fragment)

    def prepend_heading(self, title: str) -> None:
        """Put a chapter title heading in front of the first page."""
        self._check_open()
        self._heading = HEADING_TEMPLATE.format(title=title)

    def flatten(self) -> str:
        """Concatenate heading and page contents in page order. Allowed once."""
        self._check_open()
        self._flushed = True
        return self._heading + "".join(page.content for page in self._pages)

    def has_pages_through(self, last_page: int) -> bool:
        """True when pages 1 to ``last_page`` are all present."""
        return self.page_numbers[:last_page] == list(range(1, last_page + 1))

    @property
    def page_numbers(self) -> List[int]:
        return [page.page_number for page in self._pages]

    def __len__(self) -> int:
        return len(self._pages)

    def _check_open(self) -> None:
        if self._flushed:
            raise AssemblerClosed("page list has already been flushed")

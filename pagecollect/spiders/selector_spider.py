"""Spider driven by the CSS selectors of a site profile."""
from typing import List

from pagecollect.fetch import ChapterDownloadState
from pagecollect.spiders.base_spider import BaseSpider, ParsedPage, VolumeEntry


class SelectorSpider(BaseSpider):
    """
    Generic spider for sites described by a ``SiteProfile``.

    Nothing in here knows about a particular site, all structure comes from
    the profile's selectors.
    """

    name = "selector"

    def extract_volumes(self, response) -> List[VolumeEntry]:
        """Extract volume blocks and chapter links from the TOC page."""
        profile = self.profile
        blocks = response.css(profile.volume) if profile.volume else [response]

        volumes = []
        for block in blocks:
            title = ""
            if profile.volume_title:
                title = self._text(block.css(profile.volume_title))

            entry = VolumeEntry(title=title)
            for link in block.css(profile.chapter_link):
                url = link.attrib.get("href", "").strip()
                if not url:
                    continue

                chapter_title = self._text(link)
                entry.chapters.append((chapter_title, url))

            if entry.chapters:
                volumes.append(entry)

        return volumes

    def extract_page(self, response, state: ChapterDownloadState) -> ParsedPage:
        """Extract content, title and navigation links of a chapter page."""
        profile = self.profile
        container = response.css(profile.content)

        children = container.xpath("./*")
        if profile.content_exclude:
            excluded = set(container.css(profile.content_exclude).getall())
            segments = [html for html in children.getall() if html not in excluded]
        else:
            segments = children.getall()

        image_urls = []
        for img in container.css("img"):
            url = img.attrib.get("data-src") or img.attrib.get("src")
            if url:
                image_urls.append(response.urljoin(url))

        title = ""
        if state.cur_page_number == 1 and profile.page_title:
            title = self._text(response.css(profile.page_title))

        next_page_url = self._link(response, profile.next_page)
        next_chapter_url = self._link(response, profile.next_chapter)

        # Some sites point the "next page" link of a chapter's last page at
        # the next chapter. Only file names continuing the first page's name
        # are pages of this chapter.
        if next_page_url and profile.next_page_by_name:
            if next_page_url != state.guess_next_page_url(response.url):
                next_chapter_url = next_chapter_url or next_page_url
                next_page_url = ""

        return ParsedPage(
            content="\n".join(segments),
            title=title,
            next_page_url=next_page_url,
            next_chapter_url=next_chapter_url,
            image_urls=image_urls,
        )

    @staticmethod
    def _link(response, selector: str) -> str:
        if not selector:
            return ""

        href = response.css(selector).attrib.get("href", "").strip()
        if not href or href.lower().startswith("javascript:"):
            return ""

        return response.urljoin(href)

    @staticmethod
    def _text(selection) -> str:
        """Whitespace-normalized text of the first selected element."""
        return (selection.xpath("normalize-space(string())").get() or "").strip()

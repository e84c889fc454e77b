"""Scrapy pipelines for chapter illustrations."""
import logging

from scrapy.exceptions import DropItem
from scrapy.pipelines.files import FilesPipeline

from pagecollect.items import IllustrationItem
from pagecollect.storage import image_basename

logger = logging.getLogger(__name__)


class ValidationPipeline:
    """Validate scraped items before processing."""

    def process_item(self, item, spider):
        """Drop illustration items without URLs or target directory."""
        if not isinstance(item, IllustrationItem):
            return item

        for field in ("file_urls", "image_dir"):
            if not item.get(field):
                raise DropItem(f"Missing required field: {field}")

        return item


class IllustrationPipeline(FilesPipeline):
    """
    Download chapter illustrations into the volume's image directory.

    Files are named after the URL basename. Files already on disk are not
    fetched again.
    """

    def file_path(self, request, response=None, info=None, *, item=None):
        image_dir = item.get("image_dir", "") if item is not None else ""
        name = image_basename(request.url)
        return f"{image_dir}/{name}" if image_dir else name

    def item_completed(self, results, item, info):
        failed = [value for ok, value in results if not ok]
        for failure in failed:
            logger.warning(f"Failed to download illustration for {item.get('chapter_url')}: {failure.value}")

        return super().item_completed(results, item, info)

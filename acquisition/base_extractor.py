"""Base class for candidate extractors with common functionality"""
from typing import Callable, Dict, Iterable, List, Optional, Set

from config.settings import Settings
from utils.image_utils import download_image
from utils.logger import get_logger
from utils.text_utils import matches_any, truncate

logger = get_logger(__name__)


class BaseExtractor:
    """Shared filtering and download helpers for extraction tiers."""

    def __init__(
        self,
        min_display_size: int = None,
        denylist: List[str] = None,
        downloader: Callable[..., Optional[bytes]] = None
    ):
        self.min_display_size = min_display_size or Settings.MIN_DISPLAY_SIZE
        self.denylist = Settings.DENYLIST_PATTERNS if denylist is None else denylist
        self.downloader = downloader or download_image

    def _is_displayed_large_enough(self, image: Dict) -> bool:
        """
        Check the rendered box, not the natural size.

        Hidden gallery slides report a zero box; those are skipped so the
        candidate order reflects what a visitor actually sees.
        """
        if image.get('visible') is False:
            return False
        width = image.get('width') or 0
        height = image.get('height') or 0
        return width > self.min_display_size and height > self.min_display_size

    def _denylisted(self, image: Dict) -> Optional[str]:
        """Return the denylist pattern hit by the image URL or alt text."""
        return (
            matches_any(image.get('src'), self.denylist)
            or matches_any(image.get('alt'), self.denylist)
        )

    @staticmethod
    def _normalize_url_for_comparison(url: str) -> str:
        """Drop fragments so the same file under two anchors counts once."""
        if not url or url.startswith('data:'):
            return url
        return url.split('#')[0]

    def _dedupe(self, images: Iterable[Dict], seen: Set[str]) -> List[Dict]:
        """Keep the first occurrence of every image URL, updating seen."""
        unique = []
        for image in images:
            src = image.get('src')
            if not src:
                continue
            key = self._normalize_url_for_comparison(src)
            if key in seen:
                continue
            seen.add(key)
            unique.append(image)
        return unique

    def _fetch(self, image: Dict, page) -> Optional[bytes]:
        """
        Download candidate bytes with the browser's identity.

        Args:
            image: Image description from the page
            page: BrowserPage the image was found on

        Returns:
            Image bytes or None if the download failed
        """
        src = image['src']
        data = self.downloader(
            src,
            referer=getattr(page, 'current_url', None),
            user_agent=getattr(page, 'user_agent', None),
        )
        if data is None:
            logger.debug(f"    Download failed, skipping: {truncate(src)}")
        return data

"""Image Candidate Extractor - finds product image candidates on a loaded page"""
from typing import Dict, Iterator, List, Set

from acquisition.base_extractor import BaseExtractor
from acquisition.strategies import SourceStrategy
from config.settings import Settings
from core.models import AcquisitionTarget, ImageCandidate
from utils.logger import get_logger
from utils.text_utils import truncate

logger = get_logger(__name__)


class CandidateExtractor(BaseExtractor):
    """
    Two-tier extraction.

    Tier 1 applies the strategy's selectors in order. Tier 2, the
    largest-visible-image heuristic, only runs when tier 1 found nothing and
    the strategy allows it.
    """

    def __init__(self, max_candidates: int = None, **kwargs):
        super().__init__(**kwargs)
        self.max_candidates = max_candidates or Settings.MAX_CANDIDATES_PER_STRATEGY

    def select_by_rules(self, page, target: AcquisitionTarget, strategy: SourceStrategy) -> List[Dict]:
        """
        Tier 1: images matched by the strategy's selectors.

        Returns:
            Image descriptions in selector order, then document order
        """
        selectors = strategy.render_selectors(target)
        logger.debug(f"  Trying {len(selectors)} selectors...")

        found = []
        seen: Set[str] = set()
        for i, selector in enumerate(selectors, 1):
            images = [image for image in page.query_images(selector) if self._is_displayed_large_enough(image)]
            images.sort(key=lambda image: image.get('index', 0))
            unique = self._dedupe(images, seen)
            if unique:
                logger.debug(f"  [{i}/{len(selectors)}] {selector}: {len(unique)} image(s)")
            found.extend(unique)
        return found

    def select_largest(self, page) -> List[Dict]:
        """
        Tier 2: every page image, denylist and size filtered, largest first.

        Returns:
            Image descriptions ranked by displayed area
        """
        ranked = []
        for image in page.all_images():
            if not image.get('src'):
                continue
            pattern = self._denylisted(image)
            if pattern:
                logger.debug(f"    Denylisted ({pattern}): {truncate(image.get('src'))}")
                continue
            if not self._is_displayed_large_enough(image):
                continue
            ranked.append(image)

        ranked.sort(key=lambda image: (image.get('width') or 0) * (image.get('height') or 0), reverse=True)
        return self._dedupe(ranked, set())

    def extract(self, page, target: AcquisitionTarget, strategy: SourceStrategy) -> Iterator[ImageCandidate]:
        """
        Yield candidates lazily, best first.

        Bytes are downloaded only when the consumer asks for the next
        candidate, so a short-circuit leaves the rest untouched.

        Args:
            page: Loaded BrowserPage
            target: Item being acquired
            strategy: Strategy that navigated to the page

        Yields:
            ImageCandidate objects, at most max_candidates
        """
        method = 'selector'
        images = self.select_by_rules(page, target, strategy)

        if not images and strategy.use_fallback:
            images = self.select_largest(page)
            method = 'fallback'
            if images:
                logger.info(f"  ⚠ No selector matched on {strategy.id}, using largest-image fallback ({len(images)} image(s))")

        if not images:
            logger.debug(f"  No candidate images on {strategy.id}")
            return

        page_url = getattr(page, 'current_url', None)
        yielded = 0
        for image in images:
            if yielded >= self.max_candidates:
                break
            data = self._fetch(image, page)
            if data is None:
                continue
            yielded += 1
            logger.debug(f"    Candidate {yielded}: {truncate(image['src'])} ({len(data)} bytes)")
            yield ImageCandidate(
                data=data,
                strategy_id=strategy.id,
                source_url=image['src'],
                page_url=page_url,
                method=method,
            )

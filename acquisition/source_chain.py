"""Source Chain Executor - tries strategies in order until one yields a valid image"""
import time
from typing import List, Union

from acquisition.candidate_extractor import CandidateExtractor
from acquisition.image_validator import ImageValidator
from acquisition.strategies import SourceStrategy
from core.errors import ExtractionError, NavigationError
from core.models import (
    AcquisitionFailure,
    AcquisitionTarget,
    Rejection,
    StrategyFailure,
    ValidatedImage,
)
from utils.logger import get_logger
from utils.text_utils import truncate

logger = get_logger(__name__)


class SourceChainExecutor:
    """
    Run the ordered strategy list for one target.

    The browser session is owned by the pipeline driver and injected here;
    each strategy attempt gets its own page.
    """

    def __init__(
        self,
        browser,
        strategies: List[SourceStrategy],
        extractor: CandidateExtractor = None,
        validator: ImageValidator = None,
        timeout_ms: int = None
    ):
        self.browser = browser
        self.strategies = list(strategies)
        self.extractor = extractor or CandidateExtractor()
        self.validator = validator or ImageValidator()
        self.timeout_ms = timeout_ms

    def acquire(self, target: AcquisitionTarget) -> Union[ValidatedImage, AcquisitionFailure]:
        """
        Acquire an image for the target.

        Args:
            target: Item being acquired

        Returns:
            ValidatedImage from the first strategy that produced one, or
            AcquisitionFailure with one reason per strategy
        """
        reasons: List[StrategyFailure] = []

        for i, strategy in enumerate(self.strategies, 1):
            logger.info(f"  [{i}/{len(self.strategies)}] Strategy: {strategy.id}")
            start_time = time.time()
            try:
                image = self._run_strategy(strategy, target)
            except (NavigationError, ExtractionError) as e:
                reason = str(e)
            except Exception as e:
                logger.exception(f"  Unexpected error in strategy {strategy.id}")
                reason = f"unexpected error: {type(e).__name__}: {e}"
            else:
                logger.info(
                    f"  ✓ {strategy.id} produced {image.width}x{image.height} image "
                    f"({image.method}) in {time.time() - start_time:.2f}s"
                )
                return image

            logger.warning(f"  ✗ {strategy.id}: {reason}")
            reasons.append(StrategyFailure(strategy.id, reason))

        return AcquisitionFailure(target.item_id, reasons)

    def _run_strategy(self, strategy: SourceStrategy, target: AcquisitionTarget) -> ValidatedImage:
        """
        Run one strategy.

        Raises:
            NavigationError: page could not be loaded
            ExtractionError: no URL, no candidates or every candidate rejected
        """
        if not strategy.applies_to(target):
            raise ExtractionError(f"not applicable to brand {target.brand!r}")

        url = strategy.build_url(target)
        if not url:
            raise ExtractionError("no URL for this item")

        return self.browser.with_page(lambda page: self._attempt(page, strategy, target, url))

    def _attempt(self, page, strategy: SourceStrategy, target: AcquisitionTarget, url: str) -> ValidatedImage:
        timeout_ms = strategy.timeout_ms or self.timeout_ms
        page.goto(url, timeout_ms)

        if strategy.result_link_selector:
            link = page.first_link(strategy.result_link_selector)
            if not link:
                raise ExtractionError("no search results")
            logger.debug(f"  Following first result: {truncate(link)}")
            page.goto(link, timeout_ms)

        page.dismiss_overlays()

        rejections: List[Rejection] = []
        for candidate in self.extractor.extract(page, target, strategy):
            result = self.validator.process(candidate.data)
            if isinstance(result, Rejection):
                logger.debug(f"    Rejected {truncate(candidate.source_url)}: {result}")
                rejections.append(result)
                continue

            result.strategy_id = strategy.id
            result.source_url = candidate.source_url
            result.method = candidate.method
            return result

        if not rejections:
            raise ExtractionError("no image candidates found")
        raise ExtractionError(self._summarize(rejections))

    @staticmethod
    def _summarize(rejections: List[Rejection]) -> str:
        """Reason such as '3 candidate(s) rejected (too_small x2, placeholder x1)'."""
        counts = {}
        for rejection in rejections:
            counts[rejection.code] = counts.get(rejection.code, 0) + 1
        detail = ', '.join(f"{code} x{count}" for code, count in counts.items())
        return f"{len(rejections)} candidate(s) rejected ({detail})"

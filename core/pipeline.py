"""Pipeline Driver - selects catalog items and runs acquisition for each"""
import time
from typing import Callable, List

from acquisition.candidate_extractor import CandidateExtractor
from acquisition.image_validator import ImageValidator
from acquisition.persistence import ImagePersister
from acquisition.source_chain import SourceChainExecutor
from acquisition.strategies import SourceStrategy
from config.settings import RunConfig, Settings
from config.sources import load_strategies
from core.browser_session import BrowserSession
from core.catalog import CatalogStore
from core.errors import PersistenceError
from core.models import AcquisitionFailure, AcquisitionTarget
from core.run_stats import RunStatistics
from core.storage import create_storage
from utils.logger import get_logger

logger = get_logger(__name__)


class PipelineDriver:
    """
    Runs one acquisition pass over the catalog.

    Items are processed strictly one at a time with a fixed pause between
    them. One browser is launched per run (only when there is work) and is
    closed on every exit path. A failing item is recorded and the run moves
    on; setup failures propagate.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        persister: ImagePersister,
        strategies: List[SourceStrategy],
        browser_factory: Callable[[], BrowserSession] = None,
        extractor: CandidateExtractor = None,
        validator: ImageValidator = None,
        delay_ms: int = None,
        timeout_ms: int = None,
        sleep: Callable[[float], None] = time.sleep,
        executor_factory: Callable[..., SourceChainExecutor] = None
    ):
        self.catalog = catalog
        self.persister = persister
        self.strategies = list(strategies)
        self.browser_factory = browser_factory or BrowserSession
        self.extractor = extractor or CandidateExtractor()
        self.validator = validator or ImageValidator()
        self.delay_ms = Settings.DELAY_BETWEEN_ITEMS_MS if delay_ms is None else delay_ms
        self.timeout_ms = timeout_ms
        self.sleep = sleep
        self.executor_factory = executor_factory or SourceChainExecutor

    def run(self, limit: int = None) -> RunStatistics:
        """
        Process up to limit items lacking an acceptable image.

        Args:
            limit: Maximum number of items (default from settings)

        Returns:
            RunStatistics for the run

        Raises:
            CatalogUnavailableError: catalog could not be queried
            BrowserLaunchError: browser failed to launch
        """
        if limit is None:
            limit = Settings.LIMIT
        stats = RunStatistics()
        stats.start()

        logger.info("=" * 80)
        logger.info(f"Catalog image acquisition (limit: {limit}, strategies: {len(self.strategies)})")
        logger.info("=" * 80)

        try:
            items = self.catalog.list_items_missing_image(limit)
            if not items:
                logger.info("No catalog items need an image")
                return stats

            targets = [AcquisitionTarget(item, position) for position, item in enumerate(items, 1)]

            with self.browser_factory() as browser:
                executor = self.executor_factory(
                    browser,
                    self.strategies,
                    extractor=self.extractor,
                    validator=self.validator,
                    timeout_ms=self.timeout_ms,
                )
                for target in targets:
                    self._process_item(executor, target, len(targets), stats)

                    if target.position < len(targets) and self.delay_ms > 0:
                        logger.debug(f"Waiting {self.delay_ms}ms before next item...")
                        self.sleep(self.delay_ms / 1000.0)
        finally:
            stats.finish()
            stats.log_summary()

        return stats

    def _process_item(
        self,
        executor: SourceChainExecutor,
        target: AcquisitionTarget,
        total: int,
        stats: RunStatistics
    ):
        """Acquire and persist one item; every failure ends up in stats."""
        name = target.item.display_name
        logger.info("-" * 80)
        logger.info(f"[{target.position}/{total}] {name} ({target.category}) #{target.item_id}")
        start_time = time.time()

        try:
            result = executor.acquire(target)
            if isinstance(result, AcquisitionFailure):
                logger.warning(f"✗ No image found for {name}")
                stats.record_failure(target.item_id, result.describe(), name=name)
                return

            record = self.persister.save(target, result)
        except PersistenceError as e:
            logger.error(f"✗ Could not persist image for {name}: {e}")
            stats.record_failure(target.item_id, str(e), name=name)
            return
        except Exception as e:
            logger.exception(f"✗ Unexpected error while processing {name}")
            stats.record_failure(target.item_id, f"unexpected error: {type(e).__name__}: {e}", name=name)
            return

        stats.record_success(target.item_id, strategy_id=result.strategy_id, method=result.method)
        logger.info(f"✓ {name}: {record.public_url} ({time.time() - start_time:.1f}s)")


def build_driver(config: RunConfig, catalog: CatalogStore = None) -> PipelineDriver:
    """
    Wire the production components from a RunConfig.

    Args:
        config: Run options
        catalog: Existing catalog store (default: SQLite at DATABASE_PATH)

    Returns:
        Ready-to-run PipelineDriver

    Raises:
        CatalogUnavailableError: catalog cannot be opened
        StorageConfigError: storage backend misconfigured
    """
    catalog = catalog or CatalogStore()
    storage = create_storage()
    strategies = load_strategies(config.sources_file)

    return PipelineDriver(
        catalog=catalog,
        persister=ImagePersister(storage, catalog),
        strategies=strategies,
        browser_factory=lambda: BrowserSession(headless=config.headless, timeout_ms=config.timeout_ms),
        validator=ImageValidator(min_size=config.min_image_size, target_size=config.target_size),
        delay_ms=config.delay_between_items_ms,
        timeout_ms=config.timeout_ms,
    )

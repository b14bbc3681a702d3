"""Run statistics and reporting"""
import json
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from utils.logger import get_logger

logger = get_logger(__name__)


class RunStatistics:
    """Track per-run outcomes: processed / succeeded / failed items."""

    def __init__(self):
        self.processed = 0
        self.succeeded = 0
        self.failed = 0

        # [{'item_id': ..., 'name': ..., 'reason': ...}]
        self.failures: List[Dict] = []

        # Which strategy produced each successful image
        self.strategy_hits: Dict[str, int] = defaultdict(int)

        # How often the largest-image heuristic had to be used
        self.fallback_usage: Dict[str, int] = defaultdict(int)

        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None

    def start(self):
        self.started_at = datetime.now()

    def finish(self):
        self.finished_at = datetime.now()

    @property
    def duration_seconds(self) -> float:
        if not self.started_at:
            return 0.0
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def record_success(self, item_id: str, strategy_id: str = None, method: str = None):
        """
        Record a catalog item that received a new image.

        Args:
            item_id: Catalog item ID
            strategy_id: Strategy that produced the image
            method: 'selector' or 'fallback'
        """
        self.processed += 1
        self.succeeded += 1
        if strategy_id:
            self.strategy_hits[strategy_id] += 1
        if method == 'fallback' and strategy_id:
            self.fallback_usage[strategy_id] += 1
        logger.debug(f"Recorded success for #{item_id}")

    def record_failure(self, item_id: str, reason: str, name: str = None):
        """
        Record a catalog item that ended the run without an image.

        Args:
            item_id: Catalog item ID
            reason: Human-readable failure reason
            name: Display name for the report
        """
        self.processed += 1
        self.failed += 1
        self.failures.append({
            'item_id': item_id,
            'name': name,
            'reason': reason,
        })
        logger.debug(f"Recorded failure for #{item_id}: {reason}")

    def get_summary(self) -> Dict:
        """
        Get summary of the run.

        Returns:
            Dictionary with run statistics
        """
        success_rate = (self.succeeded / self.processed * 100) if self.processed else 0.0
        return {
            'processed': self.processed,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'success_rate': round(success_rate, 1),
            'strategy_hits': dict(self.strategy_hits),
            'fallback_usage': dict(self.fallback_usage),
            'failures': list(self.failures),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration_seconds': round(self.duration_seconds, 2),
        }

    def log_summary(self):
        """Write the end-of-run summary block to the log."""
        summary = self.get_summary()
        logger.info("=" * 80)
        logger.info("RUN SUMMARY")
        logger.info("=" * 80)
        logger.info(
            f"Processed: {summary['processed']} | Succeeded: {summary['succeeded']} | "
            f"Failed: {summary['failed']} ({summary['success_rate']:.1f}% success rate)"
        )
        if summary['strategy_hits']:
            logger.info(f"Strategy hits: {summary['strategy_hits']}")
        if summary['fallback_usage']:
            logger.info(f"Fallback usage: {summary['fallback_usage']}")
        for failure in self.failures:
            label = failure['name'] or failure['item_id']
            logger.info(f"  ✗ {label}: {failure['reason']}")
        logger.info(f"Duration: {summary['duration_seconds']:.1f}s")
        logger.info("=" * 80)

    def save_to_file(self, filepath: str):
        """Save run report to JSON file."""
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.get_summary(), f, indent=2, default=str)
        logger.info(f"Run report saved to: {filepath}")

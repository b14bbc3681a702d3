"""Source strategy configuration loader"""
import json
from pathlib import Path
from typing import List

from acquisition.strategies import SourceStrategy, strategy_from_dict
from config.settings import Settings
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SOURCES_FILE = Path(__file__).parent / 'sources.json'


def load_strategies(path: str = None) -> List[SourceStrategy]:
    """
    Load the ordered strategy list from a JSON file.

    The file holds either a list of strategy dicts or ``{"strategies": [...]}``.
    Entries with ``"enabled": false`` are skipped; order in the file is the
    order the chain tries them.

    Args:
        path: JSON file (default: CATALOG_IMAGES_SOURCES_FILE, then the bundled file)

    Returns:
        List of SourceStrategy objects

    Raises:
        ValueError: malformed file, unknown kind or duplicate ids
    """
    source_path = Path(path or Settings.SOURCES_FILE or DEFAULT_SOURCES_FILE)

    try:
        with open(source_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {source_path}: {e}") from e

    entries = raw.get('strategies') if isinstance(raw, dict) else raw
    if not isinstance(entries, list):
        raise ValueError(f"{source_path}: expected a list of strategies")

    strategies = []
    seen_ids = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"{source_path}: strategy entries must be objects, got {entry!r}")
        if entry.get('enabled', True) is False:
            logger.debug(f"Strategy {entry.get('id')} disabled, skipping")
            continue

        strategy = strategy_from_dict(entry)
        if strategy.id in seen_ids:
            raise ValueError(f"{source_path}: duplicate strategy id {strategy.id!r}")
        seen_ids.add(strategy.id)
        strategies.append(strategy)

    logger.info(f"Loaded {len(strategies)} source strategies from {source_path}")
    return strategies

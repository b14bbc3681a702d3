"""Entry point for Catalog Image Acquirer"""
import argparse
import atexit
import json
import os
import platform
import signal
import subprocess
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config.settings import RunConfig, Settings
from core.catalog import CatalogStore
from core.errors import SetupError
from utils.logger import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_SETUP_FAILURE = 1
EXIT_INTERRUPTED = 130


def cleanup_chrome_processes():
    """Kill chromedriver processes left behind by a crashed run (not user Chrome)."""
    try:
        if platform.system() == 'Windows':
            result = subprocess.run(['taskkill', '/F', '/IM', 'chromedriver.exe'], capture_output=True)
        else:
            result = subprocess.run(['pkill', '-f', 'chromedriver'], capture_output=True)
        if result.returncode == 0:
            logger.info("Cleaned up chromedriver processes")
    except OSError as e:
        logger.debug(f"Cleanup error (may be normal): {e}")


def signal_handler(signum, frame):
    """Turn SIGTERM into a normal exit so open browser sessions are closed."""
    logger.info("Shutdown signal received, cleaning up...")
    sys.exit(128 + signum)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='catalog-images',
        description='Find, validate and store product images for catalog items that lack one.'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    run_parser = subparsers.add_parser('run', help='Acquire images for items missing one')
    run_parser.add_argument('--limit', type=int, help=f'Max items to process (default: {Settings.LIMIT})')
    run_parser.add_argument('--timeout-ms', type=int, help=f'Navigation timeout (default: {Settings.TIMEOUT_MS})')
    run_parser.add_argument('--min-size', type=int, help=f'Minimum image side in px (default: {Settings.MIN_IMAGE_SIZE})')
    run_parser.add_argument('--target-size', type=int, help=f'Output bounding box in px (default: {Settings.TARGET_SIZE})')
    run_parser.add_argument('--delay-ms', type=int, help=f'Pause between items (default: {Settings.DELAY_BETWEEN_ITEMS_MS})')
    headless_group = run_parser.add_mutually_exclusive_group()
    headless_group.add_argument('--headless', dest='headless', action='store_true', default=None,
                                help='Run the browser without a window')
    headless_group.add_argument('--headed', dest='headless', action='store_false',
                                help='Show the browser window (debugging)')
    run_parser.add_argument('--sources', help='Strategy configuration JSON (default: config/sources.json)')
    run_parser.add_argument('--report', help='Write the run report to this JSON file')

    seed_parser = subparsers.add_parser('seed', help='Load catalog items from a JSON file')
    seed_parser.add_argument('file', help='JSON list of items (id, brand, model, category, ...)')

    missing_parser = subparsers.add_parser('missing', help='List items lacking an acceptable image')
    missing_parser.add_argument('--limit', type=int, default=50, help='Max items to list (default: 50)')

    return parser


def command_run(args) -> int:
    from core.pipeline import build_driver

    try:
        config = RunConfig.from_settings(
            limit=args.limit,
            timeout_ms=args.timeout_ms,
            min_image_size=args.min_size,
            target_size=args.target_size,
            delay_between_items_ms=args.delay_ms,
            headless=args.headless,
            sources_file=args.sources,
        )
        driver = build_driver(config)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_SETUP_FAILURE

    stats = driver.run(config.limit)
    if args.report:
        stats.save_to_file(args.report)
    return EXIT_OK


def command_seed(args) -> int:
    try:
        with open(args.file, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read {args.file}: {e}")
        return EXIT_SETUP_FAILURE

    items = raw.get('items', []) if isinstance(raw, dict) else raw
    try:
        CatalogStore().add_items(items)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_SETUP_FAILURE
    return EXIT_OK


def command_missing(args) -> int:
    items = CatalogStore().list_items_missing_image(args.limit)
    for item in items:
        priority = '-' if item.priority_score is None else f"{item.priority_score:g}"
        print(f"{item.id}\t{priority}\t{item.category}\t{item.display_name}\t{item.image_url or ''}")
    return EXIT_OK


COMMANDS = {
    'run': command_run,
    'seed': command_seed,
    'missing': command_missing,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    signal.signal(signal.SIGTERM, signal_handler)
    if args.command == 'run':
        atexit.register(cleanup_chrome_processes)

    try:
        return COMMANDS[args.command](args)
    except SetupError as e:
        logger.error(f"Setup failed: {e}")
        return EXIT_SETUP_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED


if __name__ == '__main__':
    sys.exit(main())

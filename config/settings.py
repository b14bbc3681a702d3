"""Configuration settings for Catalog Image Acquirer"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes', 'on')


class Settings:
    """Application settings loaded from environment variables"""

    # Run selection
    LIMIT: int = int(os.getenv('CATALOG_IMAGES_LIMIT', '10'))

    # Politeness: fixed pause between catalog items
    DELAY_BETWEEN_ITEMS_MS: int = int(os.getenv('CATALOG_IMAGES_DELAY_BETWEEN_ITEMS_MS', '2500'))

    # Browser settings
    # Set CATALOG_IMAGES_HEADLESS=false to watch the browser while debugging
    HEADLESS: bool = _env_bool('CATALOG_IMAGES_HEADLESS', 'true')
    TIMEOUT_MS: int = int(os.getenv('CATALOG_IMAGES_TIMEOUT_MS', '20000'))

    # Window size
    WINDOW_WIDTH: int = 1920
    WINDOW_HEIGHT: int = 1080

    # Image validation / normalization
    MIN_IMAGE_SIZE: int = int(os.getenv('CATALOG_IMAGES_MIN_IMAGE_SIZE', '400'))
    TARGET_SIZE: int = int(os.getenv('CATALOG_IMAGES_TARGET_SIZE', '1000'))
    JPEG_QUALITY: int = int(os.getenv('CATALOG_IMAGES_JPEG_QUALITY', '90'))
    MAX_IMAGE_BYTES: int = int(os.getenv('CATALOG_IMAGES_MAX_IMAGE_BYTES', '10485760'))  # 10MB default

    # Mean brightness above this looks like a blank/white placeholder
    PLACEHOLDER_BRIGHTNESS: float = 250.0
    # Std deviation below this looks like a flat single-color placeholder
    PLACEHOLDER_MIN_STDDEV: float = 2.0
    # Near-white images need at least this share of non-white pixels
    PLACEHOLDER_MIN_CONTENT_RATIO: float = 0.005

    # Candidate extraction
    MIN_DISPLAY_SIZE: int = int(os.getenv('CATALOG_IMAGES_MIN_DISPLAY_SIZE', '100'))
    MAX_CANDIDATES_PER_STRATEGY: int = int(os.getenv('CATALOG_IMAGES_MAX_CANDIDATES', '6'))
    DOWNLOAD_TIMEOUT: int = int(os.getenv('CATALOG_IMAGES_DOWNLOAD_TIMEOUT', '15'))

    # Logging
    LOG_LEVEL: str = os.getenv('CATALOG_IMAGES_LOG_LEVEL', 'INFO')
    LOG_DIR: str = os.getenv('CATALOG_IMAGES_LOG_DIR', 'logs')

    # Catalog store
    DATABASE_PATH: str = os.getenv('CATALOG_IMAGES_DATABASE_PATH', 'catalog.db')

    # Blob storage
    STORAGE_BACKEND: str = os.getenv('CATALOG_IMAGES_STORAGE_BACKEND', 'local')
    STORAGE_DIR: str = os.getenv('CATALOG_IMAGES_STORAGE_DIR', 'outputs/equipment-images')
    PUBLIC_BASE_URL: str = os.getenv('CATALOG_IMAGES_PUBLIC_BASE_URL', '')
    S3_BUCKET: str = os.getenv('CATALOG_IMAGES_S3_BUCKET', '')
    S3_REGION: str = os.getenv('CATALOG_IMAGES_S3_REGION', 'us-east-1')
    S3_PREFIX: str = os.getenv('CATALOG_IMAGES_S3_PREFIX', 'equipment-images')

    # Source strategies (JSON); empty means the bundled config/sources.json
    SOURCES_FILE: str = os.getenv('CATALOG_IMAGES_SOURCES_FILE', '')

    # User agents pool
    USER_AGENTS: list = [
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0',
        'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    ]

    # Fallback heuristic denylist (matched against image URL and alt text)
    DENYLIST_PATTERNS: list = [
        'logo',
        'icon',
        'placeholder',
        'sprite',
        'badge',
        'banner',
        'avatar',
        'spinner',
        'loading',
        'blank',
        'pixel',
        '.svg',
    ]

    # Catalog image references that do not count as a real photo
    PLACEHOLDER_URL_PATTERNS: list = [
        'placehold',
        'placeholder',
        'no-image',
        'noimage',
    ]

    # Rendered page markers meaning "this is not the content we navigated for"
    NON_CONTENT_MARKERS: list = [
        'access denied',
        'enter the characters you see below',
        'are you a robot',
        'verify you are human',
        'unusual traffic',
        'captcha',
        '404 not found',
        'page not found',
        '403 forbidden',
        'service unavailable',
        "this site can't be reached",
        'err_name_not_resolved',
    ]


@dataclass
class RunConfig:
    """Options for a single pipeline run (Settings defaults + CLI overrides)."""

    limit: int = Settings.LIMIT
    timeout_ms: int = Settings.TIMEOUT_MS
    min_image_size: int = Settings.MIN_IMAGE_SIZE
    target_size: int = Settings.TARGET_SIZE
    delay_between_items_ms: int = Settings.DELAY_BETWEEN_ITEMS_MS
    headless: bool = Settings.HEADLESS
    sources_file: Optional[str] = Settings.SOURCES_FILE or None

    @classmethod
    def from_settings(cls, **overrides) -> 'RunConfig':
        """Build from Settings, ignoring overrides that were not given (None)."""
        values = {name: value for name, value in overrides.items() if value is not None}
        config = cls(**values)
        if config.limit < 1:
            raise ValueError("limit must be at least 1")
        if config.min_image_size < 1 or config.target_size < config.min_image_size:
            raise ValueError("target_size must be at least min_image_size")
        if config.timeout_ms < 1 or config.delay_between_items_ms < 0:
            raise ValueError("timeout_ms must be positive and delay_between_items_ms non-negative")
        return config

"""Text utilities for Catalog Image Acquirer"""
import re
import unicodedata
from typing import Iterable, Optional

from config.settings import Settings


def slugify(text: str, max_length: int = 80) -> str:
    """
    Normalize a brand/model/category name for storage keys and URL patterns.

    Args:
        text: Original text ("TaylorMade", "Qi10 Max")
        max_length: Maximum length of the slug

    Returns:
        Lowercase dash-separated slug ("taylormade", "qi10-max")
    """
    if not text:
        return 'unnamed'

    normalized = unicodedata.normalize('NFKD', text)
    normalized = normalized.encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^a-z0-9]+', '-', normalized.lower())
    slug = re.sub(r'-+', '-', slug).strip('-')

    if len(slug) > max_length:
        slug = slug[:max_length].rstrip('-')

    return slug or 'unnamed'


def normalize_key(text: str) -> str:
    """Collapse whitespace and lowercase ("TaylorMade  Qi10" -> "taylormade qi10")."""
    return re.sub(r'\s+', ' ', text or '').strip().lower()


def item_key(brand: str, model: str) -> str:
    """Lookup key for direct URL tables."""
    return normalize_key(f"{brand} {model}")


def matches_any(text: Optional[str], patterns: Iterable[str]) -> Optional[str]:
    """
    Return the first pattern contained in text (case-insensitive), else None.
    """
    if not text:
        return None
    text_lower = text.lower()
    for pattern in patterns:
        if pattern.lower() in text_lower:
            return pattern
    return None


def is_placeholder_url(url: Optional[str], patterns: Iterable[str] = None) -> bool:
    """
    Check whether a catalog image reference is missing or a known placeholder.

    Args:
        url: Current image reference (may be None/empty)
        patterns: Placeholder patterns (default from settings)

    Returns:
        True if the item still needs a real image
    """
    if not url or not url.strip():
        return True
    patterns = Settings.PLACEHOLDER_URL_PATTERNS if patterns is None else patterns
    return matches_any(url, patterns) is not None


def truncate(text: str, length: int = 80) -> str:
    """Shorten long URLs for log lines."""
    if text is None:
        return ''
    if len(text) <= length:
        return text
    return f"{text[:length]}..."

"""Image download and inspection utilities"""
import base64
import binascii
import hashlib
import random
import re
from typing import Optional
from urllib.parse import urlparse

import requests

from config.settings import Settings
from utils.logger import get_logger
from utils.text_utils import truncate

logger = get_logger(__name__)

DATA_URI_RE = re.compile(r'^data:(image/[a-z0-9.+-]+)?(;[^,]*)?,(.*)$', re.IGNORECASE | re.DOTALL)


def calculate_md5(data: bytes) -> str:
    """Calculate MD5 hash of data."""
    return hashlib.md5(data).hexdigest()


def looks_like_html(data: bytes) -> bool:
    """Detect error pages served in place of an image."""
    head = data[:200].lstrip().lower()
    return head.startswith(b'<') or b'<!doctype' in head or b'<html' in head


def decode_data_uri(uri: str) -> Optional[bytes]:
    """
    Decode an inline ``data:image/...`` URI (common for search result tiles).

    Args:
        uri: data URI

    Returns:
        Decoded bytes or None if the URI is not an image data URI
    """
    match = DATA_URI_RE.match(uri or '')
    if not match:
        return None

    media_type, params, payload = match.groups()
    if media_type is None or 'svg' in media_type.lower():
        return None

    try:
        if params and 'base64' in params.lower():
            return base64.b64decode(payload, validate=False)
        return payload.encode('latin-1')
    except (binascii.Error, ValueError) as e:
        logger.debug(f"Invalid data URI: {e}")
        return None


def download_image(
    url: str,
    referer: str = None,
    user_agent: str = None,
    timeout: float = None,
    max_bytes: int = None
) -> Optional[bytes]:
    """
    Download image from URL.

    Args:
        url: Image URL (http(s) or data URI)
        referer: Page the image was found on (some CDNs require it)
        user_agent: User agent to present (default: random from pool)
        timeout: Request timeout in seconds
        max_bytes: Size cap in bytes

    Returns:
        Image bytes or None if failed
    """
    if not url:
        return None

    if url.startswith('data:'):
        return decode_data_uri(url)

    if urlparse(url).scheme not in ('http', 'https'):
        logger.debug(f"Unsupported image URL scheme: {truncate(url)}")
        return None

    timeout = timeout or Settings.DOWNLOAD_TIMEOUT
    max_bytes = max_bytes or Settings.MAX_IMAGE_BYTES

    headers = {
        'User-Agent': user_agent or random.choice(Settings.USER_AGENTS),
        'Accept': 'image/avif,image/webp,image/apng,image/*,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.9',
    }
    if referer:
        headers['Referer'] = referer

    try:
        with requests.get(url, headers=headers, timeout=timeout, allow_redirects=True, stream=True) as response:
            response.raise_for_status()

            content_length = response.headers.get('content-length')
            if content_length and content_length.isdigit() and int(content_length) > max_bytes:
                logger.warning(f"Image too large ({content_length} bytes > {max_bytes} bytes): {truncate(url)}")
                return None

            content_type = response.headers.get('content-type', '').lower()
            if content_type and 'image' not in content_type and 'octet-stream' not in content_type:
                logger.debug(f"Not an image (content-type: {content_type}): {truncate(url)}")
                return None

            image_data = b''
            for chunk in response.iter_content(chunk_size=8192):
                if chunk:
                    image_data += chunk
                    if len(image_data) > max_bytes:
                        logger.warning(f"Image exceeds size limit ({max_bytes} bytes): {truncate(url)}")
                        return None

    except requests.RequestException as e:
        logger.debug(f"Failed to download image {truncate(url)}: {e}")
        return None

    if not image_data:
        logger.debug(f"Empty image response: {truncate(url)}")
        return None

    if looks_like_html(image_data):
        logger.debug(f"URL returned HTML instead of image: {truncate(url)}")
        return None

    return image_data

"""Catalog Image Acquirer Utils Package"""
from .image_utils import download_image, calculate_md5
from .text_utils import slugify, is_placeholder_url, truncate
from .logger import get_logger

__all__ = [
    'download_image',
    'calculate_md5',
    'slugify',
    'is_placeholder_url',
    'truncate',
    'get_logger'
]

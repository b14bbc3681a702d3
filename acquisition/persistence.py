"""Persistence Layer - uploads normalized images and updates the catalog"""
from typing import Tuple

from core.catalog import CatalogStore
from core.errors import PersistenceError
from core.models import AcquisitionTarget, PersistedImageRecord, ValidatedImage
from core.storage import BlobStorage
from utils.image_utils import calculate_md5
from utils.logger import get_logger
from utils.text_utils import is_placeholder_url, slugify

logger = get_logger(__name__)

# Hex chars of the content digest used to disambiguate keys
KEY_HASH_LENGTH = 12


class ImagePersister:
    """Store one image per catalog item and point the catalog at it."""

    def __init__(self, storage: BlobStorage, catalog: CatalogStore):
        self.storage = storage
        self.catalog = catalog

    def build_key(self, target: AcquisitionTarget, image: ValidatedImage) -> Tuple[str, str]:
        """
        Deterministic storage key for an image.

        Same target and same bytes always give the same key, so re-running
        an item overwrites instead of piling up objects.

        Returns:
            Tuple of (key, content hash)
        """
        brand_slug = slugify(target.brand)
        model_slug = slugify(target.model)
        category_slug = slugify(target.category)

        identity = f"{category_slug}/{brand_slug}/{model_slug}".encode('utf-8')
        content_hash = calculate_md5(identity + image.data)

        key = f"{brand_slug}/{model_slug}-{content_hash[:KEY_HASH_LENGTH]}.{image.extension}"
        return key, content_hash

    def save(self, target: AcquisitionTarget, image: ValidatedImage) -> PersistedImageRecord:
        """
        Upload the image, point the catalog at it, then retire the previous one.

        Args:
            target: Item the image belongs to
            image: Normalized image

        Returns:
            PersistedImageRecord for the stored image

        Raises:
            PersistenceError: upload or catalog update failed
        """
        key, content_hash = self.build_key(target, image)
        previous_url = target.item.image_url

        try:
            public_url = self.storage.put(key, image.data, image.content_type, overwrite=True)
        except Exception as e:
            raise PersistenceError(f"Upload failed for {key}: {e}") from e
        logger.info(f"  Uploaded {key} ({len(image.data)} bytes)")

        self.catalog.update_image_reference(target.item_id, public_url)
        target.item.image_url = public_url

        self._delete_previous(previous_url, key)

        return PersistedImageRecord(
            item_id=target.item_id,
            storage_key=key,
            public_url=public_url,
            content_hash=content_hash,
        )

    def _delete_previous(self, previous_url: str, new_key: str):
        """Remove the item's old object if it lives in our storage under another key."""
        # Placeholder objects may be shared by many items
        if is_placeholder_url(previous_url):
            return
        old_key = self.storage.key_from_url(previous_url)
        if not old_key or old_key == new_key:
            return
        try:
            self.storage.delete(old_key)
            logger.info(f"  Deleted previous image {old_key}")
        except Exception as e:
            logger.warning(f"  Could not delete previous image {old_key}: {e}")

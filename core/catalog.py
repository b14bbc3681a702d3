"""SQLite catalog store for equipment records"""
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from config.settings import Settings
from core.errors import CatalogUnavailableError, PersistenceError
from core.models import CatalogItem
from utils.logger import get_logger

logger = get_logger(__name__)


class CatalogStore:
    """
    Keyed record store holding catalog items.

    The pipeline only reads items and rewrites ``image_url``; everything else
    in the catalog belongs to other systems.
    """

    def __init__(self, db_path: str = None, placeholder_patterns: List[str] = None):
        self.db_path = db_path or Settings.DATABASE_PATH
        self.placeholder_patterns = (
            Settings.PLACEHOLDER_URL_PATTERNS if placeholder_patterns is None else placeholder_patterns
        )
        self._init_db()

    def _init_db(self):
        """Initialize database and create tables if needed."""
        try:
            with self._get_connection() as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS catalog_items (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        id TEXT NOT NULL UNIQUE,
                        brand TEXT NOT NULL,
                        model TEXT NOT NULL,
                        category TEXT NOT NULL,
                        image_url TEXT,
                        priority_score REAL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP
                    )
                ''')
                conn.commit()
        except sqlite3.Error as e:
            raise CatalogUnavailableError(f"Cannot open catalog at {self.db_path}: {e}") from e
        logger.info(f"Catalog initialized: {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get database connection context manager."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def add_items(self, items: Iterable[Dict]) -> int:
        """
        Insert or replace catalog items (used to seed the local catalog).

        Args:
            items: Dicts with id, brand, model, category and optional
                image_url / priority_score

        Returns:
            Number of items written
        """
        rows = []
        for raw in items:
            missing = [name for name in ('id', 'brand', 'model', 'category') if not raw.get(name)]
            if missing:
                raise ValueError(f"Catalog item is missing {', '.join(missing)}: {raw}")
            rows.append((
                str(raw['id']),
                raw['brand'],
                raw['model'],
                raw['category'],
                raw.get('image_url'),
                raw.get('priority_score'),
            ))

        with self._get_connection() as conn:
            conn.executemany(
                '''
                INSERT INTO catalog_items (id, brand, model, category, image_url, priority_score)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    brand = excluded.brand,
                    model = excluded.model,
                    category = excluded.category,
                    image_url = excluded.image_url,
                    priority_score = excluded.priority_score
                ''',
                rows
            )
            conn.commit()
        logger.info(f"Stored {len(rows)} catalog items")
        return len(rows)

    def list_items_missing_image(self, limit: int) -> List[CatalogItem]:
        """
        Get items without an acceptable image, highest priority first.

        Items whose image reference is NULL, empty or a known placeholder
        qualify. Ties keep catalog (insertion) order; NULL priority sorts last.

        Args:
            limit: Maximum number of items to return

        Returns:
            List of catalog items
        """
        clauses = ["image_url IS NULL", "TRIM(image_url) = ''"]
        params: List = []
        for pattern in self.placeholder_patterns:
            clauses.append("LOWER(image_url) LIKE ?")
            params.append(f"%{pattern.lower()}%")
        params.append(limit)

        query = f'''
            SELECT id, brand, model, category, image_url, priority_score
            FROM catalog_items
            WHERE {' OR '.join(clauses)}
            ORDER BY priority_score IS NULL, priority_score DESC, seq ASC
            LIMIT ?
        '''
        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise CatalogUnavailableError(f"Catalog query failed: {e}") from e

        items = [self._row_to_item(row) for row in rows]
        logger.info(f"Found {len(items)} catalog items without an acceptable image")
        return items

    def get_item(self, item_id: str) -> Optional[CatalogItem]:
        """
        Get item by ID.

        Args:
            item_id: Catalog item ID

        Returns:
            CatalogItem or None
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id, brand, model, category, image_url, priority_score FROM catalog_items WHERE id = ?",
                (item_id,)
            ).fetchone()
        return self._row_to_item(row) if row else None

    def update_image_reference(self, item_id: str, url: str):
        """
        Point a catalog item at its new image.

        Args:
            item_id: Catalog item ID
            url: Public image URL
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE catalog_items SET image_url = ?, updated_at = ? WHERE id = ?",
                    (url, datetime.now().isoformat(), item_id)
                )
                conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Catalog update failed for {item_id}: {e}") from e

        if cursor.rowcount == 0:
            raise PersistenceError(f"Catalog item {item_id} not found")
        logger.debug(f"Updated image reference for #{item_id}")

    def _row_to_item(self, row: sqlite3.Row) -> CatalogItem:
        """Convert database row to CatalogItem."""
        return CatalogItem(
            id=row['id'],
            brand=row['brand'],
            model=row['model'],
            category=row['category'],
            image_url=row['image_url'],
            priority_score=row['priority_score'],
        )

"""Data models used throughout the acquisition pipeline"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CatalogItem:
    """Product record owned by the catalog store."""

    id: str
    brand: str
    model: str
    category: str
    image_url: Optional[str] = None
    priority_score: Optional[float] = None

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.model}".strip()


@dataclass
class AcquisitionTarget:
    """Per-run view of a catalog item queued for acquisition."""

    item: CatalogItem
    position: int = 0

    @property
    def item_id(self) -> str:
        return self.item.id

    @property
    def brand(self) -> str:
        return self.item.brand

    @property
    def model(self) -> str:
        return self.item.model

    @property
    def category(self) -> str:
        return self.item.category

    @property
    def query(self) -> str:
        """Search phrase used by search-based strategies."""
        return self.item.display_name


@dataclass
class ImageCandidate:
    """Raw image bytes pulled from a source page, with provenance."""

    data: bytes
    strategy_id: str
    source_url: str
    page_url: Optional[str] = None
    method: str = 'selector'  # 'selector' or 'fallback'


@dataclass
class ValidatedImage:
    """Candidate that passed validation, normalized to canonical form."""

    data: bytes
    width: int
    height: int
    original_width: int
    original_height: int
    format: str = 'JPEG'
    content_type: str = 'image/jpeg'
    extension: str = 'jpg'
    strategy_id: Optional[str] = None
    source_url: Optional[str] = None
    method: Optional[str] = None


@dataclass
class Rejection:
    """Reason a candidate was refused by the validator."""

    code: str  # corrupt / too_small / too_large / placeholder
    message: str

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass
class PersistedImageRecord:
    """Durable image stored for a catalog item."""

    item_id: str
    storage_key: str
    public_url: str
    content_hash: str


@dataclass
class StrategyFailure:
    """Why one strategy did not produce an image."""

    strategy_id: str
    reason: str

    def __str__(self) -> str:
        return f"{self.strategy_id}: {self.reason}"


@dataclass
class AcquisitionFailure:
    """Every strategy was tried and none produced a valid image."""

    item_id: str
    reasons: List[StrategyFailure] = field(default_factory=list)

    def describe(self) -> str:
        if not self.reasons:
            return 'no strategies configured'
        return '; '.join(str(reason) for reason in self.reasons)

"""Source strategies: how to reach a page that shows a product image"""
from typing import Dict, List, Optional
from urllib.parse import quote_plus

from core.models import AcquisitionTarget
from utils.text_utils import item_key, normalize_key, slugify


def _css_string(value: str) -> str:
    """Escape a value for use inside a double-quoted CSS attribute selector."""
    return value.replace('\\', '\\\\').replace('"', '\\"')


def render_template(template: str, values: Dict[str, str]) -> str:
    """Replace {name} tokens; unknown tokens and other braces are left alone."""
    rendered = template
    for name, value in values.items():
        rendered = rendered.replace('{' + name + '}', value)
    return rendered


class SourceStrategy:
    """
    One configured way of finding an image for a catalog item.

    Subclasses decide how the navigation URL is built; selectors and the
    largest-image fallback are shared.
    """

    kind: str = ''

    def __init__(
        self,
        id: str,
        selectors: List[str] = None,
        use_fallback: bool = True,
        result_link_selector: str = None,
        brands: List[str] = None,
        timeout_ms: int = None,
        name: str = None
    ):
        if not id:
            raise ValueError("Strategy id is required")
        self.id = id
        self.name = name or id
        self.selectors = list(selectors or [])
        self.use_fallback = use_fallback
        self.result_link_selector = result_link_selector
        self.brands = [brand.lower() for brand in (brands or [])]
        self.timeout_ms = timeout_ms

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    def applies_to(self, target: AcquisitionTarget) -> bool:
        """Brand-restricted sources (manufacturer sites) only serve their own brands."""
        if not self.brands:
            return True
        return (target.brand or '').lower() in self.brands

    def url_values(self, target: AcquisitionTarget) -> Dict[str, str]:
        return {
            'query': quote_plus(target.query),
            'brand': quote_plus(target.brand or ''),
            'model': quote_plus(target.model or ''),
            'category': quote_plus(target.category or ''),
            'brand_slug': slugify(target.brand),
            'model_slug': slugify(target.model),
            'category_slug': slugify(target.category),
        }

    def build_url(self, target: AcquisitionTarget) -> Optional[str]:
        """Navigation URL for the target, or None when this source has none."""
        raise NotImplementedError

    def render_selectors(self, target: AcquisitionTarget) -> List[str]:
        """Selectors with {brand}/{model}/{category} filled in for the target."""
        values = {
            'brand': _css_string(target.brand or ''),
            'model': _css_string(target.model or ''),
            'category': _css_string(target.category or ''),
        }
        return [render_template(selector, values) for selector in self.selectors]

    def to_dict(self) -> Dict:
        data = {
            'id': self.id,
            'kind': self.kind,
            'name': self.name,
            'selectors': list(self.selectors),
            'use_fallback': self.use_fallback,
        }
        if self.result_link_selector:
            data['result_link_selector'] = self.result_link_selector
        if self.brands:
            data['brands'] = list(self.brands)
        if self.timeout_ms:
            data['timeout_ms'] = self.timeout_ms
        return data


class DirectUrlStrategy(SourceStrategy):
    """Known product-page (or image) URLs looked up by brand and model."""

    kind = 'direct_url'

    def __init__(self, id: str, table: Dict[str, str] = None, url_pattern: str = None, **kwargs):
        super().__init__(id, **kwargs)
        # Keys are free text ("TaylorMade Qi10 Max"), matched case-insensitively
        self.table = {normalize_key(key): url for key, url in (table or {}).items()}
        self.url_pattern = url_pattern

    def build_url(self, target: AcquisitionTarget) -> Optional[str]:
        url = self.table.get(item_key(target.brand, target.model))
        if url:
            return url
        if self.url_pattern:
            return render_template(self.url_pattern, self.url_values(target))
        return None

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['table'] = dict(self.table)
        if self.url_pattern:
            data['url_pattern'] = self.url_pattern
        return data


class RetailerSearchStrategy(SourceStrategy):
    """Site search page, optionally followed through to the first product."""

    kind = 'retailer_search'

    def __init__(self, id: str, search_template: str = None, **kwargs):
        super().__init__(id, **kwargs)
        if not search_template:
            raise ValueError(f"Strategy {id}: search_template is required")
        self.search_template = search_template

    def build_url(self, target: AcquisitionTarget) -> Optional[str]:
        return render_template(self.search_template, self.url_values(target))

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['search_template'] = self.search_template
        return data


class GenericImageSearchStrategy(SourceStrategy):
    """Web image search; the broadest and least precise source."""

    kind = 'image_search'

    def __init__(self, id: str, search_template: str = None, query_suffix: str = '', **kwargs):
        super().__init__(id, **kwargs)
        if not search_template:
            raise ValueError(f"Strategy {id}: search_template is required")
        self.search_template = search_template
        self.query_suffix = query_suffix

    def url_values(self, target: AcquisitionTarget) -> Dict[str, str]:
        values = super().url_values(target)
        suffix = render_template(self.query_suffix, {'category': target.category or ''})
        values['query'] = quote_plus(f"{target.query} {suffix}".strip())
        return values

    def build_url(self, target: AcquisitionTarget) -> Optional[str]:
        return render_template(self.search_template, self.url_values(target))

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['search_template'] = self.search_template
        if self.query_suffix:
            data['query_suffix'] = self.query_suffix
        return data


STRATEGY_KINDS = {
    DirectUrlStrategy.kind: DirectUrlStrategy,
    RetailerSearchStrategy.kind: RetailerSearchStrategy,
    GenericImageSearchStrategy.kind: GenericImageSearchStrategy,
}


def strategy_from_dict(data: Dict) -> SourceStrategy:
    """
    Build a strategy from its configuration dict.

    Args:
        data: Dict with 'kind', 'id' and kind-specific fields

    Returns:
        SourceStrategy instance

    Raises:
        ValueError: unknown kind or missing required fields
    """
    options = dict(data)
    kind = options.pop('kind', None)
    strategy_cls = STRATEGY_KINDS.get(kind)
    if strategy_cls is None:
        raise ValueError(f"Unknown strategy kind: {kind!r} (expected one of {sorted(STRATEGY_KINDS)})")
    options.pop('enabled', None)
    try:
        return strategy_cls(**options)
    except TypeError as e:
        raise ValueError(f"Invalid options for {kind} strategy {data.get('id')!r}: {e}") from e

"""Shared fixtures and fakes: no real browser, network or bucket is needed"""
import os
import sys
from io import BytesIO

import pytest
from PIL import Image, ImageDraw

# Add parent directory to path so the top-level packages import
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.catalog import CatalogStore
from core.errors import NavigationTimeoutError
from core.models import AcquisitionTarget, CatalogItem
from core.storage import LocalBlobStorage


def make_image_bytes(size=(800, 600), fmt='JPEG', mode='RGB', background=(200, 200, 200)):
    """Product-like image: grey background with a dark block in the middle."""
    width, height = size
    img = Image.new(mode, size, background if mode != 'L' else 200)
    draw = ImageDraw.Draw(img)
    fill = (30, 60, 90) if mode in ('RGB', 'RGBA') else 40
    if mode == 'RGBA':
        fill = (30, 60, 90, 255)
    draw.rectangle([width // 4, height // 4, width * 3 // 4, height * 3 // 4], fill=fill)
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


def make_blank_bytes(size=(800, 800), color=(255, 255, 255)):
    output = BytesIO()
    Image.new('RGB', size, color).save(output, format='PNG')
    return output.getvalue()


def image_info(src, width=500, height=500, alt='', visible=True, index=0):
    """Image description in the shape BrowserPage.query_images returns."""
    return {
        'src': src,
        'alt': alt,
        'title': '',
        'width': width,
        'height': height,
        'natural_width': width,
        'natural_height': height,
        'visible': visible,
        'index': index,
    }


class FakePage:
    """
    Stand-in for BrowserPage.

    ``selectors`` maps a CSS selector to image descriptions; ``all_images``
    is what the largest-image fallback sees; ``error`` is raised by goto.
    """

    def __init__(self, selectors=None, all_images=None, links=None, error=None, user_agent='test-agent'):
        self.selectors = selectors or {}
        self._all_images = all_images or []
        self.links = links or {}
        self.error = error
        self.user_agent = user_agent
        self.current_url = None
        self.visited = []
        self.queried = []

    def goto(self, url, timeout_ms=None):
        self.visited.append(url)
        if self.error is not None:
            raise self.error
        self.current_url = url
        return url

    def query_images(self, selector):
        self.queried.append(selector)
        return list(self.selectors.get(selector, []))

    def all_images(self):
        return list(self._all_images)

    def first_link(self, selector):
        return self.links.get(selector)

    def dismiss_overlays(self):
        return False


class FakeBrowser:
    """
    Stand-in for BrowserSession.

    ``pages`` maps a URL prefix to the FakePage served for it; each
    with_page call is counted.
    """

    def __init__(self, pages=None, default_page=None):
        self.pages = pages or {}
        self.default_page = default_page
        self.with_page_calls = 0
        self.started = False
        self.closed = False

    def __enter__(self):
        self.started = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def _page_for(self, url):
        for prefix, page in self.pages.items():
            if url.startswith(prefix):
                return page
        if self.default_page is not None:
            return self.default_page
        return FakePage(error=NavigationTimeoutError("timed out after 1000ms", url=url))

    def with_page(self, fn):
        self.with_page_calls += 1
        return fn(_RoutingPage(self))


class _RoutingPage:
    """Delegates to the FakePage registered for the URL last navigated to."""

    def __init__(self, browser):
        self._browser = browser
        self._page = None

    def goto(self, url, timeout_ms=None):
        self._page = self._browser._page_for(url)
        return self._page.goto(url, timeout_ms)

    def __getattr__(self, name):
        return getattr(self._page, name)


class FakeDownloader:
    """Serves candidate bytes from a dict and records every request."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, url, referer=None, user_agent=None, **kwargs):
        self.calls.append(url)
        return self.responses.get(url)


@pytest.fixture
def catalog(tmp_path):
    return CatalogStore(db_path=str(tmp_path / 'catalog.db'))


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(root_dir=str(tmp_path / 'images'), public_base_url='https://cdn.example.com/equipment-images')


@pytest.fixture
def target():
    item = CatalogItem(id='item-1', brand='Acme', model='X1', category='driver')
    return AcquisitionTarget(item, position=1)

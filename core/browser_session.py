"""Browser session management for Catalog Image Acquirer"""
import platform
import random
import re
import subprocess
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, TypeVar

import undetected_chromedriver as uc
from bs4 import BeautifulSoup
from selenium.webdriver.common.by import By
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import TimeoutException, WebDriverException

from config.settings import Settings
from core.errors import (
    BrowserLaunchError,
    NavigationError,
    NavigationTimeoutError,
    NonContentResponseError,
)
from utils.logger import get_logger
from utils.text_utils import matches_any, truncate

logger = get_logger(__name__)

T = TypeVar('T')

# Hides the most common automation fingerprints from page scripts
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
window.chrome = window.chrome || {runtime: {}};
"""

# Describes every <img> matched by a selector (or nested in a matched container)
QUERY_IMAGES_SCRIPT = """
const selector = arguments[0];
let nodes;
try {
    nodes = Array.from(document.querySelectorAll(selector));
} catch (e) {
    return null;
}
const images = [];
for (const node of nodes) {
    if (node.tagName === 'IMG') {
        images.push(node);
    } else {
        node.querySelectorAll('img').forEach(img => images.push(img));
    }
}
function resolve(url) {
    if (!url) return null;
    if (url.startsWith('data:')) return url;
    try { return new URL(url, document.baseURI).href; } catch (e) { return null; }
}
function largestFromSrcset(srcset) {
    if (!srcset) return null;
    let best = null, bestWidth = -1;
    for (const part of srcset.split(',')) {
        const bits = part.trim().split(/\\s+/);
        if (!bits[0]) continue;
        const width = bits[1] ? parseFloat(bits[1]) || 0 : 0;
        if (width > bestWidth) { best = bits[0]; bestWidth = width; }
    }
    return best;
}
function largestFromDynamic(json) {
    if (!json) return null;
    try {
        const data = JSON.parse(json);
        let best = null, bestArea = -1;
        for (const [url, size] of Object.entries(data)) {
            const area = (size[0] || 0) * (size[1] || 0);
            if (area > bestArea) { best = url; bestArea = area; }
        }
        return best;
    } catch (e) { return null; }
}
const seen = new Set();
const result = [];
images.forEach((img, index) => {
    if (seen.has(img)) return;
    seen.add(img);
    const rect = img.getBoundingClientRect();
    const style = window.getComputedStyle(img);
    const visible = style.display !== 'none' && style.visibility !== 'hidden'
        && parseFloat(style.opacity || '1') > 0;
    const src = img.getAttribute('data-old-hires')
        || largestFromDynamic(img.getAttribute('data-a-dynamic-image'))
        || img.getAttribute('data-zoom-image')
        || img.getAttribute('data-zoom')
        || largestFromSrcset(img.getAttribute('srcset') || img.getAttribute('data-srcset'))
        || img.currentSrc
        || img.getAttribute('data-src')
        || img.getAttribute('data-lazy-src')
        || img.src;
    result.push({
        src: resolve(src),
        alt: img.alt || '',
        title: img.title || '',
        width: rect.width,
        height: rect.height,
        natural_width: img.naturalWidth || 0,
        natural_height: img.naturalHeight || 0,
        visible: visible,
        index: index
    });
});
return result;
"""

FIRST_LINK_SCRIPT = """
let nodes;
try {
    nodes = Array.from(document.querySelectorAll(arguments[0]));
} catch (e) {
    return null;
}
for (const node of nodes) {
    const anchor = node.tagName === 'A' ? node : (node.closest('a') || node.querySelector('a'));
    if (anchor && anchor.href && anchor.href.startsWith('http')) {
        return anchor.href;
    }
}
return null;
"""

# Common consent / newsletter overlay buttons
OVERLAY_CLOSE_SELECTORS = [
    "//button[@id='onetrust-accept-btn-handler']",
    "//button[contains(translate(., 'ACEPT', 'acept'), 'accept')]",
    "//button[contains(translate(., 'AGRE', 'agre'), 'i agree')]",
    "//button[@aria-label='Close']",
    "//button[contains(@class, 'close')]",
]


class BrowserPage:
    """One browser tab, scoped to a single strategy attempt."""

    def __init__(self, driver, handle: str, user_agent: str, timeout_ms: int):
        self.driver = driver
        self.handle = handle
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms

    @property
    def current_url(self) -> str:
        return self.driver.current_url

    def goto(self, url: str, timeout_ms: int = None) -> str:
        """
        Navigate with a bounded timeout.

        Args:
            url: URL to navigate to
            timeout_ms: Navigation timeout (default from session)

        Returns:
            URL the browser ended up on

        Raises:
            NavigationTimeoutError: page did not load in time
            NavigationError: network/driver failure
            NonContentResponseError: error, block or CAPTCHA page
        """
        timeout_ms = timeout_ms or self.timeout_ms
        timeout_sec = max(timeout_ms / 1000.0, 1.0)

        logger.info(f"  [Navigation] {truncate(url)}")
        start_time = time.time()

        self.driver.set_page_load_timeout(timeout_sec)
        self.driver.set_script_timeout(timeout_sec)
        try:
            self.driver.get(url)
        except TimeoutException as e:
            raise NavigationTimeoutError(f"timed out after {timeout_ms}ms", url=url) from e
        except WebDriverException as e:
            lines = (e.msg or '').strip().splitlines()
            detail = lines[0] if lines else type(e).__name__
            raise NavigationError(f"navigation failed: {detail}", url=url) from e

        self._wait_for_images(min(3.0, timeout_sec))
        self._nudge_lazy_images()
        self.check_content(url)

        logger.info(f"  [Navigation] Loaded in {time.time() - start_time:.2f}s")
        return self.driver.current_url

    def _wait_for_images(self, timeout_sec: float):
        """Give client-side rendering a moment to insert images."""
        try:
            WebDriverWait(self.driver, timeout_sec).until(
                lambda d: d.execute_script(
                    "return document.readyState === 'complete' || document.images.length > 0;"
                )
            )
        except TimeoutException:
            logger.debug("  [Navigation] Image wait timeout, continuing anyway...")

    def _nudge_lazy_images(self):
        """Scroll once so lazy-loading images get a real src."""
        try:
            self.driver.execute_script("window.scrollBy(0, 600);")
            self.driver.execute_script("window.scrollTo(0, 0);")
        except WebDriverException as e:
            logger.debug(f"  [Navigation] Scroll failed: {e}")

    def check_content(self, url: str = None):
        """
        Reject browser error pages, HTTP error pages and anti-bot walls.

        Raises:
            NavigationError: browser could not reach the site
            NonContentResponseError: page is not real content
        """
        current_url = self.driver.current_url or ''
        if current_url.startswith('chrome-error://'):
            raise NavigationError("browser error page (site unreachable)", url=url)

        soup = BeautifulSoup(self.driver.page_source or '', 'html.parser')
        title = soup.title.get_text(' ', strip=True) if soup.title else ''
        body_text = soup.body.get_text(' ', strip=True) if soup.body else ''

        marker = matches_any(title, Settings.NON_CONTENT_MARKERS)
        if marker:
            raise NonContentResponseError(f"non-content page ({marker!r} in title)", url=url)

        # Block pages are short; long pages that mention a marker are real content
        if len(body_text) < 1500:
            marker = matches_any(body_text, Settings.NON_CONTENT_MARKERS)
            if marker:
                raise NonContentResponseError(f"non-content page ({marker!r})", url=url)

        if not body_text and soup.find('img') is None:
            raise NonContentResponseError("empty page", url=url)

    def query_images(self, selector: str) -> List[Dict]:
        """
        Describe images matching a CSS selector.

        Args:
            selector: CSS selector for <img> elements or their containers

        Returns:
            List of dicts (src, alt, width, height, natural size, visible)
        """
        try:
            images = self.driver.execute_script(QUERY_IMAGES_SCRIPT, selector)
        except WebDriverException as e:
            logger.debug(f"Image query failed for {selector}: {e}")
            return []

        if images is None:
            logger.warning(f"Invalid selector skipped: {selector}")
            return []
        return list(images)

    def all_images(self) -> List[Dict]:
        """Describe every image on the page."""
        return self.query_images('img')

    def first_link(self, selector: str) -> Optional[str]:
        """
        Get the first http(s) link matching a selector.

        Args:
            selector: CSS selector for anchors or result tiles

        Returns:
            Absolute URL or None
        """
        try:
            return self.driver.execute_script(FIRST_LINK_SCRIPT, selector)
        except WebDriverException as e:
            logger.debug(f"Link query failed for {selector}: {e}")
            return None

    def dismiss_overlays(self) -> bool:
        """
        Try to close a consent banner or modal covering the page.

        Returns:
            True if an overlay was closed
        """
        for xpath in OVERLAY_CLOSE_SELECTORS:
            try:
                for element in self.driver.find_elements(By.XPATH, xpath):
                    if element.is_displayed():
                        element.click()
                        logger.debug("Closed overlay")
                        return True
            except WebDriverException:
                continue
        return False


class BrowserSession:
    """Owns one Chrome instance with anti-detection measures for a run."""

    def __init__(
        self,
        headless: bool = None,
        timeout_ms: int = None,
        driver_factory: Callable = None
    ):
        self.headless = Settings.HEADLESS if headless is None else headless
        self.timeout_ms = timeout_ms or Settings.TIMEOUT_MS
        self.user_agent: str = random.choice(Settings.USER_AGENTS)
        self._driver_factory = driver_factory or self._launch_chrome
        self._driver = None
        self._base_handle: Optional[str] = None

    def __enter__(self) -> 'BrowserSession':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def is_running(self) -> bool:
        return self._driver is not None

    def _get_chrome_version(self) -> Optional[int]:
        """
        Get installed Chrome major version so the matching driver is fetched.

        Returns:
            Major version number (e.g., 142) or None if cannot determine
        """
        if platform.system() == 'Windows':
            candidates = [
                r"C:\Program Files\Google\Chrome\Application\chrome.exe",
                r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
            ]
        elif platform.system() == 'Darwin':
            candidates = ['/Applications/Google Chrome.app/Contents/MacOS/Google Chrome']
        else:
            candidates = ['google-chrome', 'google-chrome-stable', 'chromium', 'chromium-browser']

        for binary in candidates:
            try:
                result = subprocess.run(
                    [binary, '--version'],
                    capture_output=True,
                    text=True,
                    timeout=5
                )
            except (OSError, subprocess.SubprocessError):
                continue
            if result.returncode == 0:
                match = re.search(r'(\d+)\.\d+\.\d+', result.stdout)
                if match:
                    return int(match.group(1))

        logger.debug("Could not determine Chrome version")
        return None

    def _build_options(self) -> uc.ChromeOptions:
        options = uc.ChromeOptions()

        # Anti-detection options
        options.add_argument('--disable-blink-features=AutomationControlled')
        options.add_argument('--disable-dev-shm-usage')
        options.add_argument('--no-sandbox')
        options.add_argument('--disable-gpu')
        options.add_argument('--lang=en-US')
        options.add_argument('--disable-notifications')
        options.add_argument(f'--window-size={Settings.WINDOW_WIDTH},{Settings.WINDOW_HEIGHT}')
        options.add_argument(f'--user-agent={self.user_agent}')
        options.add_experimental_option('prefs', {'intl.accept_languages': 'en-US,en;q=0.9'})

        if self.headless:
            options.add_argument('--headless=new')
            options.add_argument('--disable-extensions')
            options.add_argument('--disable-background-timer-throttling')
            options.add_argument('--disable-renderer-backgrounding')

        # DOMContentLoaded is enough; images are waited for separately
        options.page_load_strategy = 'eager'
        return options

    def _launch_chrome(self, options: uc.ChromeOptions):
        chrome_version = self._get_chrome_version()
        if chrome_version:
            logger.info(f"Detected Chrome version: {chrome_version}")
            try:
                return uc.Chrome(options=options, version_main=chrome_version)
            except WebDriverException as e:
                if 'version' not in str(e).lower():
                    raise
                logger.warning("Version mismatch detected, retrying with auto-detection...")
                options = self._build_options()

        logger.info("Auto-detecting Chrome version for ChromeDriver...")
        return uc.Chrome(options=options)

    def start(self):
        """
        Launch the browser.

        Raises:
            BrowserLaunchError: Chrome or its driver could not start
        """
        if self._driver is not None:
            return

        logger.info(f"Launching browser (headless: {self.headless})...")
        try:
            self._driver = self._driver_factory(self._build_options())
            self._driver.implicitly_wait(0)
            self._driver.set_window_size(Settings.WINDOW_WIDTH, Settings.WINDOW_HEIGHT)
            self._base_handle = self._driver.current_window_handle
        except Exception as e:
            self.close()
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        logger.info("Browser ready")

    def close(self):
        """Close the browser; safe to call more than once."""
        if self._driver is None:
            return
        try:
            self._driver.quit()
            logger.info("Browser closed")
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")
        finally:
            self._driver = None
            self._base_handle = None

    def _apply_stealth(self):
        try:
            self._driver.execute_cdp_cmd(
                'Page.addScriptToEvaluateOnNewDocument',
                {'source': STEALTH_SCRIPT}
            )
        except (WebDriverException, AttributeError) as e:
            logger.debug(f"Stealth patch not applied: {e}")

    @contextmanager
    def page(self):
        """
        Open a fresh tab and close it on every exit path.

        Yields:
            BrowserPage bound to the new tab
        """
        if self._driver is None:
            raise RuntimeError("Browser session is not started")

        self._driver.switch_to.new_window('tab')
        handle = self._driver.current_window_handle
        self._apply_stealth()
        try:
            yield BrowserPage(self._driver, handle, self.user_agent, self.timeout_ms)
        finally:
            try:
                if handle in self._driver.window_handles:
                    self._driver.switch_to.window(handle)
                    self._driver.close()
                self._driver.switch_to.window(self._base_handle)
            except WebDriverException as e:
                logger.warning(f"Error closing page: {e}")

    def with_page(self, fn: Callable[[BrowserPage], T]) -> T:
        """
        Run fn against a scoped page.

        Args:
            fn: Callable receiving the BrowserPage

        Returns:
            Whatever fn returns
        """
        with self.page() as page:
            return fn(page)

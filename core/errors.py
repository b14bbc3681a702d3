"""Exception hierarchy for the acquisition pipeline"""


class AcquisitionError(Exception):
    """Base class for every error raised by the pipeline."""


# Setup failures: fatal, abort the run

class SetupError(AcquisitionError):
    """Run cannot start (browser, catalog or storage unavailable)."""


class BrowserLaunchError(SetupError):
    """Browser instance failed to launch."""


class CatalogUnavailableError(SetupError):
    """Catalog store cannot be reached or queried."""


class StorageConfigError(SetupError):
    """Blob storage backend is missing or misconfigured."""


# Per-strategy failures: logged, chain moves on

class NavigationError(AcquisitionError):
    """Navigation to a source page failed."""

    def __init__(self, message: str, url: str = None):
        super().__init__(message)
        self.url = url


class NavigationTimeoutError(NavigationError):
    """Page did not load within the configured timeout."""


class NonContentResponseError(NavigationError):
    """Page loaded but is an error, block or CAPTCHA page."""


class ExtractionError(AcquisitionError):
    """No usable image candidates on the page."""


# Per-item failures

class PersistenceError(AcquisitionError):
    """Upload or catalog update failed."""

"""Exception hierarchy for BannerBuildr.

Template-level errors abort a whole generation run before any row is
attempted.  Row-level errors abort a single row and are distinct so the
batch caller can decide whether the rest of the batch continues.
Field-level problems (a mapped variable missing from Dynamic.js, an
unsupported multi-line assignment) are never raised; they surface as
warnings on the result objects.
"""


class BannerBuildrError(Exception):
    """Base class for all BannerBuildr errors."""


# ---------------------------------------------------------------------------
# Template errors
# ---------------------------------------------------------------------------

class TemplateError(BannerBuildrError):
    """The uploaded template cannot be used."""


class InvalidArchiveError(TemplateError):
    """The template upload is not a readable zip archive."""


class MissingEntryFileError(TemplateError):
    """The template contains no HTML entry file."""

    def __init__(self, message: str = "No HTML file found in the zip archive."):
        super().__init__(message)


class MissingDynamicJsError(TemplateError):
    """The template has no Dynamic.js and the caller requires one."""

    def __init__(self, message: str = "No Dynamic.js file found in the template."):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Row errors
# ---------------------------------------------------------------------------

class RowError(BannerBuildrError):
    """A single data row could not be turned into a variation."""


class RowNotFoundError(RowError):
    """No row matches the requested key."""

    def __init__(self, key_field: str, key: str, source: str = ""):
        self.key_field = key_field
        self.key = key
        self.source = source
        where = f" in {source!r}" if source else ""
        super().__init__(f"No row found{where} with {key_field} = {key!r}")


# ---------------------------------------------------------------------------
# Data source / configuration errors
# ---------------------------------------------------------------------------

class DataSourceError(BannerBuildrError):
    """Tabular data could not be read."""


class SheetFetchError(DataSourceError):
    """A Google Sheet tab could not be fetched as CSV."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ConfigError(BannerBuildrError):
    """A job configuration or mapping file is invalid."""

class SyncError(Exception):
    """Base class for failures raised by a sync run."""


class FormatError(SyncError):
    """The persisted store text is not the expected wrapped object."""


class UpstreamError(SyncError):
    """A bookmark source or store backend returned a non-success result."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StaleVersionError(UpstreamError):
    """A conditional store write was rejected because the version token is stale."""


class IconFetchError(SyncError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason

"""
Error taxonomy for book-acquisition.
"""


class AcquisitionError(Exception):
    """Base class for all acquisition errors."""


class FetchFailure(AcquisitionError):
    """Every relay and attempt for a request failed."""

    def __init__(self, target_url: str, last_error: BaseException | None = None):
        self.target_url = target_url
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Failed to fetch {target_url} through all relays{detail}")


class SourceError(AcquisitionError):
    """Upstream API answered but reported an application-level error."""

    def __init__(self, source: str, code: str | int, message: str | None = None):
        self.source = source
        self.code = code
        self.message = message
        super().__init__(f"{source} error {code}: {message or 'no message'}")


class ConfigurationError(AcquisitionError):
    """A required credential or setting is missing."""


class WorkflowError(AcquisitionError):
    """A workflow transition was requested for a book not in the source stage."""

"""
Exceptions raised by the update engine

Everything derives from UpdaterError so the orchestrator can turn any
per-mod failure into a single error string.
"""


class UpdaterError(Exception):
    """Base class for update engine errors."""
    pass


class ModIOError(UpdaterError):
    """Raised when a mod folder or one of its sidecar files cannot be read."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ManifestFormatError(UpdaterError):
    """Raised when a serialized manifest cannot be parsed."""

    def __init__(self, message: str, line_number: int = 0):
        super().__init__(message)
        self.line_number = line_number


class NetworkError(UpdaterError):
    """Raised when a query against an update source fails."""

    def __init__(self, message: str, status_code: int = 0, url: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class NotFoundError(NetworkError):
    """Raised when the remote resource (repo, asset, item, manifest) is absent."""
    pass


class MalformedSourceError(UpdaterError):
    """Raised when a mod declares an update source with missing fields."""
    pass


class UpdaterBusyError(UpdaterError):
    """Raised when a pass is requested while another one is still running."""
    pass


class OperationCancelled(UpdaterError):
    """Raised inside a pass when its cancellation event is set."""
    pass

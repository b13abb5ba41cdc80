"""Error types raised by the contract pipeline and the Feishu client."""


class SupplyChainError(Exception):
    """Base class for service errors. ``status_code`` is the HTTP status to report."""

    status_code = 500


class ConfigurationError(SupplyChainError):
    """A required credential or identifier is missing from the environment."""


class FeishuAPIError(SupplyChainError):
    """Non-success response (or non-zero ``code``) from the Feishu open API."""

    def __init__(self, message: str, status: int = 0, payload=None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class MediaDownloadError(SupplyChainError):
    """Downloading an attachment by file token failed."""

    def __init__(self, status: int, body: str):
        super().__init__(f"Download media failed: {status} {body}")
        self.status = status
        self.body = body


class RenderError(SupplyChainError):
    """The headless rendering engine failed to produce a PDF."""


class UploadError(SupplyChainError):
    """The upload endpoint did not return a file token."""

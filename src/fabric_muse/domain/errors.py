"""Application error taxonomy.

Every error raised across a service boundary derives from ``FabricMuseError``.
The API layer turns them into ``{"error": ..., "error_code": ...}`` responses
using the class-level ``status_code`` and ``error_code``.
"""

INSUFFICIENT_CREDITS_MESSAGE = (
    "Insufficient credits. Please top up your KIE AI account."
)

_CREDIT_HINTS = ("credit", "balance", "insufficient")


class FabricMuseError(Exception):
    """Base application error."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(FabricMuseError):
    """A required field is missing or malformed."""

    status_code = 400
    error_code = "VALIDATION_ERROR"
    message = "Invalid request"


class UploadTooLargeError(ValidationError):
    """An uploaded or fetched image exceeds the size limit."""

    status_code = 413
    error_code = "UPLOAD_TOO_LARGE"
    message = "Uploaded file is too large"


class NotFoundError(FabricMuseError):
    """Unknown session or job."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Not found"


class RemoteServiceError(FabricMuseError):
    """The image-generation vendor failed or returned a non-success code."""

    status_code = 502
    error_code = "REMOTE_SERVICE_ERROR"
    message = "Image generation service failed"

    def __init__(
        self, message: str | None = None, *, vendor_status: int | None = None
    ) -> None:
        super().__init__(message)
        self.vendor_status = vendor_status

    @property
    def insufficient_credits(self) -> bool:
        """Return True when the vendor rejected the call for lack of credits."""
        return is_insufficient_credits(self.vendor_status, self.message)


class StorageError(FabricMuseError):
    """Object storage rejected a write or could not be reached."""

    status_code = 502
    error_code = "STORAGE_ERROR"
    message = "Failed to store image"


class ImageFetchError(FabricMuseError):
    """A remote image could not be downloaded."""

    status_code = 502
    error_code = "IMAGE_FETCH_ERROR"
    message = "Error fetching image"


def is_insufficient_credits(status_code: int | None, message: str | None) -> bool:
    """Detect vendor credit or balance exhaustion from a status code and message."""
    if status_code == 402:
        return True
    text = (message or "").lower()
    return any(hint in text for hint in _CREDIT_HINTS)

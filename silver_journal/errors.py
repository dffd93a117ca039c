class StorageError(RuntimeError):
    """Raised when a table file or the media directory cannot be read or written."""


class ValidationError(ValueError):
    """Raised when a request parameter is missing or malformed."""


class MediaNotFoundError(LookupError):
    """Raised when an image named by the caller does not exist."""

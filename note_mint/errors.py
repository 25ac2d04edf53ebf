from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration or credentials are missing or invalid."""


class ValidationError(ValueError):
    """Raised when an input is rejected before any remote call is made."""


class EmptyContentError(ValidationError):
    """Raised when a note has no content to draw an image from."""


class GenerationError(RuntimeError):
    """Raised when the image generation service fails."""


class NSFWExhaustedError(GenerationError):
    """Raised when every allowed attempt was rejected by the NSFW filter."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class PublishError(RuntimeError):
    """Raised when pinning an asset fails. `stage` is "image" or "metadata"."""

    stage = "unknown"


class PinningFailedError(PublishError):
    stage = "image"


class MetadataPinFailedError(PublishError):
    stage = "metadata"


class StorageError(RuntimeError):
    """Raised when reading from or writing to the object store fails."""


class ObjectStoreWriteFailedError(StorageError):
    """Raised when an object store put fails."""

from __future__ import annotations

from .config import MintCredentials, load_config, resolve_credentials
from .config_schema import AppConfig
from .errors import (
    ConfigError,
    EmptyContentError,
    GenerationError,
    MetadataPinFailedError,
    NSFWExhaustedError,
    ObjectStoreWriteFailedError,
    PinningFailedError,
    PublishError,
    StorageError,
    ValidationError,
)
from .mint import mint_from_note, mint_from_social_note
from .note import Note, SocialPostNote
from .token_id import derive_token_id

__all__ = [
    "AppConfig",
    "ConfigError",
    "EmptyContentError",
    "GenerationError",
    "MetadataPinFailedError",
    "MintCredentials",
    "NSFWExhaustedError",
    "Note",
    "ObjectStoreWriteFailedError",
    "PinningFailedError",
    "PublishError",
    "SocialPostNote",
    "StorageError",
    "ValidationError",
    "derive_token_id",
    "load_config",
    "mint_from_note",
    "mint_from_social_note",
    "resolve_credentials",
]

from __future__ import annotations

import uuid
from contextlib import nullcontext
from typing import Any, Callable, ContextManager, Protocol

from .bucket import BucketPublisher
from .config import MintCredentials
from .config_schema import AppConfig
from .errors import ConfigError, EmptyContentError
from .mint_log import MintLog
from .note import Note, SocialPostNote
from .object_store import S3ObjectStore
from .pinning import PinataPublisher
from .retry import OnRetryFn, RetryEvent
from .synthesizer import ReplicateImageSynthesizer


class _Synthesizer(Protocol):
    def synthesize(self, prompt: str, attempt: int = 0) -> str: ...


class _PinnedPublisher(Protocol):
    def publish_pinned(self, image_url: str, uid: str, note: Note) -> str: ...


def _retry_logger(log: MintLog | None, *, url: str) -> OnRetryFn | None:
    if log is None:
        return None

    def _on_retry(event: RetryEvent) -> None:
        log.retry(event, url=url)

    return _on_retry


def _mint_scope(log: MintLog | None, variant: str, *, url: str, **data: Any) -> ContextManager[dict[str, Any]]:
    if log is None:
        return nullcontext({})
    return log.mint(variant, url=url, **data)


def _build_synthesizer(
    config: AppConfig, credentials: MintCredentials, *, on_retry: OnRetryFn | None
) -> ReplicateImageSynthesizer:
    return ReplicateImageSynthesizer(
        credentials.replicate_api_token,
        model=config.replicate.model,
        timeout_seconds=config.http.timeout_seconds,
        on_retry=on_retry,
    )


def mint_from_note(
    config: AppConfig,
    credentials: MintCredentials,
    note: Note,
    *,
    synthesizer: _Synthesizer | None = None,
    publisher: _PinnedPublisher | None = None,
    log: MintLog | None = None,
    uid_factory: Callable[[], str] | None = None,
) -> str:
    """
    Turn a note into ERC-721 token data pinned on IPFS.

    Returns the CID of the metadata document, which is what the contract stores as
    the token URI. Nothing already pinned is removed when a later stage fails.
    """
    if not (note.content or "").strip():
        raise EmptyContentError("Can't generate image from empty note!")

    url = note.post_url
    image_synthesizer = synthesizer or _build_synthesizer(
        config, credentials, on_retry=_retry_logger(log, url=url)
    )
    owned: PinataPublisher | None = None
    if publisher is None:
        if not credentials.pinata_jwt:
            raise ConfigError("Pinata JWT is required to mint a note")
        publisher = owned = PinataPublisher(
            credentials.pinata_jwt,
            pinata=config.pinata,
            timeout_seconds=config.http.timeout_seconds,
        )

    uid = (uid_factory or (lambda: str(uuid.uuid4())))()
    try:
        with _mint_scope(log, "pinned", url=url, uid=uid, creator=note.creator) as outcome:
            image_url = image_synthesizer.synthesize(note.content)
            if log is not None:
                log.info("image_synthesized", url=url, uid=uid)

            metadata_cid = publisher.publish_pinned(image_url, uid, note)
            outcome["metadata_cid"] = metadata_cid
    finally:
        if owned is not None:
            owned.close()

    return metadata_cid


def mint_from_social_note(
    config: AppConfig,
    credentials: MintCredentials,
    note: SocialPostNote,
    *,
    publisher: BucketPublisher | None = None,
    log: MintLog | None = None,
) -> int:
    """
    Get or create ERC-1155 token data for a note on a social post.

    Returns the token id derived from the post URL; a URL whose image is already in
    the bucket is returned as-is without generating anything.
    """
    url = note.url
    owned: BucketPublisher | None = None
    if publisher is None:
        if not (credentials.aws_access_key_id and credentials.aws_secret_access_key):
            raise ConfigError("AWS credentials are required to mint a social note")
        store = S3ObjectStore(
            s3=config.s3,
            access_key_id=credentials.aws_access_key_id,
            secret_access_key=credentials.aws_secret_access_key,
        )
        publisher = owned = BucketPublisher(
            synthesizer=_build_synthesizer(config, credentials, on_retry=_retry_logger(log, url=url)),
            store=store,
            timeout_seconds=config.http.timeout_seconds,
            conditional_writes=config.s3.conditional_writes,
        )

    try:
        with _mint_scope(log, "bucket", url=url) as outcome:
            result = publisher.publish(note)
            outcome["token_id"] = result.token_id
            if log is not None:
                if result.reused:
                    log.info("token_reused", url=url, token_id=result.token_id)
                else:
                    log.info("assets_published", url=url, token_id=result.token_id, image_url=result.image_url)
    finally:
        if owned is not None:
            owned.close()

    return result.token_id

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .errors import EmptyContentError, StorageError
from .note import SocialPostNote
from .object_store import S3ObjectStore
from .token_id import derive_token_id


class _Synthesizer(Protocol):
    def synthesize(self, prompt: str, attempt: int = 0) -> str: ...


@dataclass(frozen=True)
class BucketMintResult:
    token_id: int
    reused: bool
    image_url: str | None = None


def image_key(token_id: int) -> str:
    return f"{token_id}.png"


def metadata_key(token_id: int) -> str:
    return f"{token_id}.json"


def build_token_metadata(note: SocialPostNote, image_url: str) -> dict[str, Any]:
    return {
        "name": note.url,
        "description": note.content,
        "image": image_url,
    }


class BucketPublisher:
    """
    Creates the off-chain data of an ERC-1155 token for a social post, once per URL.

    `{token_id}.png` existing in the bucket means the token was already minted: its
    metadata is not checked, and nothing is generated or uploaded again.
    """

    def __init__(
        self,
        *,
        synthesizer: _Synthesizer,
        store: S3ObjectStore,
        http: httpx.Client | None = None,
        timeout_seconds: float = 60.0,
        conditional_writes: bool = False,
    ) -> None:
        self._synthesizer = synthesizer
        self._store = store
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout_seconds, follow_redirects=True)
        self._conditional_writes = bool(conditional_writes)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "BucketPublisher":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _download(self, url: str) -> bytes:
        try:
            response = self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to download generated image {url}: {e}") from e
        return response.content

    def publish(self, note: SocialPostNote) -> BucketMintResult:
        if not (note.content or "").strip():
            raise EmptyContentError("Can't generate image from empty note!")
        token_id = derive_token_id(note.url)
        png_key = image_key(token_id)

        if self._store.exists(png_key):
            return BucketMintResult(token_id=token_id, reused=True)

        generated_url = self._synthesizer.synthesize(note.content)
        image_bytes = self._download(generated_url)

        etag = self._store.put(png_key, image_bytes, "image/png", if_absent=self._conditional_writes)
        if etag is None:
            # Lost the race to a concurrent mint of the same URL; its metadata wins.
            return BucketMintResult(token_id=token_id, reused=True)

        image_url = self._store.public_url(png_key)
        document = build_token_metadata(note, image_url)
        self._store.put(metadata_key(token_id), json.dumps(document), "application/json")

        return BucketMintResult(token_id=token_id, reused=False, image_url=image_url)

    def publish_or_reuse(self, note: SocialPostNote) -> int:
        return self.publish(note).token_id

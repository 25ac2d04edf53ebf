from __future__ import annotations

import io
from typing import Any, Iterator

import httpx

from .config_schema import PinataConfig
from .errors import MetadataPinFailedError, PinningFailedError
from .note import Note


class _ByteStreamReader(io.RawIOBase):
    """Read-only file object over a byte iterator, so multipart uploads pull chunks lazily."""

    def __init__(self, chunks: Iterator[bytes]) -> None:
        self._chunks = chunks
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0

        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


def _ipfs_hash(response: httpx.Response) -> str:
    body = response.json()
    cid = (body.get("IpfsHash") or "").strip() if isinstance(body, dict) else ""
    if not cid:
        raise ValueError(f"response has no IpfsHash: {body!r}")
    return cid


def build_metadata_document(note: Note, uid: str, image_cid: str, *, gateway_url: str) -> dict[str, Any]:
    return {
        "pinataContent": {
            "name": note.post_url,
            "description": note.content,
            "external_url": gateway_url,
            "image": f"ipfs://{image_cid}",
        },
        "pinataMetadata": {
            "name": f"note-{uid}-metadata.json",
        },
    }


class PinataPublisher:
    """
    Pins a generated image and its NFT metadata to IPFS through the Pinata API.

    The image is streamed from the generation service straight into the upload.
    """

    def __init__(
        self,
        jwt: str,
        *,
        pinata: PinataConfig,
        http: httpx.Client | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        token = (jwt or "").strip()
        if not token:
            raise ValueError("jwt must be a non-empty string")

        self._cfg = pinata
        self._auth = {"Authorization": f"Bearer {token}"}
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout_seconds, follow_redirects=True)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "PinataPublisher":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _endpoint(self, path: str) -> str:
        return f"{self._cfg.api_base_url}/pinning/{path}"

    def pin_image(self, image_url: str, uid: str) -> str:
        filename = f"{uid}.png"
        try:
            with self._http.stream("GET", image_url) as source:
                source.raise_for_status()
                files = {"file": (filename, _ByteStreamReader(source.iter_bytes()), "image/png")}
                response = self._http.post(
                    self._endpoint("pinFileToIPFS"),
                    files=files,
                    headers=self._auth,
                )
                response.raise_for_status()
            return _ipfs_hash(response)
        except Exception as e:
            raise PinningFailedError(f"Pinata: failed to pin image {filename} to IPFS: {e}") from e

    def pin_metadata(self, note: Note, uid: str, image_cid: str) -> str:
        document = build_metadata_document(note, uid, image_cid, gateway_url=self._cfg.gateway_url)
        try:
            response = self._http.post(
                self._endpoint("pinJSONToIPFS"),
                json=document,
                headers=self._auth,
            )
            response.raise_for_status()
            return _ipfs_hash(response)
        except Exception as e:
            raise MetadataPinFailedError(
                f"Pinata: failed to pin metadata note-{uid}-metadata.json to IPFS: {e}"
            ) from e

    def publish_pinned(self, image_url: str, uid: str, note: Note) -> str:
        """Pin the image, then metadata pointing at it. Returns the metadata CID."""
        image_cid = self.pin_image(image_url, uid)
        return self.pin_metadata(note, uid, image_cid)

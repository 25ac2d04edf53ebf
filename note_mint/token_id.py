from __future__ import annotations

import hashlib

from .errors import ValidationError

# 6 bytes keeps ids below 2**48: safe as a JS number and as a uint256 token id.
_TOKEN_ID_BYTES = 6


def derive_token_id(url: str) -> int:
    """
    Map a social post URL to its on-chain token id.

    The URL is hashed as given; callers that want two spellings of the same post to
    share a token must canonicalize before calling.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("url must be a non-empty string")

    digest = hashlib.sha256(url.encode("utf-8")).digest()
    return int.from_bytes(digest[:_TOKEN_ID_BYTES], "big")

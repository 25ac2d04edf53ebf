from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Note:
    """A note written on an internal post, as handed over by the note service."""

    post_url: str
    content: str
    creator: str = ""
    ratings: Sequence[float] = ()


@dataclass(frozen=True)
class SocialPostNote:
    """A community note anchored to a third-party social post."""

    url: str
    content: str

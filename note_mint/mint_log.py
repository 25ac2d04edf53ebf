from __future__ import annotations

import json
import time
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Iterator, TextIO

from .retry import RetryEvent

_SECRET_KEYS = ("api_token", "authorization", "jwt", "secret_access_key")
_REDACTED = "***"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


def _redact(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        k = key.lower()
        if any(k == s or k.endswith("_" + s) for s in _SECRET_KEYS):
            out[key] = _REDACTED
        elif isinstance(value, dict):
            out[key] = _redact(value)
        else:
            out[key] = value
    return out


def _error_record(exc: BaseException) -> dict[str, Any]:
    record: dict[str, Any] = {
        "type": type(exc).__name__,
        "message": _truncate(str(exc), limit=2000),
        "traceback": _truncate(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            limit=12000,
        ),
    }
    stage = getattr(exc, "stage", None)
    if stage:
        record["stage"] = stage
    attempts = getattr(exc, "attempts", None)
    if attempts is not None:
        record["attempts"] = attempts
    return record


class MintLog:
    """
    JSON-lines event log for minting requests.

    One object per line: ts, level, event, request_id, plus the note url and any
    event data. Several requests may share a file; request_id tells them apart.
    Credential-looking data keys are written as "***".
    """

    def __init__(self, path: str | Path, *, overwrite: bool = False, request_id: str | None = None) -> None:
        self._path = Path(path)
        self._overwrite = bool(overwrite)
        self._request_id = (request_id or "").strip() or uuid.uuid4().hex
        self._fp: TextIO | None = None
        self._lock = Lock()

    @classmethod
    def open(cls, path: str | Path, *, overwrite: bool = False, request_id: str | None = None) -> "MintLog":
        log = cls(path, overwrite=overwrite, request_id=request_id)
        log._ensure_open()
        return log

    @property
    def request_id(self) -> str:
        return self._request_id

    def close(self) -> None:
        with self._lock:
            if self._fp is not None:
                try:
                    self._fp.flush()
                finally:
                    self._fp.close()
                self._fp = None

    def __enter__(self) -> "MintLog":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @contextmanager
    def mint(self, variant: str, *, url: str, **data: Any) -> Iterator[dict[str, Any]]:
        """
        Bracket one mint with mint_started and mint_completed / mint_failed.

        The yielded dict is merged into the mint_completed record, so the caller can
        attach what the mint produced (a CID, a token id). Both closing records carry
        elapsed_ms. Exceptions are logged and re-raised.
        """
        started = time.monotonic()
        self.info("mint_started", url=url, variant=variant, **data)

        outcome: dict[str, Any] = {}
        try:
            yield outcome
        except Exception as e:
            self.log(
                "ERROR",
                "mint_failed",
                url=url,
                variant=variant,
                elapsed_ms=_elapsed_ms(started),
                error=_error_record(e),
                **data,
            )
            raise

        self.info("mint_completed", url=url, variant=variant, elapsed_ms=_elapsed_ms(started), **data, **outcome)

    def retry(self, event: RetryEvent, *, url: str | None = None) -> None:
        self.log(
            "WARN",
            "generation_retry",
            url=url,
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            next_attempt=event.next_attempt,
            max_attempts=event.max_attempts,
            reason=event.reason,
            error_type=event.error_type,
            error_message=_truncate(event.error_message, limit=2000),
        )

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "request_id": self._request_id,
        }

        u = (url or "").strip()
        if u:
            record["url"] = u

        if data:
            record["data"] = _redact(data)

        self._write(record)

    def _ensure_open(self) -> None:
        with self._lock:
            if self._fp is not None:
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            mode = "w" if self._overwrite else "a"
            self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
            # Reopening after close() must not truncate what was already written.
            self._overwrite = False

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()


def _elapsed_ms(started: float) -> int:
    return int(round((time.monotonic() - started) * 1000))

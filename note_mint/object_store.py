from __future__ import annotations

from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config_schema import S3Config
from .errors import ObjectStoreWriteFailedError, StorageError


class _S3Client(Protocol):
    def head_object(self, **kwargs: Any) -> Any: ...

    def put_object(self, **kwargs: Any) -> Any: ...


_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
_PRECONDITION_CODES = {"412", "PreconditionFailed"}


def _error_code(exc: ClientError) -> str:
    err = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
    code = str(err.get("Code") or "")
    if code:
        return code
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return str(status or "")


class S3ObjectStore:
    """Key-addressed asset storage in a single public S3 bucket."""

    def __init__(
        self,
        *,
        s3: S3Config,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client: _S3Client | None = None,
    ) -> None:
        self._bucket = s3.bucket
        self._public_base = s3.resolved_public_base_url()

        if client is not None:
            self._client = client
        else:
            self._client = boto3.client(
                "s3",
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=s3.region,
            )

    @property
    def bucket(self) -> str:
        return self._bucket

    def public_url(self, key: str) -> str:
        return f"{self._public_base}/{key}"

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError(f"S3: failed to check s3://{self._bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3: failed to check s3://{self._bucket}/{key}: {e}") from e
        return True

    def put(self, key: str, body: bytes | str, content_type: str, *, if_absent: bool = False) -> str | None:
        """
        Write an object and return its ETag.

        With if_absent=True the write only happens when the key does not exist yet;
        None is returned when another writer got there first.
        """
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if if_absent:
            params["IfNoneMatch"] = "*"

        try:
            response = self._client.put_object(**params)
        except ClientError as e:
            if if_absent and _error_code(e) in _PRECONDITION_CODES:
                return None
            raise ObjectStoreWriteFailedError(
                f"S3: failed to upload s3://{self._bucket}/{key}: {e}"
            ) from e
        except BotoCoreError as e:
            raise ObjectStoreWriteFailedError(
                f"S3: failed to upload s3://{self._bucket}/{key}: {e}"
            ) from e

        etag = response.get("ETag") if isinstance(response, dict) else None
        return str(etag or "")

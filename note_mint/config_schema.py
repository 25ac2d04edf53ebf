from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# stability-ai/sdxl, pinned to the version the collectible artwork was tuned on.
DEFAULT_SDXL_MODEL = (
    "stability-ai/sdxl:c221b2b8ef527988fb59bf24a8b97c4561f1c671f73bd389f866bfb27c061316"
)


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _validate_http_url(value: str) -> str:
    url = (value or "").strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return url


PositiveFloat = Annotated[float, Field(gt=0)]


class ReplicateConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_token_env: str = "REPLICATE_API_TOKEN"
    model: str = DEFAULT_SDXL_MODEL

    @field_validator("api_token_env")
    @classmethod
    def _api_token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("model")
    @classmethod
    def _model_must_be_non_empty(cls, v: str) -> str:
        ref = (v or "").strip()
        if not ref:
            raise ValueError("must be a non-empty model reference")
        return ref


class PinataConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    jwt_env: str = "PINATA_JWT"
    api_base_url: str = "https://api.pinata.cloud"
    gateway_url: str = "https://gateway.pinata.cloud/ipfs/"

    @field_validator("jwt_env")
    @classmethod
    def _jwt_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("api_base_url")
    @classmethod
    def _api_base_url_must_be_http(cls, v: str) -> str:
        return _validate_http_url(v).rstrip("/")

    @field_validator("gateway_url")
    @classmethod
    def _gateway_url_must_be_http(cls, v: str) -> str:
        return _validate_http_url(v)


class S3Config(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    access_key_id_env: str = "AWS_ACCESS_KEY_ID"
    secret_access_key_env: str = "AWS_SECRET_ACCESS_KEY"
    region: str = "eu-west-3"
    bucket: str = "factchain-community"
    public_base_url: str | None = None
    # Off: two concurrent mints of one URL may both upload (last write wins).
    conditional_writes: bool = False

    @field_validator("access_key_id_env", "secret_access_key_env")
    @classmethod
    def _env_names_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("region", "bucket")
    @classmethod
    def _must_be_non_empty(cls, v: str) -> str:
        value = (v or "").strip()
        if not value:
            raise ValueError("must be non-empty")
        return value

    @field_validator("public_base_url")
    @classmethod
    def _public_base_url_must_be_http(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _validate_http_url(v).rstrip("/")

    def resolved_public_base_url(self) -> str:
        if self.public_base_url:
            return self.public_base_url
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"


class HttpConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout_seconds: PositiveFloat = 60.0


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    replicate: ReplicateConfig = Field(default_factory=ReplicateConfig)
    pinata: PinataConfig = Field(default_factory=PinataConfig)
    s3: S3Config = Field(default_factory=S3Config)
    http: HttpConfig = Field(default_factory=HttpConfig)

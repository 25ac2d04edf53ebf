from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config_schema import AppConfig
from .errors import ConfigError

MintVariant = Literal["pinned", "bucket"]


@dataclass(frozen=True)
class MintCredentials:
    """
    Secrets for one minting request.

    Only the fields needed by the requested variant are guaranteed to be set.
    """

    replicate_api_token: str
    pinata_jwt: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    def __repr__(self) -> str:
        return "MintCredentials(<redacted>)"


def load_config(path: str | Path) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    Raises ConfigError with a readable validation message on failure.
    """
    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def resolve_credentials(
    config: AppConfig,
    *,
    variant: MintVariant,
    environ: Mapping[str, str] | None = None,
) -> MintCredentials:
    """
    Read the secrets a minting variant needs from the environment.

    The pinned variant needs the Replicate token and the Pinata JWT; the bucket
    variant needs the Replicate token and an AWS key pair.
    """
    env = os.environ if environ is None else environ

    required = [config.replicate.api_token_env]
    if variant == "pinned":
        required.append(config.pinata.jwt_env)
    elif variant == "bucket":
        required.extend([config.s3.access_key_id_env, config.s3.secret_access_key_env])
    else:
        raise ConfigError(f"Unknown mint variant: {variant!r}")

    missing = [name for name in required if not (env.get(name) or "").strip()]
    if missing:
        joined = ", ".join(missing)
        raise ConfigError(f"Missing required environment variables: {joined}")

    def _get(name: str) -> str:
        return env[name].strip()

    if variant == "pinned":
        return MintCredentials(
            replicate_api_token=_get(config.replicate.api_token_env),
            pinata_jwt=_get(config.pinata.jwt_env),
        )

    return MintCredentials(
        replicate_api_token=_get(config.replicate.api_token_env),
        aws_access_key_id=_get(config.s3.access_key_id_env),
        aws_secret_access_key=_get(config.s3.secret_access_key_env),
    )


def _format_pydantic_errors(err: PydanticValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)

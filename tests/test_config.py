from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from note_mint.config import load_config, resolve_credentials
from note_mint.config_schema import DEFAULT_SDXL_MODEL
from note_mint.errors import ConfigError


_VALID_YAML = """\
replicate:
  api_token_env: REPLICATE_API_TOKEN
  model: owner/model:v2

pinata:
  jwt_env: PINATA_JWT
  api_base_url: https://api.pinata.cloud/
  gateway_url: https://gateway.pinata.cloud/ipfs/

s3:
  access_key_id_env: AWS_ACCESS_KEY_ID
  secret_access_key_env: AWS_SECRET_ACCESS_KEY
  region: eu-west-3
  bucket: factchain-community
  conditional_writes: true

http:
  timeout_seconds: 30
"""

_ENV = {
    "REPLICATE_API_TOKEN": "r8",
    "PINATA_JWT": "jwt",
    "AWS_ACCESS_KEY_ID": "AKIA",
    "AWS_SECRET_ACCESS_KEY": "secret",
}


def _write(td: str, text: str) -> Path:
    path = Path(td) / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestConfig(unittest.TestCase):
    def test_load_config_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, _VALID_YAML))

        self.assertEqual(cfg.replicate.model, "owner/model:v2")
        self.assertEqual(cfg.pinata.api_base_url, "https://api.pinata.cloud")
        self.assertTrue(cfg.s3.conditional_writes)
        self.assertEqual(cfg.http.timeout_seconds, 30)

    def test_empty_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, ""))

        self.assertEqual(cfg.replicate.model, DEFAULT_SDXL_MODEL)
        self.assertEqual(cfg.s3.bucket, "factchain-community")
        self.assertFalse(cfg.s3.conditional_writes)
        self.assertEqual(
            cfg.s3.resolved_public_base_url(),
            "https://factchain-community.s3.eu-west-3.amazonaws.com",
        )

    def test_rejects_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = _write(td, _VALID_YAML + "\nextra: 1\n")
            with self.assertRaises(ConfigError) as ctx:
                load_config(path)
        self.assertIn("extra", str(ctx.exception))

    def test_rejects_bad_env_name(self) -> None:
        bad = _VALID_YAML.replace("jwt_env: PINATA_JWT", "jwt_env: 1-bad")
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError) as ctx:
                load_config(_write(td, bad))
        self.assertIn("pinata.jwt_env", str(ctx.exception))

    def test_rejects_non_mapping_and_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ConfigError):
                load_config(_write(td, "- a\n- b\n"))
            with self.assertRaises(ConfigError):
                load_config(Path(td) / "nope.yaml")

    def test_resolve_pinned_credentials(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, _VALID_YAML))

        creds = resolve_credentials(cfg, variant="pinned", environ=_ENV)
        self.assertEqual(creds.replicate_api_token, "r8")
        self.assertEqual(creds.pinata_jwt, "jwt")
        self.assertIsNone(creds.aws_access_key_id)
        self.assertNotIn("jwt", repr(creds))

    def test_resolve_bucket_credentials_reports_missing_names(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg = load_config(_write(td, _VALID_YAML))

        with self.assertRaises(ConfigError) as ctx:
            resolve_credentials(cfg, variant="bucket", environ={"REPLICATE_API_TOKEN": "r8"})
        self.assertIn("AWS_ACCESS_KEY_ID", str(ctx.exception))
        self.assertIn("AWS_SECRET_ACCESS_KEY", str(ctx.exception))

        creds = resolve_credentials(cfg, variant="bucket", environ=_ENV)
        self.assertEqual(creds.aws_access_key_id, "AKIA")
        self.assertEqual(creds.aws_secret_access_key, "secret")
        self.assertIsNone(creds.pinata_jwt)


if __name__ == "__main__":
    unittest.main()

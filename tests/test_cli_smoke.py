from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from note_mint.token_id import derive_token_id


def _run_cli(*args: str, env_overrides: dict[str, str] | None = None) -> subprocess.CompletedProcess:
    repo_root = Path(__file__).resolve().parents[1]

    env = dict(os.environ)
    for name in ("REPLICATE_API_TOKEN", "PINATA_JWT", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
        env.pop(name, None)
    env.update(env_overrides or {})

    existing_pp = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)

    return subprocess.run(
        [sys.executable, "-m", "note_mint", *args],
        cwd=repo_root,
        env=env,
        capture_output=True,
        text=True,
    )


class TestCLISmoke(unittest.TestCase):
    def test_token_id_command(self) -> None:
        url = "https://x.com/someone/status/1"
        proc = _run_cli("token-id", "--url", url)

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertEqual(proc.stdout.strip(), f"token_id={derive_token_id(url)}")

    def test_token_id_rejects_empty_url(self) -> None:
        proc = _run_cli("token-id", "--url", "")
        self.assertEqual(proc.returncode, 2)

    def test_mint_note_without_credentials_is_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text("{}", encoding="utf-8")

            proc = _run_cli(
                "mint-note",
                "--config",
                str(cfg_path),
                "--post-url",
                "https://x.test/1",
                "--content",
                "hello",
            )

        self.assertEqual(proc.returncode, 2)
        self.assertIn("REPLICATE_API_TOKEN", proc.stderr)
        self.assertIn("PINATA_JWT", proc.stderr)

    def test_mint_note_with_empty_content_is_validation_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            cfg_path = Path(td) / "config.yaml"
            cfg_path.write_text("{}", encoding="utf-8")

            proc = _run_cli(
                "mint-note",
                "--config",
                str(cfg_path),
                "--post-url",
                "https://x.test/1",
                "--content",
                "",
                env_overrides={"REPLICATE_API_TOKEN": "dummy", "PINATA_JWT": "dummy"},
            )

        self.assertEqual(proc.returncode, 2, msg=proc.stderr)
        self.assertIn("empty note", proc.stderr)


if __name__ == "__main__":
    unittest.main()

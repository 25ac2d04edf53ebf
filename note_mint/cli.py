from __future__ import annotations

import argparse
import sys
from contextlib import nullcontext
from typing import Sequence

from .config import load_config, resolve_credentials
from .errors import ConfigError, GenerationError, PublishError, StorageError, ValidationError
from .mint import mint_from_note, mint_from_social_note
from .mint_log import MintLog
from .note import Note, SocialPostNote
from .token_id import derive_token_id


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="note_mint")

    subparsers = parser.add_subparsers(dest="command", required=True)

    note = subparsers.add_parser(
        "mint-note",
        help="Generate and pin NFT data for a note; prints the metadata CID.",
    )
    note.add_argument("--config", required=True, help="Path to YAML config file.")
    note.add_argument("--post-url", required=True, help="URL of the post the note was written on.")
    note.add_argument("--content", required=True, help="Note text, used as the image prompt.")
    note.add_argument("--creator", default="", help="Address of the note author.")
    note.add_argument("--log", default=None, help="Append JSON-lines events to this file.")
    note.set_defaults(_handler=_cmd_mint_note)

    social = subparsers.add_parser(
        "mint-social-note",
        help="Get or create bucket-hosted NFT data for a social post note; prints the token id.",
    )
    social.add_argument("--config", required=True, help="Path to YAML config file.")
    social.add_argument("--url", required=True, help="URL of the social post.")
    social.add_argument("--content", required=True, help="Note text, used as the image prompt.")
    social.add_argument("--log", default=None, help="Append JSON-lines events to this file.")
    social.set_defaults(_handler=_cmd_mint_social_note)

    token = subparsers.add_parser(
        "token-id",
        help="Print the token id a social post URL maps to.",
    )
    token.add_argument("--url", required=True, help="URL of the social post.")
    token.set_defaults(_handler=_cmd_token_id)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _open_log(path: str | None):
    if not path:
        return nullcontext(None)
    return MintLog.open(path)


def _cmd_mint_note(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    credentials = resolve_credentials(cfg, variant="pinned")
    note = Note(post_url=args.post_url, content=args.content, creator=args.creator)

    with _open_log(args.log) as log:
        cid = mint_from_note(cfg, credentials, note, log=log)

    print(f"metadata_cid={cid}")
    return 0


def _cmd_mint_social_note(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    credentials = resolve_credentials(cfg, variant="bucket")
    note = SocialPostNote(url=args.url, content=args.content)

    with _open_log(args.log) as log:
        token_id = mint_from_social_note(cfg, credentials, note, log=log)

    print(f"token_id={token_id}")
    return 0


def _cmd_token_id(args: argparse.Namespace) -> int:
    print(f"token_id={derive_token_id(args.url)}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except (ConfigError, ValidationError) as e:
        _eprint(str(e))
        return 2
    except (GenerationError, PublishError, StorageError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1

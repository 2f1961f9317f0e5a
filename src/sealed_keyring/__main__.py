"""sealed-keyring -- command line entry point.

Usage::

    python -m sealed_keyring [--config PATH] [-v] COMMAND ...

Commands:
    get KEY                      print the secret stored under KEY
    meta KEY                     print label, description and modification time
    set KEY VALUE [--label L] [--description D] [--no-sync]
    rm KEY                       remove KEY
    ls                           list every key in the service

Exit codes: 0 success, 1 key not found, 2 invalid configuration, 3 store error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from sealed_keyring.backend import KeyringBackend
from sealed_keyring.config import load_settings
from sealed_keyring.errors import InvalidConfiguration, KeyNotFound, StoreError
from sealed_keyring.models import Item
from sealed_keyring.registry import open_keyring

logger = logging.getLogger("sealed_keyring")

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_INVALID_CONFIG = 2
EXIT_STORE_ERROR = 3


# ---------------------------------------------------------------------------
# Integration seam -- module-level so tests can patch it.
# ---------------------------------------------------------------------------


def create_backend(config_path: str | None) -> KeyringBackend:
    """Load settings and open the configured keyring."""
    path = Path(config_path) if config_path else None
    return open_keyring(load_settings(config_path=path))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_get(backend: KeyringBackend, args: argparse.Namespace) -> None:
    item = backend.get(args.key)
    print(item.data.decode("utf-8", errors="replace"))


def _cmd_meta(backend: KeyringBackend, args: argparse.Namespace) -> None:
    md = backend.get_metadata(args.key)
    modified = md.modification_time.isoformat() if md.modification_time else "-"
    print(f"label: {md.item.label}")
    print(f"description: {md.item.description}")
    print(f"modified: {modified}")


def _cmd_set(backend: KeyringBackend, args: argparse.Namespace) -> None:
    backend.set(
        Item(
            key=args.key,
            data=args.value.encode("utf-8"),
            label=args.label,
            description=args.description,
            allow_sync=not args.no_sync,
        )
    )


def _cmd_rm(backend: KeyringBackend, args: argparse.Namespace) -> None:
    backend.remove(args.key)


def _cmd_ls(backend: KeyringBackend, args: argparse.Namespace) -> None:
    for key in backend.keys():
        print(key)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="sealed_keyring",
        description="Access-controlled secret storage",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_get = sub.add_parser("get", help="Print a secret")
    p_get.add_argument("key")
    p_get.set_defaults(func=_cmd_get)

    p_meta = sub.add_parser("meta", help="Print item metadata")
    p_meta.add_argument("key")
    p_meta.set_defaults(func=_cmd_meta)

    p_set = sub.add_parser("set", help="Create or update a secret")
    p_set.add_argument("key")
    p_set.add_argument("value")
    p_set.add_argument("--label", default="")
    p_set.add_argument("--description", default="")
    p_set.add_argument(
        "--no-sync",
        action="store_true",
        default=False,
        help="Keep this item out of cross-device sync",
    )
    p_set.set_defaults(func=_cmd_set)

    p_rm = sub.add_parser("rm", help="Remove a secret")
    p_rm.add_argument("key")
    p_rm.set_defaults(func=_cmd_rm)

    p_ls = sub.add_parser("ls", help="List keys")
    p_ls.set_defaults(func=_cmd_ls)

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse CLI args, run one command and return the exit code."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        backend = create_backend(args.config)
        args.func(backend, args)
    except KeyNotFound as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except (InvalidConfiguration, ValidationError) as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG
    except StoreError as exc:
        logger.debug("Store error", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

"""Verify the credential service's environment configuration.

Two checks are available:

1. Settings validation: ``AppSettings`` is built from the given ``.env`` file
   and the storage backend is checked for the values it needs (a DynamoDB
   table name, or a writable directory for the SQLite database).
2. Drift detection: a SHA-256 checksum of the ``.env`` file is recorded once
   and compared on later runs.

Example usages::

    python -m scripts.check_env check --env-file /opt/oauth/.env

    python -m scripts.check_env record --env-file /opt/oauth/.env \
        --hash-file /opt/oauth/.env.sha256

    python -m scripts.check_env verify --env-file /opt/oauth/.env \
        --hash-file /opt/oauth/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class BackendConfigError(Exception):
    """Raised when the selected storage backend is missing required settings."""


def _file_checksum(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _check_storage(settings: AppSettings) -> None:
    storage = settings.storage
    if storage.backend == "dynamodb":
        if not storage.dynamodb_table_name:
            raise BackendConfigError(
                "CREDENTIAL_STORE_BACKEND=dynamodb requires DYNAMODB_TABLE_NAME."
            )
        return
    parent = Path(storage.db_path).resolve().parent
    existing = parent
    while not existing.exists():
        existing = existing.parent
    if not os.access(existing, os.W_OK):
        raise BackendConfigError(
            f"CREDENTIAL_DB_PATH directory {parent} is not writable."
        )


def load_and_check(env_file: Path) -> AppSettings:
    """Build settings from ``env_file`` and validate backend requirements."""
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    _check_storage(settings)
    return settings


def _record(env_file: Path, hash_file: Path) -> int:
    checksum = _file_checksum(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Checksum file {hash_file} is missing; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _file_checksum(env_file)
    if expected != actual:
        print(
            "Environment checksum mismatch!\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print("Environment checksum OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate credential service settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text, needs_hash in (
        ("check", "Validate settings only.", False),
        ("record", "Validate settings and store the checksum baseline.", True),
        ("verify", "Validate settings and compare against the baseline.", True),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument("--env-file", default=".env", type=Path)
        if needs_hash:
            subparser.add_argument("--hash-file", required=True, type=Path)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = load_and_check(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except BackendConfigError as exc:
        print(f"Storage backend misconfigured: {exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    print(f"Settings OK (backend={settings.storage.backend}).")
    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "record": lambda: _record(env_file, args.hash_file),
        "verify": lambda: _verify(env_file, args.hash_file),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

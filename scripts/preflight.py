"""Preflight checks for a token exchange deployment.

Loads the settings from a ``.env`` file and builds the collaborators the
exchange depends on, reporting each one that cannot be constructed:

1. ``settings``: ``AppSettings`` validates (connection string present,
   lifetime bounds, storage backend name).
2. ``scopes``: every configured scope is a known Communication Services scope.
3. ``issuer``: the connection string parses into an identity client.
4. ``cipher``: a token encryption key can be derived.
5. ``store``: the configured table answers a read (skipped with
   ``--skip-store``).

Example usage::

    python -m scripts.preflight --env-file /opt/token-exchange/.env
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Callable, Optional

from azure.communication.identity import CommunicationTokenScope
from pydantic import ValidationError

from token_exchange.clients import (
    CommunicationIdentityIssuer,
    DynamoDBClient,
    SQLiteStore,
)
from token_exchange.core.config import AppSettings, _load_env_file
from token_exchange.core.errors import StoreError
from token_exchange.services import RecordBackend, TokenCipherService

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECK_FAILED = 3
EXIT_RUNTIME_ERROR = 5

PREFLIGHT_KEY = "__preflight__"


def _load_settings(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _check_scopes(settings: AppSettings) -> None:
    if not settings.communication.scopes:
        raise ValueError("ACS_TOKEN_SCOPES is empty.")
    for scope in settings.communication.scopes:
        CommunicationTokenScope(scope)


def _check_issuer(settings: AppSettings) -> None:
    issuer = CommunicationIdentityIssuer(settings.communication)
    asyncio.run(issuer.close())


def _check_cipher(settings: AppSettings) -> None:
    TokenCipherService(
        secret=settings.security.token_encryption_secret
        or settings.communication.connection_string
    )


def _build_backend(settings: AppSettings) -> RecordBackend:
    if settings.storage.backend == "sqlite":
        return SQLiteStore(settings.storage.sqlite_path)
    return DynamoDBClient(settings.storage)


def _check_store(settings: AppSettings) -> None:
    _build_backend(settings).query_items(PREFLIGHT_KEY)


def run_checks(
    settings: AppSettings, *, skip_store: bool = False
) -> list[tuple[str, Optional[str]]]:
    """Run each check and return ``(name, error)`` pairs; ``error`` is None on success."""
    checks: list[tuple[str, Callable[[AppSettings], None]]] = [
        ("scopes", _check_scopes),
        ("issuer", _check_issuer),
        ("cipher", _check_cipher),
    ]
    if not skip_store:
        checks.append(("store", _check_store))

    results: list[tuple[str, Optional[str]]] = []
    for name, check in checks:
        try:
            check(settings)
        except (StoreError, ValueError, KeyError) as exc:
            cause = exc.__cause__
            detail = f"{exc} ({cause})" if cause is not None else str(exc)
            results.append((name, detail or exc.__class__.__name__))
        else:
            results.append((name, None))
    return results


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check that the token exchange can build its clients."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--skip-store",
        action="store_true",
        help="Do not contact the user mapping table.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    print("settings: OK")

    failed = False
    for name, error in run_checks(settings, skip_store=args.skip_store):
        if error is None:
            print(f"{name}: OK")
        else:
            failed = True
            print(f"{name}: FAILED - {error}", file=sys.stderr)

    return EXIT_CHECK_FAILED if failed else EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

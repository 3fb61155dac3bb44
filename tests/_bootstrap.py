"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "ACS_CONNECTION_STRING": (
        "endpoint=https://test.communication.azure.com/;accesskey=dGVzdC1rZXk="
    ),
    "USER_STORE_BACKEND": "sqlite",
    "USER_MAPPINGS_DB_PATH": str(PROJECT_ROOT / ".pytest_cache" / "user_mappings.db"),
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)

"""Root conftest: loads .env.test before any module imports."""
from __future__ import annotations

import os
from pathlib import Path

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for line in _env_test.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())

# Settings() needs database credentials at import time even though unit tests
# never connect.
for _key, _value in {
    "POSTGRES_USER": "dm",
    "POSTGRES_PASSWORD": "dm",
    "POSTGRES_DB": "dm_test",
    "JWT_SECRET": "test-secret-for-dm-service-0123456789abcdef",
}.items():
    os.environ.setdefault(_key, _value)

"""Root conftest: prepares the environment before snare_relay.config is imported."""
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

# Integration tests drive liveness by hand; keep the background tick out of the way.
os.environ.setdefault("WS_PING_INTERVAL_SECONDS", "3600")
os.environ.setdefault("JWT_VERIFY_MODE", "none")

"""Environment-driven settings loaded into ``app.config``."""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Set

DEFAULT_PERSIST_INTERVAL = 30.0
DEFAULT_SESSION_TTL_DAYS = 30


def _parse_admin_users(raw: str) -> Set[str]:
    return {name.strip() for name in raw.split(",") if name.strip()}


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_config(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if env is None else env
    data_dir = Path(env.get("DATA_DIR", "."))
    ttl_days = float(env.get("SESSION_TTL_DAYS", DEFAULT_SESSION_TTL_DAYS))
    return {
        "SECRET_KEY": env.get("PROBLEMBOARD_SECRET") or secrets.token_hex(16),
        "DATA_DIR": data_dir,
        "DATA_FILE": data_dir / "data.json",
        "ADMIN_USERS": _parse_admin_users(env.get("ADMIN_USERS", "")),
        "PERSIST_INTERVAL": float(env.get("PERSIST_INTERVAL", DEFAULT_PERSIST_INTERVAL)),
        "SESSION_TTL_MS": int(ttl_days * 24 * 60 * 60 * 1000),
        "BASE_URL": env.get("BASE_URL", "http://localhost:3000"),
        "PORT": int(env.get("PORT", 3000)),
        "START_SCHEDULER": _parse_bool(env.get("START_SCHEDULER"), True),
    }

# cipherledger/core/config.py
"""
Runtime settings, resolved in this order:
    1. explicit argument (CLI flag)
    2. CIPHERLEDGER_* environment variable
    3. built-in default
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_STORE = "messages.json"
DEFAULT_MAX_ATTEMPTS = 1_000_000

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_int(name: str, default: int, minimum: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


@dataclass(frozen=True)
class LedgerSettings:
    store: str = DEFAULT_STORE
    keys_dir: Path = Path(".")
    difficulty: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    self_check: bool = True

    @classmethod
    def from_env(
        cls,
        store: Optional[str] = None,
        keys_dir: Optional[Path] = None,
        self_check: Optional[bool] = None,
    ) -> "LedgerSettings":
        return cls(
            store=store or os.environ.get("CIPHERLEDGER_STORE") or DEFAULT_STORE,
            keys_dir=keys_dir or Path(os.environ.get("CIPHERLEDGER_KEYS_DIR") or "."),
            difficulty=_env_int("CIPHERLEDGER_DIFFICULTY", 0, minimum=0),
            max_attempts=_env_int("CIPHERLEDGER_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS, minimum=1),
            self_check=_env_bool("CIPHERLEDGER_SELF_CHECK", True) if self_check is None else self_check,
        )

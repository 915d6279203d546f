"""
arise.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for the runtime knobs of the outer shell: which
profile to load, how aggressively to persist, which time zone decides the
daily quest reset.  Gameplay rules (XP formula, rank ladder, achievement
catalog) are code, not configuration.  The database URL is a secret-ish
deployment detail and comes from the ``DATABASE_URL`` environment variable
(``.env``), not from this file.

Usage::

    from arise.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.profile_name)      # "default"
    print(cfg.save_debounce_seconds)  # 5.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AriseConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity: the snapshot slot prefix in the store
    profile_name: str = "default"

    # Persistence
    save_debounce_seconds: float = 5.0   # Routine mutations flush at most this often
    autosave_interval_seconds: float = 30.0  # Safety-net flush for dirty state
    save_retry_attempts: int = 3

    # Daily reset: IANA zone name, None → the host's local time
    timezone: str | None = None

    # Logging
    log_level: str = "INFO"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> AriseConfig:
    """Read *path* and return an :class:`AriseConfig` instance.

    Every key is optional; missing keys fall back to the dataclass defaults.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a numeric setting is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = AriseConfig()
    cfg = AriseConfig(
        profile_name=str(raw.get("profile_name", defaults.profile_name)),
        save_debounce_seconds=float(
            raw.get("save_debounce_seconds", defaults.save_debounce_seconds)
        ),
        autosave_interval_seconds=float(
            raw.get("autosave_interval_seconds", defaults.autosave_interval_seconds)
        ),
        save_retry_attempts=int(
            raw.get("save_retry_attempts", defaults.save_retry_attempts)
        ),
        timezone=raw.get("timezone") or None,
        log_level=str(raw.get("log_level", defaults.log_level)).upper(),
    )

    if cfg.save_debounce_seconds < 0 or cfg.autosave_interval_seconds < 0:
        raise ValueError("Save intervals must be non-negative")
    if cfg.save_retry_attempts < 1:
        raise ValueError("save_retry_attempts must be at least 1")
    return cfg

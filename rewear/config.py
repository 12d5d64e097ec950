"""
rewear.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for **infrastructure-only** settings (marketplace
identity, API port, rate limits).  Points tuning values (completion bonus,
listing bonus) live in the ``settings`` database table so admins can
change them without a redeploy.

Usage::

    from rewear.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.marketplace_name)  # "ReWear"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# Points tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RewearConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    marketplace_name: str

    # API
    api_port: int

    # Throttling (sliding 60-second window)
    swap_requests_per_minute: int = 10
    admin_mutations_per_minute: int = 30


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> RewearConfig:
    """Read *path* and return a :class:`RewearConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return RewearConfig(
        marketplace_name=raw["marketplace_name"],
        api_port=int(raw["api_port"]),
        swap_requests_per_minute=int(raw.get("swap_requests_per_minute", 10)),
        admin_mutations_per_minute=int(raw.get("admin_mutations_per_minute", 30)),
    )

"""
rewear.database.seed — Default Settings Seeder
===============================================

Baseline points tuning seeded on first startup.

Idempotent — only inserts keys that don't already exist.  Values edited
by admins afterwards are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine

from rewear.database.engine import get_session
from rewear.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Setting keys
# ---------------------------------------------------------------------------
COMPLETION_BONUS_PERCENT = "swap.completion_bonus_percent"
LISTING_BONUS = "items.listing_bonus"

DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    COMPLETION_BONUS_PERCENT: (
        10, "points",
        "Percent of the item valuation awarded to BOTH parties when a swap is accepted",
    ),
    LISTING_BONUS: (
        10, "points", "Points credited to a member for submitting a listing",
    ),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> int:
    """Insert default settings that don't yet exist.

    Returns the number of rows inserted.
    """
    inserted = 0
    with get_session(engine) as session:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            if session.get(Setting, key) is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
    return inserted

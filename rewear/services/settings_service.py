"""
rewear.services.settings_service — Settings Reads & Audited Writes
===================================================================

Typed access to the ``settings`` table.  Settlement reads tuning knobs
from the *same* session as the settlement itself, so a value changed
mid-flight never splits one settlement across two rates.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rewear.database.models import AdminLog, Setting
from rewear.database.seed import COMPLETION_BONUS_PERCENT, LISTING_BONUS
from rewear.exceptions import InvalidOperation

logger = logging.getLogger(__name__)

# Tuning knobs that must hold a non-negative integer
NON_NEGATIVE_INT_KEYS = frozenset({COMPLETION_BONUS_PERCENT, LISTING_BONUS})


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_setting_value(session: Session, key: str, default=None):
    """Read a single setting's parsed value from an existing session.

    Returns *default* when the key does not exist; returns the raw string
    when the stored JSON is invalid.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def get_int(
    session: Session, key: str, default: int, *, minimum: int | None = None
) -> int:
    """Like :func:`get_setting_value` but coerced to ``int``.

    Non-numeric stored values, and values below *minimum* when given,
    fall back to *default* with a warning.
    """
    value = get_setting_value(session, key, default)
    try:
        result = int(value)
    except (TypeError, ValueError):
        logger.warning("Setting %s has non-integer value %r; using %d", key, value, default)
        return default
    if minimum is not None and result < minimum:
        logger.warning("Setting %s is %d, below %d; using %d", key, result, minimum, default)
        return default
    return result


def get_all_settings(engine) -> list[Setting]:
    """Fetch every setting row, ordered by category then key."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def validate_value(key: str, value: Any) -> None:
    """Raise :class:`InvalidOperation` if *value* is not storable under *key*."""
    if key in NON_NEGATIVE_INT_KEYS and (
        isinstance(value, bool) or not isinstance(value, int) or value < 0
    ):
        raise InvalidOperation(
            f"Setting {key} must be a non-negative integer", key=key,
        )


def update_setting(engine, *, key: str, value: Any, actor_id: int) -> Setting | None:
    """Overwrite an existing setting's value, with an ``admin_log`` row.

    Returns ``None`` when *key* does not exist; new keys are only created
    by the seeder.  Raises :class:`InvalidOperation` for a value the key
    does not accept.
    """
    with Session(engine, expire_on_commit=False) as session:
        row = session.get(Setting, key)
        if row is None:
            return None
        validate_value(key, value)
        before = {"key": row.key, "value_json": row.value_json}
        row.value_json = json.dumps(value)
        session.add(AdminLog(
            actor_id=actor_id,
            action_type="UPDATE",
            target_table="settings",
            target_id=key,
            before_snapshot=before,
            after_snapshot={"key": row.key, "value_json": row.value_json},
        ))
        session.commit()
        session.refresh(row)
        session.expunge(row)
        logger.info("Setting %s updated by admin %s", key, actor_id)
        return row

"""
rewear.services.admin_service — Admin Mutation Service Layer
=============================================================

Every admin write follows the same pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSON
  5. Commit

Moderation of listings lives in :mod:`rewear.services.item_service` but
shares the audit helpers defined here.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rewear.database.models import (
    ActivityType,
    AdminActionType,
    AdminLog,
    Item,
    ItemStatus,
    Swap,
    SwapStatus,
    User,
)
from rewear.exceptions import InvalidOperation, NotFound
from rewear.services import activity_service, ledger_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------

def _row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def _log_admin_action(
    session: Session,
    *,
    actor_id: int,
    action_type: AdminActionType,
    target_table: str,
    target_id: int | str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type.value,
        target_table=target_table,
        target_id=None if target_id is None else str(target_id),
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _load_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found", user_id=user_id)
    return user


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------

def adjust_points(
    engine,
    *,
    actor_id: int,
    user_id: int,
    delta: int,
    reason: str,
) -> User:
    """Apply a signed manual adjustment to a member's balance.

    Goes through the same atomic ledger update as settlement, so a
    negative *delta* larger than the balance raises
    :class:`~rewear.exceptions.InsufficientPoints`.
    """
    if delta == 0:
        raise InvalidOperation("Points adjustment must be non-zero")

    with Session(engine, expire_on_commit=False) as session, session.begin():
        before = _row_to_dict(_load_user(session, user_id))
        user = ledger_service.apply_delta(session, user_id, delta)

        activity_service.record(
            session,
            user_id=user_id,
            type_=ActivityType.POINTS_ADJUSTED,
            description=f"Points adjusted by admin: {delta:+d} ({reason})",
            points=delta,
        )
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.POINTS_ADJUST,
            target_table="users",
            target_id=user_id,
            before=before,
            after=_row_to_dict(user),
            reason=reason,
        )

    logger.info("Admin %s adjusted user %s by %+d (%s)", actor_id, user_id, delta, reason)
    return user


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------

def ban_user(engine, *, actor_id: int, user_id: int, reason: str) -> User:
    with Session(engine, expire_on_commit=False) as session, session.begin():
        user = _load_user(session, user_id)
        if user.is_admin:
            raise InvalidOperation("Cannot ban admin users")
        before = _row_to_dict(user)
        user.is_banned = True
        user.ban_reason = reason
        user.banned_at = datetime.now(UTC)
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.BAN,
            target_table="users",
            target_id=user_id,
            before=before,
            after=_row_to_dict(user),
            reason=reason,
        )

    logger.info("Admin %s banned user %s: %s", actor_id, user_id, reason)
    return user


def unban_user(engine, *, actor_id: int, user_id: int) -> User:
    with Session(engine, expire_on_commit=False) as session, session.begin():
        user = _load_user(session, user_id)
        before = _row_to_dict(user)
        user.is_banned = False
        user.ban_reason = None
        user.banned_at = None
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.UNBAN,
            target_table="users",
            target_id=user_id,
            before=before,
            after=_row_to_dict(user),
        )

    logger.info("Admin %s unbanned user %s", actor_id, user_id)
    return user


# ---------------------------------------------------------------------------
# Read-only
# ---------------------------------------------------------------------------

def list_users(engine, *, limit: int = 100, offset: int = 0) -> list[User]:
    """Members ordered by newest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(User)
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        session.expunge_all()
        return list(rows)


def get_audit_log(engine, *, limit: int = 50) -> list[AdminLog]:
    """Most recent admin_log entries."""
    with Session(engine) as session:
        rows = session.scalars(
            select(AdminLog)
            .order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
            .limit(limit)
        ).all()
        session.expunge_all()
        return list(rows)


def get_stats(engine) -> dict[str, Any]:
    """Marketplace-wide totals for the admin dashboard."""
    with Session(engine) as session:
        def count(model, *criteria) -> int:
            return session.scalar(
                select(func.count()).select_from(model).where(*criteria)
            ) or 0

        total_swaps = count(Swap)
        completed_swaps = count(Swap, Swap.status == SwapStatus.COMPLETED.value)
        success_rate = (
            round(completed_swaps / total_swaps * 100, 1) if total_swaps else 0.0
        )

        return {
            "total_users": count(User),
            "banned_users": count(User, User.is_banned.is_(True)),
            "total_items": count(Item),
            "pending_items": count(Item, Item.status == ItemStatus.PENDING.value),
            "available_items": count(Item, Item.status == ItemStatus.AVAILABLE.value),
            "total_swaps": total_swaps,
            "completed_swaps": completed_swaps,
            "swap_success_rate": success_rate,
        }

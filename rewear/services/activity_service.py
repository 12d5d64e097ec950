"""
rewear.services.activity_service — Append-Only Activity Log
============================================================

Every points- or status-affecting event is journalled here.  Rows are
never updated or deleted.

Writes happen in the *caller's* session: an activity row commits or rolls
back together with the settlement it documents.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rewear.database.models import Activity, ActivityType


def record(
    session: Session,
    *,
    user_id: int,
    type_: ActivityType,
    description: str,
    points: int = 0,
    related_item_id: int | None = None,
    related_swap_id: int | None = None,
) -> Activity:
    """Append one activity row to the current transaction."""
    activity = Activity(
        user_id=user_id,
        type=type_.value,
        description=description,
        points=points,
        related_item_id=related_item_id,
        related_swap_id=related_swap_id,
    )
    session.add(activity)
    return activity


def list_for_user(engine, user_id: int, *, limit: int = 50) -> list[Activity]:
    """Most recent activities for *user_id*, newest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Activity)
            .where(Activity.user_id == user_id)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit)
        ).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


def points_earned(session: Session, user_id: int) -> int:
    """Sum of every activity delta for *user_id*."""
    return session.scalar(
        select(func.coalesce(func.sum(Activity.points), 0))
        .where(Activity.user_id == user_id)
    ) or 0

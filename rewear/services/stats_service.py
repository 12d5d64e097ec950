"""
rewear.services.stats_service — Member Dashboard Aggregates
============================================================

Read-only counts behind ``/api/users/me/dashboard`` and
``/api/users/{id}/stats``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from rewear.constants import CO2_KG_PER_SWAP
from rewear.database.models import Item, ItemStatus, Swap, SwapStatus, User
from rewear.exceptions import NotFound
from rewear.services import activity_service


def get_user_stats(engine, user_id: int) -> dict[str, Any]:
    """Listing counts, successful swaps, points earned and CO2 estimate.

    *Successful swaps* are completed swaps against the member's own items.
    *Points earned* is the sum of every activity delta, so redemptions
    spent count against it.
    """
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFound("User not found", user_id=user_id)

        by_status = dict(
            session.execute(
                select(Item.status, func.count())
                .where(Item.owner_id == user_id)
                .group_by(Item.status)
            ).all()
        )
        successful = session.scalar(
            select(func.count())
            .select_from(Swap)
            .join(Item, Swap.item_id == Item.id)
            .where(
                Item.owner_id == user_id,
                Swap.status == SwapStatus.COMPLETED.value,
            )
        ) or 0

        return {
            "items_listed": sum(by_status.values()),
            "available_items": by_status.get(ItemStatus.AVAILABLE.value, 0),
            "swapped_items": by_status.get(ItemStatus.SWAPPED.value, 0),
            "pending_items": by_status.get(ItemStatus.PENDING.value, 0),
            "successful_swaps": successful,
            "total_points_earned": activity_service.points_earned(session, user_id),
            "co2_saved_kg": successful * CO2_KG_PER_SWAP,
        }


def get_dashboard(engine, user_id: int) -> dict[str, Any]:
    """Profile fields plus :func:`get_user_stats`."""
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found", user_id=user_id)
        profile = {
            "id": user.id,
            "username": user.username,
            "full_name": user.full_name,
            "points": user.points,
            "level": user.level,
            "role": user.role,
        }
    return {"user": profile, "stats": get_user_stats(engine, user_id)}

"""
rewear.api.routes.users — Member dashboard endpoints
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from rewear.api.deps import get_current_user, get_engine
from rewear.api.routes.swaps import swap_detail
from rewear.database.models import SwapStatus, User
from rewear.services import activity_service, stats_service, swap_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/dashboard")
def dashboard(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return stats_service.get_dashboard(engine, user.id)


@router.get("/me/swaps/incoming")
def incoming_swaps(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """Pending requests against the caller's items."""
    swaps = swap_service.list_received(engine, user.id, SwapStatus.PENDING)
    return [swap_detail(s) for s in swaps]


@router.get("/me/swaps/outgoing")
def outgoing_swaps(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    swaps = swap_service.list_sent(engine, user.id)
    return [swap_detail(s) for s in swaps]


@router.get("/me/swaps/completed")
def completed_swaps(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    swaps = swap_service.list_completed_for(engine, user.id)
    return [swap_detail(s) for s in swaps]


@router.get("/{user_id}/activities")
def user_activities(
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    _user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    rows = activity_service.list_for_user(engine, user_id, limit=limit)
    return [
        {
            "id": a.id,
            "type": a.type,
            "description": a.description,
            "points": a.points,
            "related_item_id": a.related_item_id,
            "related_swap_id": a.related_swap_id,
            "created_at": a.created_at.isoformat() if a.created_at else None,
        }
        for a in rows
    ]


@router.get("/{user_id}/stats")
def user_stats(
    user_id: int,
    _user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return stats_service.get_user_stats(engine, user_id)

"""
rewear.api.routes.swaps — Swap request endpoints (JWT‑protected)
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy import Engine

from rewear.api.deps import get_active_user, get_current_user, get_engine
from rewear.api.rate_limit import rate_limited_requester
from rewear.database.models import Item, Swap, SwapStatus, User
from rewear.services import swap_service

router = APIRouter(prefix="/swaps", tags=["swaps"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SwapCreate(BaseModel):
    item_id: int
    offered_item_id: int | None = None
    points_offered: int | None = None
    message: str = ""


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def item_summary(item: Item | None) -> dict | None:
    if item is None:
        return None
    return {
        "id": item.id,
        "title": item.title,
        "points": item.points,
        "status": item.status,
        "owner_id": item.owner_id,
    }


def swap_summary(swap: Swap) -> dict:
    return {
        "id": swap.id,
        "requester_id": swap.requester_id,
        "item_id": swap.item_id,
        "offered_item_id": swap.offered_item_id,
        "status": swap.status,
        "points_offered": swap.points_offered,
        "message": swap.message,
        "created_at": swap.created_at.isoformat() if swap.created_at else None,
        "updated_at": swap.updated_at.isoformat() if swap.updated_at else None,
    }


def swap_detail(swap: Swap) -> dict:
    """Summary plus the related item, offered item and requester.

    Only call on swaps loaded by the ``swap_service`` query helpers.
    """
    data = swap_summary(swap)
    data["item"] = item_summary(swap.item)
    data["offered_item"] = item_summary(swap.offered_item)
    data["requester"] = {
        "id": swap.requester.id,
        "username": swap.requester.username,
        "level": swap.requester.level,
    }
    return data


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
def create_swap(
    body: SwapCreate,
    user: User = Depends(rate_limited_requester),
    engine: Engine = Depends(get_engine),
):
    swap = swap_service.create_swap(
        engine,
        requester_id=user.id,
        item_id=body.item_id,
        offered_item_id=body.offered_item_id,
        points_offered=body.points_offered,
        message=body.message,
    )
    if swap.status == SwapStatus.COMPLETED.value:
        message = "Item redeemed successfully with points"
    else:
        message = "Swap request sent successfully"
    return {"id": swap.id, "status": swap.status, "message": message, "swap": swap_summary(swap)}


@router.get("")
def list_my_swaps(
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """Swaps the caller sent and received."""
    return {
        "sent": [swap_detail(s) for s in swap_service.list_sent(engine, user.id)],
        "received": [swap_detail(s) for s in swap_service.list_received(engine, user.id)],
    }


@router.get("/{swap_id}")
def get_swap(
    swap_id: int,
    user: User = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    swap = swap_service.get_swap(
        engine, swap_id=swap_id, acting_user_id=user.id, is_admin=user.is_admin,
    )
    return swap_detail(swap)


@router.put("/{swap_id}/accept")
def accept_swap(
    swap_id: int,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    result = swap_service.accept_swap(engine, swap_id=swap_id, acting_user_id=user.id)
    return {
        "id": swap_id,
        "status": SwapStatus.COMPLETED.value,
        "message": "Swap accepted successfully",
        "points_awarded": result.owner_delta,
    }


@router.put("/{swap_id}/decline")
def decline_swap(
    swap_id: int,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    swap = swap_service.decline_swap(engine, swap_id=swap_id, acting_user_id=user.id)
    return {"id": swap.id, "status": swap.status, "message": "Swap declined"}


@router.put("/{swap_id}/cancel")
def cancel_swap(
    swap_id: int,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    swap = swap_service.cancel_swap(engine, swap_id=swap_id, acting_user_id=user.id)
    return {"id": swap.id, "status": swap.status, "message": "Swap cancelled"}

"""
rewear.api.routes.items — Listing endpoints
=============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from rewear.api.deps import get_active_user, get_engine
from rewear.database.models import Item, User
from rewear.services import item_service

router = APIRouter(prefix="/items", tags=["items"])


class ItemCreate(BaseModel):
    title: str
    description: str | None = None
    category: str
    type: str
    size: str
    condition: str
    points: int
    tags: list[str] = Field(default_factory=list)


def item_dict(item: Item, *, with_owner: bool = False) -> dict:
    data = {
        "id": item.id,
        "owner_id": item.owner_id,
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "type": item.type,
        "size": item.size,
        "condition": item.condition,
        "points": item.points,
        "status": item.status,
        "views": item.views,
        "likes": item.likes,
        "tags": item.tags or [],
        "rejection_reason": item.rejection_reason,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }
    if with_owner:
        data["owner"] = {
            "id": item.owner.id,
            "username": item.owner.username,
            "level": item.owner.level,
        }
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
def create_item(
    body: ItemCreate,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    """Submit a listing for moderation."""
    item = item_service.list_item(
        engine,
        owner_id=user.id,
        title=body.title,
        description=body.description,
        category=body.category,
        type_=body.type,
        size=body.size,
        condition=body.condition,
        points=body.points,
        tags=body.tags,
    )
    return {
        "message": "Item listed successfully! It will be reviewed by our team.",
        "item": item_dict(item),
    }


@router.get("/{item_id}")
def get_item(item_id: int, engine: Engine = Depends(get_engine)):
    item = item_service.get_item(engine, item_id, count_view=True)
    return item_dict(item, with_owner=True)


@router.delete("/{item_id}")
def withdraw_item(
    item_id: int,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    item = item_service.withdraw_item(
        engine, actor_id=user.id, item_id=item_id, is_admin=user.is_admin,
    )
    return {"id": item.id, "status": item.status, "message": "Item removed"}


@router.post("/{item_id}/like")
def like_item(
    item_id: int,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    item, changed = item_service.like_item(engine, user_id=user.id, item_id=item_id)
    return {
        "liked": True,
        "likes": item.likes,
        "message": "Item liked" if changed else "Item already liked",
    }


@router.delete("/{item_id}/like")
def unlike_item(
    item_id: int,
    user: User = Depends(get_active_user),
    engine: Engine = Depends(get_engine),
):
    item, changed = item_service.unlike_item(engine, user_id=user.id, item_id=item_id)
    return {
        "liked": False,
        "likes": item.likes,
        "message": "Item unliked" if changed else "Item was not liked",
    }

"""
rewear.api.routes.admin — Moderation & member management (admin JWT)
======================================================================

Every mutation passes through :func:`rate_limited_admin`; reads only
require an admin token.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from rewear.api.deps import get_engine
from rewear.api.rate_limit import rate_limited_admin
from rewear.api.routes.items import item_dict
from rewear.database.models import User
from rewear.services import admin_service, item_service, settings_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RejectBody(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class RemoveBody(BaseModel):
    reason: str | None = None


class BanBody(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class PointsAdjust(BaseModel):
    delta: int
    reason: str = Field(min_length=1, max_length=500)


class SettingUpdate(BaseModel):
    value: Any


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "full_name": u.full_name,
        "role": u.role,
        "points": u.points,
        "level": u.level,
        "is_banned": u.is_banned,
        "ban_reason": u.ban_reason,
        "banned_at": u.banned_at.isoformat() if u.banned_at else None,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


# ---------------------------------------------------------------------------
# Item moderation
# ---------------------------------------------------------------------------
@router.get("/items/pending")
def pending_items(
    limit: int = Query(100, ge=1, le=500),
    _admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return [item_dict(i) for i in item_service.list_pending(engine, limit=limit)]


@router.put("/items/{item_id}/approve")
def approve_item(
    item_id: int,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    item = item_service.approve_item(engine, actor_id=admin.id, item_id=item_id)
    return {"message": "Item approved successfully", "item": item_dict(item)}


@router.put("/items/{item_id}/reject")
def reject_item(
    item_id: int,
    body: RejectBody,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    item = item_service.reject_item(
        engine, actor_id=admin.id, item_id=item_id, reason=body.reason,
    )
    return {"message": "Item rejected successfully", "item": item_dict(item)}


@router.delete("/items/{item_id}")
def remove_item(
    item_id: int,
    body: RemoveBody | None = None,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    item = item_service.withdraw_item(
        engine,
        actor_id=admin.id,
        item_id=item_id,
        is_admin=True,
        reason=body.reason if body else None,
    )
    return {"message": "Item removed successfully", "item": item_dict(item)}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
@router.get("/users")
def list_users(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return [_user_dict(u) for u in admin_service.list_users(engine, limit=limit, offset=offset)]


@router.put("/users/{user_id}/ban")
def ban_user(
    user_id: int,
    body: BanBody,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    user = admin_service.ban_user(engine, actor_id=admin.id, user_id=user_id, reason=body.reason)
    return {"message": "User banned successfully", "user": _user_dict(user)}


@router.put("/users/{user_id}/unban")
def unban_user(
    user_id: int,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    user = admin_service.unban_user(engine, actor_id=admin.id, user_id=user_id)
    return {"message": "User unbanned successfully", "user": _user_dict(user)}


@router.put("/users/{user_id}/points")
def adjust_points(
    user_id: int,
    body: PointsAdjust,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    user = admin_service.adjust_points(
        engine, actor_id=admin.id, user_id=user_id, delta=body.delta, reason=body.reason,
    )
    return {"message": "Points adjusted successfully", "user": _user_dict(user)}


# ---------------------------------------------------------------------------
# Stats, settings & audit log
# ---------------------------------------------------------------------------
@router.get("/stats")
def stats(
    _admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return admin_service.get_stats(engine)


@router.get("/settings")
def list_settings(
    _admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return [
        {
            "key": s.key,
            "value_json": s.value_json,
            "category": s.category,
            "description": s.description,
        }
        for s in settings_service.get_all_settings(engine)
    ]


@router.put("/settings/{key}")
def update_setting(
    key: str,
    body: SettingUpdate,
    admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    row = settings_service.update_setting(engine, key=key, value=body.value, actor_id=admin.id)
    if row is None:
        raise HTTPException(404, f"Unknown setting: {key}")
    return {"key": row.key, "value_json": row.value_json}


@router.get("/audit-log")
def audit_log(
    limit: int = Query(50, ge=1, le=200),
    _admin: User = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return [
        {
            "id": r.id,
            "actor_id": r.actor_id,
            "action_type": r.action_type,
            "target_table": r.target_table,
            "target_id": r.target_id,
            "before": r.before_snapshot,
            "after": r.after_snapshot,
            "reason": r.reason,
            "timestamp": r.timestamp.isoformat() if r.timestamp else None,
        }
        for r in admin_service.get_audit_log(engine, limit=limit)
    ]

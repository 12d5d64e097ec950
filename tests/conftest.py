"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of rewear.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively; render it as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from rewear.database.engine import configure_sqlite_locking  # noqa: E402
from rewear.database.models import (  # noqa: E402
    Base,
    Item,
    ItemStatus,
    User,
    UserRole,
)
from rewear.database.seed import seed_default_settings  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all ReWear tables and settings.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in the rate limiter).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_locking(engine)
    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
_counter = {"n": 0}


def make_user(
    engine: Engine,
    *,
    points: int = 0,
    role: UserRole = UserRole.USER,
    username: str | None = None,
    is_banned: bool = False,
) -> User:
    """Insert a user directly (no ledger, no activity) and return it detached."""
    from rewear.constants import level_for_points

    _counter["n"] += 1
    name = username or f"member{_counter['n']}"
    with Session(engine, expire_on_commit=False) as session:
        user = User(
            username=name,
            email=f"{name}@example.com",
            full_name=name.title(),
            role=role.value,
            points=points,
            level=level_for_points(points),
            is_banned=is_banned,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        session.expunge(user)
        return user


def make_item(
    engine: Engine,
    owner: User,
    *,
    points: int = 100,
    status: ItemStatus = ItemStatus.AVAILABLE,
    title: str = "Denim Jacket",
) -> Item:
    """Insert an item directly in the given status and return it detached."""
    with Session(engine, expire_on_commit=False) as session:
        item = Item(
            owner_id=owner.id,
            title=title,
            description="Barely worn",
            category="Outerwear",
            type="Jacket",
            size="M",
            condition="Like New",
            points=points,
            status=status.value,
            tags=["denim"],
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        session.expunge(item)
        return item


def fetch(engine: Engine, model: type, pk):
    """Re-read one row in a fresh session."""
    with Session(engine) as session:
        obj = session.get(model, pk)
        if obj is not None:
            session.expunge(obj)
        return obj


def make_token(user: User | int, role: str | None = None) -> str:
    """Create a bearer JWT the way the auth service would."""
    import jwt

    from rewear.api.deps import JWT_ALGORITHM, JWT_SECRET

    if isinstance(user, User):
        user_id, role = user.id, role or user.role
    else:
        user_id = user
    return jwt.encode(
        {"sub": str(user_id), "role": role or UserRole.USER.value},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def client(db_engine: Engine):
    """TestClient wired to the in-memory engine, with fresh rate limiters.

    The lifespan is not run, so the app never touches DATABASE_URL or
    config.yaml.
    """
    from fastapi.testclient import TestClient

    from rewear.api.main import app
    from rewear.api.rate_limit import build_rate_limiters
    from rewear.api.routes import swaps as swap_routes
    from rewear.config import RewearConfig

    cfg = RewearConfig(marketplace_name="ReWear Test", api_port=8000)
    app.state.rate_limiters = build_rate_limiters(db_engine, cfg)
    # Routes captured get_engine at import time; key the override on that object
    app.dependency_overrides[swap_routes.get_engine] = lambda: db_engine
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()

"""
rewear.api.rate_limit — Sliding-Window Request Throttling
==========================================================

Two throttles share one limiter class:

* ``swap_request`` — swap creations per member (default 10/minute).
* ``admin``        — admin mutations per admin (default 30/minute).

Counters live in the ``rate_limit_events`` table so they survive
restarts.  Limiters are built once in the app lifespan and stored on
``app.state.rate_limiters``; the dependencies below read them from the
request, so nothing here is module-level state.

Exceeding a limit returns HTTP 429 with a ``Retry-After`` header.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from rewear.api.deps import get_active_user, get_current_admin
from rewear.config import RewearConfig
from rewear.database.engine import run_db
from rewear.database.models import RateLimitEvent, User

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60

SWAP_SCOPE = "swap_request"
ADMIN_SCOPE = "admin"

# HTTP methods considered "mutations"
_MUTATION_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class RateLimiter:
    """Sliding-window rate limiter keyed by ``(scope, subject)``.

    DB-backed only — uses the ``rate_limit_events`` table for durable
    state that survives restarts.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    def _normalize_dt(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def _prune(self, session: Session, scope: str, subject: str, cutoff: datetime) -> None:
        session.execute(
            delete(RateLimitEvent).where(
                RateLimitEvent.scope == scope,
                RateLimitEvent.subject == subject,
                RateLimitEvent.timestamp < cutoff,
            )
        )

    def check(self, scope: str, subject: str) -> tuple[bool, dict[str, Any]]:
        """Check if *subject* is within the limit for *scope*.

        Returns (allowed, info) where info contains:
          - remaining: requests remaining in the window
          - reset: seconds until the oldest request expires
          - limit: the max requests per window
        """
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, scope, subject, cutoff)
            timestamps = session.scalars(
                select(RateLimitEvent.timestamp)
                .where(
                    RateLimitEvent.scope == scope,
                    RateLimitEvent.subject == subject,
                )
                .order_by(RateLimitEvent.timestamp.asc())
            ).all()
            session.commit()

        count = len(timestamps)
        if count >= self.max_requests:
            oldest = self._normalize_dt(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return False, {
                "remaining": 0,
                "reset": max(1, int(reset) + 1),
                "limit": self.max_requests,
            }

        return True, {
            "remaining": self.max_requests - count,
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def record(self, scope: str, subject: str) -> dict[str, Any]:
        """Record one request and return updated rate-limit info."""
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, scope, subject, cutoff)
            session.add(RateLimitEvent(scope=scope, subject=subject, timestamp=now))
            session.flush()
            count = session.scalar(
                select(func.count())
                .select_from(RateLimitEvent)
                .where(
                    RateLimitEvent.scope == scope,
                    RateLimitEvent.subject == subject,
                )
            ) or 0
            session.commit()

        return {
            "remaining": max(0, self.max_requests - count),
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def reset(self, scope: str | None = None, subject: str | None = None) -> None:
        """Clear rate limit state.  With no arguments, clear everything."""
        stmt = delete(RateLimitEvent)
        if scope is not None:
            stmt = stmt.where(RateLimitEvent.scope == scope)
        if subject is not None:
            stmt = stmt.where(RateLimitEvent.subject == subject)
        with Session(self.engine) as session:
            session.execute(stmt)
            session.commit()


def build_rate_limiters(engine: Engine, cfg: RewearConfig) -> dict[str, RateLimiter]:
    """Construct the limiter for each scope from config."""
    return {
        SWAP_SCOPE: RateLimiter(cfg.swap_requests_per_minute, engine=engine),
        ADMIN_SCOPE: RateLimiter(cfg.admin_mutations_per_minute, engine=engine),
    }


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

async def _enforce(request: Request, scope: str, subject: str) -> None:
    limiter: RateLimiter = request.app.state.rate_limiters[scope]
    allowed, info = await run_db(limiter.check, scope, subject)

    if not allowed:
        logger.warning(
            "Rate limit exceeded for %s %s: %d requests in %ds",
            scope, subject, limiter.max_requests, limiter.window_seconds,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": (
                    f"Rate limit exceeded: {limiter.max_requests}"
                    " requests per minute."
                ),
                "retry_after": info["reset"],
            },
            headers={"Retry-After": str(info["reset"])},
        )

    await run_db(limiter.record, scope, subject)


async def rate_limited_requester(
    request: Request,
    user: User = Depends(get_active_user),
) -> User:
    """Active user *and* within the per-member swap request limit."""
    await _enforce(request, SWAP_SCOPE, str(user.id))
    return user


async def rate_limited_admin(
    request: Request,
    admin: User = Depends(get_current_admin),
) -> User:
    """Validate the admin *and* enforce per-admin mutation rate limits.

    GET/HEAD/OPTIONS requests pass through without rate-limit checks.
    """
    if request.method in _MUTATION_METHODS:
        await _enforce(request, ADMIN_SCOPE, str(admin.id))
    return admin

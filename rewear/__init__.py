"""
ReWear — Peer-to-Peer Clothing Exchange Backend
================================================
Members list garments, request swaps (item-for-item or item-for-points),
and earn points as swaps complete.  Administrators moderate listings and
manage member balances.

Package layout::

    rewear/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Level tiers + item enumerations
    ├── exceptions.py      # Typed swap/settlement errors
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helpers
    │   ├── models.py      # ORM models (users, items, swaps, activities …)
    │   └── seed.py        # Default settings seeder
    ├── engine/
    │   ├── states.py      # Item/Swap status enums + transition tables
    │   ├── ledger.py      # Level tiers as a SQL CASE
    │   └── settlement.py  # Pure settlement amount calculation
    ├── services/
    │   ├── swap_service.py        # Swap lifecycle (create/accept/decline/cancel)
    │   ├── settlement_service.py  # Atomic redemption + acceptance settlement
    │   ├── ledger_service.py      # Atomic SQL balance updates
    │   ├── activity_service.py    # Append-only activity log
    │   ├── item_service.py        # Listing + moderation
    │   ├── admin_service.py       # Audit-logged admin mutations
    │   ├── stats_service.py       # Dashboard aggregates
    │   └── settings_service.py    # Tuning knobs from the settings table
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT auth + DB dependencies
        ├── errors.py      # Exception → JSON response mapping
        ├── rate_limit.py  # DB-backed sliding-window limiter
        └── routes/        # swaps, items, users, admin
"""

__version__ = "0.1.0"

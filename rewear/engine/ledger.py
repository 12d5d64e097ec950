"""
rewear.engine.ledger — Level Derivation for Balance Updates
============================================================

:func:`~rewear.constants.level_for_points` is the Python rule;
:func:`level_case` is the same tier table as a SQL ``CASE`` so that
:mod:`rewear.services.ledger_service` can move a balance and recompute its
level in one ``UPDATE``.  No DB I/O here.
"""

from __future__ import annotations

from sqlalchemy import case
from sqlalchemy.sql.elements import ColumnElement

from rewear.constants import DEFAULT_LEVEL, LEVEL_TIERS


def level_case(points_expr: ColumnElement[int]) -> ColumnElement[str]:
    """SQL ``CASE`` mirroring :func:`~rewear.constants.level_for_points`.

    Used as the right-hand side of ``UPDATE users SET level = …`` so the
    balance and its level change in the same statement.
    """
    whens = [
        (points_expr >= threshold, label)
        for threshold, label in LEVEL_TIERS
        if label != DEFAULT_LEVEL
    ]
    return case(*whens, else_=DEFAULT_LEVEL)

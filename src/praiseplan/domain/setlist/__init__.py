"""Setlist ordering: optimistic reorders persisted through the position reconciler."""

from __future__ import annotations

from .reconciler import (
    PositionReconciler,
    ReconcileResult,
    ReconcileStrategy,
    placeholder_floor,
    plan_moves,
)
from .store import ChangeKind, ListChange, ListState, OptimisticListStore

__all__ = [
    "ChangeKind",
    "ListChange",
    "ListState",
    "OptimisticListStore",
    "PositionReconciler",
    "ReconcileResult",
    "ReconcileStrategy",
    "placeholder_floor",
    "plan_moves",
]

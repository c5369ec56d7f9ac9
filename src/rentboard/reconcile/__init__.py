"""Reconciliation of local views with the authoritative store."""

from rentboard.reconcile.loop import ReconciliationLoop, Snapshot

__all__ = [
    "ReconciliationLoop",
    "Snapshot",
]

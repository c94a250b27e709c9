"""Release orchestration engine.

- model: session, ledger entry and snapshot types
- vcs / snapshots / registry: the adapters the coordinator drives
- ledger: recording, compensation and verification
- coordinator: the release state machine
"""

from __future__ import annotations

from .coordinator import ReleaseCoordinator, ReleaseOutcome, build_coordinator
from .errors import ReleaseError
from .ledger import OperationLedger, RollbackReport
from .model import EntryStatus, LedgerEntry, OperationType, ReleaseSession, SessionState, Snapshot
from .preflight import ReleasePlan

__all__ = [
    "EntryStatus",
    "LedgerEntry",
    "OperationLedger",
    "OperationType",
    "ReleaseCoordinator",
    "ReleaseError",
    "ReleaseOutcome",
    "ReleasePlan",
    "ReleaseSession",
    "RollbackReport",
    "SessionState",
    "Snapshot",
    "build_coordinator",
]

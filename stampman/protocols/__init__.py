"""Stampman protocols."""

from stampman.protocols.events import (
    LedgerEvent,
    PointsAdded,
    RewardRedeemed,
    StampsIssued,
)
from stampman.protocols.ledger import (
    CardStore,
    EventSink,
    ProgramStore,
)

__all__ = [
    # Storage
    "CardStore",
    "ProgramStore",
    # Events
    "EventSink",
    "LedgerEvent",
    "StampsIssued",
    "PointsAdded",
    "RewardRedeemed",
]

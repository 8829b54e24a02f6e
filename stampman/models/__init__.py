"""Stampman models.

Ledger aggregate:
- LoyaltyCard (aggregate root) owns its Transaction list.

Program catalog (read-mostly):
- LoyaltyProgram, LoyaltyTier, Reward
"""

from stampman.models.program import (
    LoyaltyProgram,
    LoyaltyTier,
    ProgramType,
    Reward,
)
from stampman.models.transaction import Transaction, TransactionType
from stampman.models.card import CardStatus, LoyaltyCard, qr_code_for

__all__ = [
    # Program catalog
    "LoyaltyProgram",
    "LoyaltyTier",
    "ProgramType",
    "Reward",
    # Ledger
    "LoyaltyCard",
    "CardStatus",
    "Transaction",
    "TransactionType",
    "qr_code_for",
]

"""Ledger domain events.

Published after a ledger command commits. Delivery is best-effort:
consumers (notifications, analytics) must not assume every event arrives.
"""

import uuid as uuid_lib
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from django.utils import timezone


@dataclass(frozen=True)
class StampsIssued:
    """Stamps were issued to a card."""

    card_id: str
    customer_id: str
    stamps_issued: int
    total_stamps: int
    store_id: str
    event_id: str = field(default_factory=lambda: str(uuid_lib.uuid4()))
    occurred_at: datetime = field(default_factory=timezone.now)

    name = "stamps_issued"


@dataclass(frozen=True)
class PointsAdded:
    """Points were credited to a card."""

    card_id: str
    customer_id: str
    points_added: Decimal
    points_balance: Decimal
    transaction_amount: Decimal
    store_id: str
    event_id: str = field(default_factory=lambda: str(uuid_lib.uuid4()))
    occurred_at: datetime = field(default_factory=timezone.now)

    name = "points_added"


@dataclass(frozen=True)
class RewardRedeemed:
    """A reward was redeemed against a card balance."""

    card_id: str
    customer_id: str
    reward_id: str
    reward_title: str
    required_value: int
    store_id: str
    event_id: str = field(default_factory=lambda: str(uuid_lib.uuid4()))
    occurred_at: datetime = field(default_factory=timezone.now)

    name = "reward_redeemed"


LedgerEvent = StampsIssued | PointsAdded | RewardRedeemed

"""Pytest fixtures for Stampman tests."""

from decimal import Decimal

import pytest

from stampman.models import LoyaltyProgram, ProgramType
from stampman.service import LedgerService


class RecordingSink:
    """EventSink that keeps published events in memory."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


@pytest.fixture
def stamp_program(db):
    """Stamp program: 10 stamps complete a card."""
    return LoyaltyProgram.objects.create(
        code="CAFE-CLUB",
        brand_id="brand_01",
        name="Café Club",
        program_type=ProgramType.STAMP,
        stamp_threshold=10,
    )


@pytest.fixture
def points_program(db):
    """Points program: 0.1 point per currency unit."""
    return LoyaltyProgram.objects.create(
        code="PONTOS",
        brand_id="brand_01",
        name="Pontos Padaria",
        program_type=ProgramType.POINTS,
        points_conversion_rate=Decimal("0.1"),
    )


@pytest.fixture
def tiered_program(db):
    """Points program at 1 point per unit with four tiers."""
    program = LoyaltyProgram.objects.create(
        code="PONTOS-VIP",
        brand_id="brand_01",
        name="Pontos VIP",
        program_type=ProgramType.POINTS,
        points_conversion_rate=Decimal("1"),
        has_tiers=True,
    )
    program.create_tier("Bronze", 0, Decimal("1"), tier_order=1)
    program.create_tier("Prata", 500, Decimal("1.25"), tier_order=2)
    program.create_tier("Ouro", 1000, Decimal("1.5"), tier_order=3)
    program.create_tier("Platina", 2000, Decimal("2"), tier_order=4)
    return program


@pytest.fixture
def coffee_reward(stamp_program):
    return stamp_program.create_reward("Café grátis", 10)


@pytest.fixture
def discount_reward(points_program):
    return points_program.create_reward("Desconto R$10", 500)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def ledger(db, sink):
    """LedgerService with the Django stores and an in-memory sink."""
    return LedgerService(event_sink=sink)


@pytest.fixture
def stamp_card(ledger, stamp_program):
    return ledger.enroll(stamp_program.code, "cus_001")


@pytest.fixture
def points_card(ledger, points_program):
    return ledger.enroll(points_program.code, "cus_001")

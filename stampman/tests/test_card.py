"""
LoyaltyCard aggregate tests.

Commands run on in-memory cards (LoyaltyCard.for_program) so each test
sees exactly what the aggregate does before any store is involved.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from stampman.exceptions import LedgerError
from stampman.models import (
    CardStatus,
    LoyaltyCard,
    Transaction,
    TransactionType,
)

pytestmark = pytest.mark.django_db


@pytest.fixture
def stamps(stamp_program):
    return LoyaltyCard.for_program(stamp_program, "cus_100")


@pytest.fixture
def points(points_program):
    return LoyaltyCard.for_program(points_program, "cus_100")


def snapshot(card):
    return (card.stamps_collected, card.points_balance, card.status, len(card.ledger))


# ═══════════════════════════════════════════════════════════════════
# Stamps
# ═══════════════════════════════════════════════════════════════════


class TestIssueStamps:
    def test_success(self, stamps):
        tx = stamps.issue_stamps(3, store_id="sto_01", staff_id="stf_9", pos_transaction_id="pos-1")

        assert stamps.stamps_collected == 3
        assert stamps.points_balance == 0
        assert tx.transaction_type == TransactionType.STAMP_ISSUANCE
        assert tx.quantity == 3
        assert tx.sequence == 1
        assert tx.staff_id == "stf_9"
        assert tx.pos_transaction_id == "pos-1"
        assert stamps.ledger == [tx]
        assert stamps.pending_transactions == [tx]

    def test_sequence_grows(self, stamps):
        stamps.issue_stamps(1, store_id="sto_01")
        tx = stamps.issue_stamps(1, store_id="sto_01")
        assert tx.sequence == 2

    def test_points_card_rejected(self, points):
        with pytest.raises(LedgerError, match="WRONG_CARD_TYPE") as exc:
            points.issue_stamps(1, store_id="sto_01")
        assert exc.value.message == "Cannot issue stamps to a points-based card"

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_invalid_quantity(self, stamps, quantity):
        before = snapshot(stamps)
        with pytest.raises(LedgerError, match="INVALID_QUANTITY"):
            stamps.issue_stamps(quantity, store_id="sto_01")
        assert snapshot(stamps) == before

    @pytest.mark.parametrize("store_id", ["", "   ", None])
    def test_missing_store(self, stamps, store_id):
        with pytest.raises(LedgerError, match="MISSING_STORE"):
            stamps.issue_stamps(1, store_id=store_id)
        assert stamps.stamps_collected == 0
        assert stamps.ledger == []

    def test_error_order(self, stamps):
        """Status is checked before quantity and store."""
        stamps.suspend()
        with pytest.raises(LedgerError, match="CARD_NOT_ACTIVE"):
            stamps.issue_stamps(0, store_id="")

    def test_error_data(self, stamps):
        with pytest.raises(LedgerError) as exc:
            stamps.issue_stamps(-2, store_id="sto_01")
        assert exc.value.data == {
            "card_id": str(stamps.uuid),
            "operation": "issue_stamps",
            "quantity": -2,
        }


# ═══════════════════════════════════════════════════════════════════
# Points
# ═══════════════════════════════════════════════════════════════════


class TestAddPoints:
    def test_success(self, points):
        tx = points.add_points(Decimal("12"), Decimal("120.50"), store_id="sto_01")

        assert points.points_balance == Decimal("12")
        assert points.stamps_collected == 0
        assert tx.transaction_type == TransactionType.POINTS_ISSUANCE
        assert tx.points_amount == Decimal("12")
        assert tx.transaction_amount == Decimal("120.50")

    def test_card_never_recomputes_points(self, points):
        """The card credits what it is given, regardless of the program rate."""
        points.add_points(7, 1000, store_id="sto_01")
        assert points.points_balance == Decimal("7")

    def test_stamp_card_rejected(self, stamps):
        with pytest.raises(LedgerError, match="WRONG_CARD_TYPE"):
            stamps.add_points(10, 100, store_id="sto_01")

    @pytest.mark.parametrize("amount", [0, -5, None, Decimal("0.004")])
    def test_invalid_points_amount(self, points, amount):
        with pytest.raises(LedgerError, match="INVALID_POINTS_AMOUNT"):
            points.add_points(amount, 100, store_id="sto_01")
        assert points.points_balance == 0

    def test_sub_cent_precision_truncated(self, points):
        tx = points.add_points(Decimal("1.239"), Decimal("10.999"), store_id="sto_01")

        assert tx.points_amount == Decimal("1.23")
        assert tx.transaction_amount == Decimal("10.99")
        assert points.points_balance == Decimal("1.23")
        assert points.replay_balance() == (0, Decimal("1.23"))

    def test_negative_transaction_amount(self, points):
        with pytest.raises(LedgerError, match="INVALID_TRANSACTION_AMOUNT"):
            points.add_points(10, Decimal("-0.01"), store_id="sto_01")

    def test_zero_transaction_amount_allowed(self, points):
        points.add_points(10, 0, store_id="sto_01")
        assert points.points_balance == 10

    def test_missing_store(self, points):
        with pytest.raises(LedgerError, match="MISSING_STORE"):
            points.add_points(10, 100, store_id="")

    def test_expired_card(self, points):
        points.expire()
        with pytest.raises(LedgerError, match="CARD_NOT_ACTIVE"):
            points.add_points(10, 100, store_id="sto_01")


# ═══════════════════════════════════════════════════════════════════
# Redemption
# ═══════════════════════════════════════════════════════════════════


class TestRedeemReward:
    def test_stamp_redemption_to_zero(self, stamps, coffee_reward):
        stamps.issue_stamps(10, store_id="sto_01")
        tx = stamps.redeem_reward(coffee_reward, store_id="sto_01")

        assert stamps.stamps_collected == 0
        assert tx.transaction_type == TransactionType.REWARD_REDEMPTION
        assert tx.reward == coffee_reward
        assert tx.quantity == 10
        assert tx.points_amount is None

    def test_points_redemption_records_deducted_value(self, points, discount_reward):
        points.add_points(600, 6000, store_id="sto_01")
        tx = points.redeem_reward(discount_reward, store_id="sto_02")

        assert points.points_balance == Decimal("100")
        assert tx.points_amount == Decimal("500")
        assert tx.store_id == "sto_02"

    def test_insufficient_balance(self, stamps, coffee_reward):
        stamps.issue_stamps(9, store_id="sto_01")
        with pytest.raises(LedgerError, match="INSUFFICIENT_BALANCE") as exc:
            stamps.redeem_reward(coffee_reward, store_id="sto_01")

        assert exc.value.data["available"] == 9
        assert exc.value.data["required"] == 10
        assert stamps.stamps_collected == 9
        assert len(stamps.ledger) == 1

    def test_reward_from_other_program(self, stamps, discount_reward):
        stamps.issue_stamps(10, store_id="sto_01")
        with pytest.raises(LedgerError, match="REWARD_PROGRAM_MISMATCH"):
            stamps.redeem_reward(discount_reward, store_id="sto_01")

    def test_inactive_reward(self, stamps, coffee_reward):
        stamps.issue_stamps(10, store_id="sto_01")
        coffee_reward.is_active = False
        with pytest.raises(LedgerError, match="REWARD_INACTIVE"):
            stamps.redeem_reward(coffee_reward, store_id="sto_01")

    def test_reward_outside_window(self, stamps, coffee_reward):
        stamps.issue_stamps(10, store_id="sto_01")
        coffee_reward.valid_to = timezone.now() - timedelta(days=1)
        with pytest.raises(LedgerError, match="REWARD_NOT_VALID_AT_TIME"):
            stamps.redeem_reward(coffee_reward, store_id="sto_01")

        coffee_reward.valid_to = None
        coffee_reward.valid_from = timezone.now() + timedelta(days=1)
        with pytest.raises(LedgerError, match="REWARD_NOT_VALID_AT_TIME"):
            stamps.redeem_reward(coffee_reward, store_id="sto_01")

    def test_suspended_card(self, stamps, coffee_reward):
        stamps.issue_stamps(10, store_id="sto_01")
        stamps.suspend()
        with pytest.raises(LedgerError, match="CARD_NOT_ACTIVE"):
            stamps.redeem_reward(coffee_reward, store_id="sto_01")
        assert stamps.stamps_collected == 10

    def test_missing_store_checked_last(self, stamps, coffee_reward):
        with pytest.raises(LedgerError, match="INSUFFICIENT_BALANCE"):
            stamps.redeem_reward(coffee_reward, store_id="")

        stamps.issue_stamps(10, store_id="sto_01")
        with pytest.raises(LedgerError, match="MISSING_STORE"):
            stamps.redeem_reward(coffee_reward, store_id="")


# ═══════════════════════════════════════════════════════════════════
# Status machine
# ═══════════════════════════════════════════════════════════════════


class TestStatus:
    def test_suspend_and_reactivate(self, stamps):
        stamps.suspend()
        assert stamps.status == CardStatus.SUSPENDED
        assert not stamps.is_active

        stamps.suspend()
        assert stamps.status == CardStatus.SUSPENDED

        stamps.reactivate()
        assert stamps.is_active

    def test_reactivate_requires_suspended(self, stamps):
        with pytest.raises(LedgerError, match="INVALID_STATUS_TRANSITION"):
            stamps.reactivate()

    def test_expired_is_terminal(self, stamps):
        stamps.expire()
        stamps.expire()
        assert stamps.status == CardStatus.EXPIRED

        with pytest.raises(LedgerError, match="INVALID_STATUS_TRANSITION"):
            stamps.reactivate()
        with pytest.raises(LedgerError, match="INVALID_STATUS_TRANSITION"):
            stamps.suspend()

    def test_suspended_can_expire(self, stamps):
        stamps.suspend()
        stamps.expire()
        assert stamps.status == CardStatus.EXPIRED

    def test_status_changes_leave_balances(self, stamps):
        stamps.issue_stamps(4, store_id="sto_01")
        stamps.suspend()
        stamps.reactivate()
        assert stamps.stamps_collected == 4
        assert len(stamps.ledger) == 1

    def test_set_expiration_date(self, stamps):
        future = timezone.now() + timedelta(days=30)
        stamps.set_expiration_date(future)
        assert stamps.expires_at == future

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(days=-1)])
    def test_expiration_date_must_be_future(self, stamps, delta):
        with pytest.raises(LedgerError, match="INVALID_EXPIRATION_DATE"):
            stamps.set_expiration_date(timezone.now() + delta)
        assert stamps.expires_at is None

    def test_is_due_for_expiry(self, stamps):
        now = timezone.now()
        assert not stamps.is_due_for_expiry(now)

        stamps.expires_at = now - timedelta(minutes=1)
        assert stamps.is_due_for_expiry(now)

        stamps.expire()
        assert not stamps.is_due_for_expiry(now)

    def test_is_due_for_expiry_naive_now(self, stamps):
        stamps.expires_at = timezone.now() + timedelta(hours=1)
        naive = (timezone.localtime() + timedelta(hours=2)).replace(tzinfo=None)
        assert stamps.is_due_for_expiry(naive)


# ═══════════════════════════════════════════════════════════════════
# Ledger queries
# ═══════════════════════════════════════════════════════════════════


class TestLedgerQueries:
    def test_replay_matches_balances(self, stamps, coffee_reward):
        stamps.issue_stamps(6, store_id="sto_01")
        stamps.issue_stamps(7, store_id="sto_01")
        stamps.redeem_reward(coffee_reward, store_id="sto_01")

        assert stamps.replay_balance() == (3, Decimal("0"))
        assert stamps.stamps_collected == 3

    def test_replay_points(self, points, discount_reward):
        points.add_points(Decimal("450.5"), 4505, store_id="sto_01")
        points.add_points(100, 1000, store_id="sto_01")
        points.redeem_reward(discount_reward, store_id="sto_01")

        assert points.replay_balance() == (0, Decimal("50.5"))
        assert points.points_balance == Decimal("50.5")

    def test_replay_voids(self, stamps):
        now = timezone.now()
        stamps.restore_history(
            [
                Transaction(card=stamps, sequence=2, transaction_type=TransactionType.STAMP_VOID, quantity=2, store_id="s", timestamp=now),
                Transaction(card=stamps, sequence=1, transaction_type=TransactionType.STAMP_ISSUANCE, quantity=5, store_id="s", timestamp=now),
            ]
        )
        assert [tx.sequence for tx in stamps.ledger] == [1, 2]
        assert stamps.replay_balance() == (3, Decimal("0"))
        assert stamps.pending_transactions == []

    def test_stamps_issued_today(self, stamps):
        now = timezone.now()
        stamps.restore_history(
            [
                Transaction(
                    card=stamps,
                    sequence=1,
                    transaction_type=TransactionType.STAMP_ISSUANCE,
                    quantity=4,
                    store_id="sto_01",
                    timestamp=now - timedelta(days=2),
                ),
            ]
        )
        stamps.issue_stamps(2, store_id="sto_01")
        stamps.issue_stamps(1, store_id="sto_01")

        assert stamps.get_stamps_issued_today() == 3

    def test_stamps_issued_today_points_card(self, points):
        points.add_points(10, 100, store_id="sto_01")
        assert points.get_stamps_issued_today() == 0

    def test_balance_in_card_unit(self, stamps, points):
        stamps.issue_stamps(2, store_id="sto_01")
        points.add_points(Decimal("2.5"), 25, store_id="sto_01")

        assert stamps.balance == 2
        assert points.balance == Decimal("2.5")

    def test_qr_code_integrity(self, stamps):
        assert stamps.has_valid_qr_code()
        stamps.qr_code = "loy_tampered"
        assert not stamps.has_valid_qr_code()

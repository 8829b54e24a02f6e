"""Gates L1-L4: ledger integrity checks."""

from decimal import Decimal

import pytest

from stampman.gates import GateError, Gates
from stampman.models import LoyaltyCard

pytestmark = pytest.mark.django_db


class TestL1BalanceReplay:
    """L1: stored balances equal the ledger replay."""

    def test_consistent_card_passes(self, ledger, stamp_card, coffee_reward):
        ledger.issue_stamps(stamp_card.uuid, 12, store_id="sto_01")
        ledger.redeem_reward(stamp_card.uuid, coffee_reward.uuid, store_id="sto_01")

        result = Gates.balance_replay(ledger.get_card(stamp_card.uuid))
        assert result.passed
        assert result.gate_name == "L1_BalanceReplay"

    def test_fresh_card_passes(self, stamp_card):
        assert Gates.check_balance_replay(stamp_card)

    def test_drift_detected(self, ledger, points_card):
        ledger.add_points(points_card.uuid, 1000, store_id="sto_01")
        LoyaltyCard.objects.filter(pk=points_card.pk).update(points_balance=Decimal("999"))

        card = ledger.get_card(points_card.uuid)
        with pytest.raises(GateError, match="L1_BalanceReplay") as exc:
            Gates.balance_replay(card)
        assert exc.value.details["replayed_points"] == "100.00"
        assert not Gates.check_balance_replay(card)


class TestL2QrCodeIntegrity:
    def test_derived_code_passes(self, stamp_card):
        assert Gates.qr_code_integrity(stamp_card).passed

    def test_tampered_code_fails(self, ledger, stamp_card):
        LoyaltyCard.objects.filter(pk=stamp_card.pk).update(qr_code="loy_forged")
        card = ledger.get_card(stamp_card.uuid)

        with pytest.raises(GateError, match="L2_QrCodeIntegrity"):
            Gates.qr_code_integrity(card)
        assert not Gates.check_qr_code_integrity(card)

    def test_prefix_change_detected(self, stamp_card, settings):
        settings.STAMPMAN = {"QR_CODE_PREFIX": "new"}
        assert not Gates.check_qr_code_integrity(stamp_card)


class TestL3TierOrdering:
    def test_ordered_tiers_pass(self, tiered_program):
        assert Gates.tier_ordering(tiered_program).passed

    def test_no_tiers_pass(self, stamp_program):
        assert Gates.check_tier_ordering(stamp_program)

    def test_duplicate_threshold_fails(self, tiered_program):
        tiered_program.create_tier("Prata 2", 500, tier_order=10)
        with pytest.raises(GateError, match="L3_TierOrdering") as exc:
            Gates.tier_ordering(tiered_program)
        assert exc.value.details["tier"] == "Prata 2"

    def test_inverted_order_fails(self, points_program):
        points_program.create_tier("Alto", 1000, tier_order=1)
        points_program.create_tier("Baixo", 100, tier_order=2)
        assert not Gates.check_tier_ordering(points_program)


class TestL4CardProgramAgreement:
    def test_matching_pair_passes(self, stamp_card, stamp_program):
        assert Gates.card_program_agreement(stamp_card, stamp_program).passed

    def test_other_program_fails(self, stamp_card, points_program):
        with pytest.raises(GateError, match="different program"):
            Gates.card_program_agreement(stamp_card, points_program)

    def test_type_divergence_fails(self, stamp_card, stamp_program):
        stamp_card.card_type = "points"
        with pytest.raises(GateError, match="Card type differs"):
            Gates.card_program_agreement(stamp_card, stamp_program)
        assert not Gates.check_card_program_agreement(stamp_card, stamp_program)

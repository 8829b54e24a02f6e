"""
Stampman Gates - Ledger integrity rules.

L1: BalanceReplay - Replaying the ledger from zero reproduces the card balances
L2: QrCodeIntegrity - The card QR code is the one derived from its identity
L3: TierOrdering - Tiers ordered by tier_order have strictly increasing thresholds
L4: CardProgramAgreement - The card belongs to the program and shares its type
"""

from dataclasses import dataclass

from stampman.models.program import to_decimal


class GateError(Exception):
    """Gate validation error."""

    def __init__(self, gate_name: str, message: str, details: dict | None = None):
        self.gate_name = gate_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{gate_name}] {message}")


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Stampman integrity gates."""

    # =========================================================================
    # L1: Balance Replay
    # =========================================================================

    @classmethod
    def balance_replay(cls, card) -> GateResult:
        """
        L1: Stored balances equal the replay of the ledger, and neither is negative.

        Args:
            card: LoyaltyCard (its ledger is loaded lazily if needed)

        Raises:
            GateError: If balances drifted from the transaction history
        """
        stamps, points = card.replay_balance()
        stored_points = to_decimal(card.points_balance)

        if stamps < 0 or points < 0:
            raise GateError(
                "L1_BalanceReplay",
                "Ledger replays to a negative balance.",
                {"stamps": stamps, "points": str(points)},
            )

        if stamps != card.stamps_collected or points != stored_points:
            raise GateError(
                "L1_BalanceReplay",
                "Card balances differ from the ledger replay.",
                {
                    "card_id": str(card.uuid),
                    "stored_stamps": card.stamps_collected,
                    "replayed_stamps": stamps,
                    "stored_points": str(stored_points),
                    "replayed_points": str(points),
                },
            )

        return GateResult(True, "L1_BalanceReplay")

    @classmethod
    def check_balance_replay(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.balance_replay(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # L2: QR Code Integrity
    # =========================================================================

    @classmethod
    def qr_code_integrity(cls, card) -> GateResult:
        """
        L2: qr_code == qr_code_for(card.uuid).

        Raises:
            GateError: If the stored QR code was altered or derived with another prefix
        """
        from stampman.models import qr_code_for

        expected = qr_code_for(card.uuid)
        if card.qr_code != expected:
            raise GateError(
                "L2_QrCodeIntegrity",
                "QR code does not match card identity.",
                {"card_id": str(card.uuid), "qr_code": card.qr_code, "expected": expected},
            )

        return GateResult(True, "L2_QrCodeIntegrity")

    @classmethod
    def check_qr_code_integrity(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.qr_code_integrity(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # L3: Tier Ordering
    # =========================================================================

    @classmethod
    def tier_ordering(cls, program) -> GateResult:
        """
        L3: Ordered by tier_order, point thresholds strictly increase.

        Tiers may be inserted in any order and with duplicate thresholds;
        this gate is how an operator finds out.

        Raises:
            GateError: On the first pair of tiers out of order
        """
        tiers = sorted(program.tiers.all(), key=lambda t: t.tier_order)
        previous = None
        for tier in tiers:
            if previous is not None and tier.point_threshold <= previous.point_threshold:
                raise GateError(
                    "L3_TierOrdering",
                    f"Tier '{tier.name}' threshold does not exceed '{previous.name}'.",
                    {
                        "tier": tier.name,
                        "threshold": tier.point_threshold,
                        "previous_tier": previous.name,
                        "previous_threshold": previous.point_threshold,
                    },
                )
            previous = tier

        return GateResult(True, "L3_TierOrdering")

    @classmethod
    def check_tier_ordering(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.tier_ordering(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # L4: Card / Program Agreement
    # =========================================================================

    @classmethod
    def card_program_agreement(cls, card, program) -> GateResult:
        """
        L4: card.program is `program` and card_type == program_type.

        Raises:
            GateError: If the card was loaded against the wrong program or its
                type diverged from the program type
        """
        if card.program_id != program.pk:
            raise GateError(
                "L4_CardProgramAgreement",
                "Card belongs to a different program.",
                {"card_program_id": card.program_id, "program_id": program.pk},
            )
        if card.card_type != program.program_type:
            raise GateError(
                "L4_CardProgramAgreement",
                "Card type differs from program type.",
                {"card_type": card.card_type, "program_type": program.program_type},
            )

        return GateResult(True, "L4_CardProgramAgreement")

    @classmethod
    def check_card_program_agreement(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.card_program_agreement(*args, **kwargs)
            return True
        except GateError:
            return False

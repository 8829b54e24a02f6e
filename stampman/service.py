"""
Stampman public API.

CORE (commands):
    LedgerService().enroll(program_id, customer_id)
    LedgerService().issue_stamps(card_id, quantity, store_id)
    LedgerService().add_points(card_id, transaction_amount, store_id)
    LedgerService().redeem_reward(card_id, reward_id, store_id)

LIFECYCLE:
    suspend_card, reactivate_card, expire_card, set_expiration_date,
    expire_due_cards

READS:
    get_card, get_card_by_qr_code, get_cards_for_customer,
    get_transactions, get_tier, get_stamps_issued_today
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from stampman.conf import stampman_settings
from stampman.exceptions import LedgerError, VersionConflict
from stampman.gates import Gates
from stampman.models import LoyaltyCard, LoyaltyProgram, LoyaltyTier, ProgramType, Transaction
from stampman.models.program import to_decimal
from stampman.protocols import (
    CardStore,
    EventSink,
    LedgerEvent,
    PointsAdded,
    ProgramStore,
    RewardRedeemed,
    StampsIssued,
)

logger = logging.getLogger(__name__)

# mutate(card, program) -> (result, event or None)
Mutation = Callable[[LoyaltyCard, LoyaltyProgram], tuple[Any, LedgerEvent | None]]


class LedgerService:
    """
    Orchestrates ledger commands: load, mutate in memory, save, publish.

    Stores and sink default to the dotted paths in settings.STAMPMAN and can
    be injected for tests or alternative persistence:

        ledger = LedgerService(event_sink=LoggingEventSink())
        tx = ledger.issue_stamps(card_id, 1, store_id="sto_01")

    Every command is retried from a fresh load when the card store reports
    a VersionConflict, up to `max_retries` times.
    """

    def __init__(
        self,
        card_store: CardStore | None = None,
        program_store: ProgramStore | None = None,
        event_sink: EventSink | None = None,
        max_retries: int | None = None,
    ):
        self.card_store = card_store or import_string(stampman_settings.CARD_STORE)()
        self.program_store = program_store or import_string(stampman_settings.PROGRAM_STORE)()
        self.event_sink = event_sink or import_string(stampman_settings.EVENT_SINK)()
        self.max_retries = (
            stampman_settings.MAX_VERSION_RETRIES if max_retries is None else max_retries
        )

    # ======================================================================
    # Enrollment
    # ======================================================================

    def enroll(self, program_id, customer_id: str) -> LoyaltyCard:
        """
        Issue a new card for a customer in a program.

        Raises:
            LedgerError: PROGRAM_NOT_FOUND, PROGRAM_INACTIVE, ALREADY_ENROLLED
        """
        program = self.program_store.load(program_id)
        if not program.is_active:
            raise LedgerError(
                "PROGRAM_INACTIVE",
                program_id=str(program.uuid),
                operation="enroll",
            )
        if any(c.program_id == program.pk for c in self.card_store.find_for_customer(customer_id)):
            raise LedgerError(
                "ALREADY_ENROLLED",
                program_id=str(program.uuid),
                customer_id=customer_id,
            )

        expires_at = None
        if program.card_validity_days:
            expires_at = timezone.now() + timedelta(days=program.card_validity_days)

        card = LoyaltyCard.for_program(program, customer_id, expires_at=expires_at)
        try:
            self.card_store.save(card, [])
        except IntegrityError:
            raise LedgerError(
                "ALREADY_ENROLLED",
                program_id=str(program.uuid),
                customer_id=customer_id,
            )

        logger.info("Enrolled customer %s in program %s (card %s)", customer_id, program.code, card.uuid)
        return card

    # ======================================================================
    # Balance commands
    # ======================================================================

    def issue_stamps(
        self,
        card_id,
        quantity: int,
        store_id: str,
        staff_id: str | None = None,
        pos_transaction_id: str | None = None,
    ) -> Transaction:
        """
        Issue stamps to a stamp card.

        Raises:
            LedgerError: WRONG_CARD_TYPE, CARD_NOT_ACTIVE, PROGRAM_INACTIVE,
                DAILY_STAMP_LIMIT_EXCEEDED, or any other card command error.
                Checked in that order.
        """

        def mutate(card, program):
            card.require_accepts(ProgramType.STAMP, "issue_stamps")
            self._require_program_active(card, program, "issue_stamps")
            limit = program.daily_stamp_limit
            if limit is not None and isinstance(quantity, int) and quantity > 0:
                issued_today = card.get_stamps_issued_today()
                if issued_today + quantity > limit:
                    raise LedgerError(
                        "DAILY_STAMP_LIMIT_EXCEEDED",
                        card_id=str(card.uuid),
                        operation="issue_stamps",
                        limit=limit,
                        issued_today=issued_today,
                        quantity=quantity,
                    )

            tx = card.issue_stamps(quantity, store_id, staff_id, pos_transaction_id)
            event = StampsIssued(
                card_id=str(card.uuid),
                customer_id=card.customer_id,
                stamps_issued=quantity,
                total_stamps=card.stamps_collected,
                store_id=store_id,
            )
            return tx, event

        tx, _card = self._execute(card_id, "issue_stamps", mutate)
        return tx

    def add_points(
        self,
        card_id,
        transaction_amount,
        store_id: str,
        staff_id: str | None = None,
        pos_transaction_id: str | None = None,
        points=None,
    ) -> Transaction:
        """
        Credit points for a purchase.

        Points are priced by the program at the card's current tier unless
        `points` is given explicitly (manual adjustments, imports).

        Raises:
            LedgerError: WRONG_CARD_TYPE, CARD_NOT_ACTIVE, PROGRAM_INACTIVE,
                INVALID_TRANSACTION_AMOUNT (negative or below the program
                minimum), or any other card command error.
        """

        def mutate(card, program):
            op = "add_points"
            card.require_accepts(ProgramType.POINTS, op)
            self._require_program_active(card, program, op)
            earned = points
            if earned is None and transaction_amount is not None:
                amount = to_decimal(transaction_amount)
                if amount < 0 or not program.is_valid_for_points_issuance(amount):
                    raise LedgerError(
                        "INVALID_TRANSACTION_AMOUNT",
                        card_id=str(card.uuid),
                        operation=op,
                        transaction_amount=str(amount),
                        minimum=program.minimum_transaction_amount,
                    )
                tier = program.get_tier_for_points(card.points_balance)
                earned = program.calculate_points(amount, tier)

            tx = card.add_points(earned, transaction_amount, store_id, staff_id, pos_transaction_id)
            event = PointsAdded(
                card_id=str(card.uuid),
                customer_id=card.customer_id,
                points_added=tx.points_amount,
                points_balance=card.points_balance,
                transaction_amount=tx.transaction_amount,
                store_id=store_id,
            )
            return tx, event

        tx, _card = self._execute(card_id, "add_points", mutate)
        return tx

    def redeem_reward(
        self,
        card_id,
        reward_id,
        store_id: str,
        staff_id: str | None = None,
    ) -> Transaction:
        """
        Redeem a reward against the card balance.

        Raises:
            LedgerError: REWARD_NOT_FOUND, INSUFFICIENT_BALANCE, or any other
                redemption error raised by the card.
        """

        def mutate(card, program):
            reward = self.program_store.load_reward(reward_id)
            tx = card.redeem_reward(reward, store_id, staff_id)
            event = RewardRedeemed(
                card_id=str(card.uuid),
                customer_id=card.customer_id,
                reward_id=str(reward.uuid),
                reward_title=reward.title,
                required_value=reward.required_value,
                store_id=store_id,
            )
            return tx, event

        tx, _card = self._execute(card_id, "redeem_reward", mutate)
        return tx

    # ======================================================================
    # Lifecycle
    # ======================================================================

    def suspend_card(self, card_id) -> LoyaltyCard:
        return self._transition(card_id, "suspend", LoyaltyCard.suspend)

    def reactivate_card(self, card_id) -> LoyaltyCard:
        return self._transition(card_id, "reactivate", LoyaltyCard.reactivate)

    def expire_card(self, card_id) -> LoyaltyCard:
        return self._transition(card_id, "expire", LoyaltyCard.expire)

    def set_expiration_date(self, card_id, expiration_date: datetime) -> LoyaltyCard:
        return self._transition(
            card_id,
            "set_expiration_date",
            lambda card: card.set_expiration_date(expiration_date),
        )

    def expire_due_cards(self, now: datetime | None = None) -> list[str]:
        """
        Expire every non-expired card whose expires_at has passed.

        Each card is re-checked after a fresh load, so a card whose expiration
        was extended in the meantime is left alone. A naive `now` is read in
        the current time zone.

        Returns:
            Ids of the cards actually expired.
        """
        now = now or timezone.now()
        if timezone.is_naive(now):
            now = timezone.make_aware(now)
        expired = []
        for card_id in self.card_store.find_due_for_expiry(now):

            def mutate(card, program):
                if not card.is_due_for_expiry(now):
                    return False, None
                card.expire()
                return True, None

            changed, _card = self._execute(card_id, "expire", mutate, skip_unchanged=True)
            if changed:
                expired.append(card_id)

        logger.info("Expiration sweep at %s expired %d card(s)", now.isoformat(), len(expired))
        return expired

    # ======================================================================
    # Reads
    # ======================================================================

    def get_card(self, card_id) -> LoyaltyCard:
        return self.card_store.load(card_id)

    def get_card_by_qr_code(self, qr_code: str) -> LoyaltyCard:
        """
        Raises:
            LedgerError: CARD_NOT_FOUND
        """
        card = self.card_store.find_by_qr_code(qr_code)
        if card is None:
            raise LedgerError("CARD_NOT_FOUND", qr_code=qr_code)
        return card

    def get_cards_for_customer(self, customer_id: str) -> list[LoyaltyCard]:
        return self.card_store.find_for_customer(customer_id)

    def get_transactions(self, card_id) -> list[Transaction]:
        """Card history in ledger order."""
        return list(self.card_store.load(card_id).ledger)

    def get_tier(self, card_id) -> LoyaltyTier | None:
        """Current tier of a points card. Always None for stamp cards."""
        card = self.card_store.load(card_id)
        if card.card_type != ProgramType.POINTS:
            return None
        program = self.program_store.load(card.program_id)
        return program.get_tier_for_points(card.points_balance)

    def get_stamps_issued_today(self, card_id) -> int:
        return self.card_store.load(card_id).get_stamps_issued_today()

    # ======================================================================
    # Internals
    # ======================================================================

    def _execute(
        self,
        card_id,
        operation: str,
        mutate: Mutation,
        skip_unchanged: bool = False,
    ):
        """Run one command with optimistic retries. Returns (result, card)."""
        attempt = 0
        while True:
            card = self.card_store.load(card_id)
            program = self._load_program_for(card)
            result, event = mutate(card, program)

            if skip_unchanged and not result:
                return result, card

            try:
                self.card_store.save(card, list(card.pending_transactions))
            except VersionConflict:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(
                        "Giving up %s on card %s after %d version conflicts",
                        operation,
                        card_id,
                        attempt,
                    )
                    raise
                logger.warning(
                    "Version conflict on %s for card %s, retrying (%d/%d)",
                    operation,
                    card_id,
                    attempt,
                    self.max_retries,
                )
                continue
            break

        logger.info("Ledger %s committed on card %s", operation, card.uuid)
        if event is not None:
            self._publish(event)
        return result, card

    def _transition(self, card_id, operation: str, change: Callable[[LoyaltyCard], None]) -> LoyaltyCard:
        def mutate(card, program):
            change(card)
            return None, None

        _result, card = self._execute(card_id, operation, mutate)
        return card

    def _load_program_for(self, card: LoyaltyCard) -> LoyaltyProgram:
        program = self.program_store.load(card.program_id)
        if not Gates.check_card_program_agreement(card, program):
            raise LedgerError(
                "CARD_PROGRAM_TYPE_MISMATCH",
                card_id=str(card.uuid),
                card_type=card.card_type,
                program_type=program.program_type,
            )
        return program

    @staticmethod
    def _require_program_active(card: LoyaltyCard, program: LoyaltyProgram, operation: str) -> None:
        if not program.is_active:
            raise LedgerError(
                "PROGRAM_INACTIVE",
                card_id=str(card.uuid),
                operation=operation,
                program_id=str(program.uuid),
            )

    def _publish(self, event: LedgerEvent) -> None:
        """Deliver after the surrounding transaction commits. Never raises."""

        def deliver():
            try:
                self.event_sink.publish(event)
            except Exception:
                logger.exception("Event sink failed for %s (%s)", event.name, event.event_id)

        transaction.on_commit(deliver)

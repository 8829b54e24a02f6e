"""LoyaltyCard model — the ledger aggregate root.

Balance mutation rules:
    Commands (issue_stamps, add_points, redeem_reward) validate everything
    first and only then mutate. A failed command leaves the instance
    untouched. A successful one changes exactly one balance, appends exactly
    one Transaction to the in-memory ledger and returns it.

    Nothing here touches the database except lazily reading history. The
    card store persists the card and its pending transactions together
    (see stampman.adapters.django_store).

Status machine:
    active    -> suspended | expired
    suspended -> active | expired
    expired   -> (terminal)
"""

import base64
import uuid as uuid_lib
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stampman.exceptions import LedgerError
from stampman.models.program import ProgramType, to_cents, to_decimal
from stampman.models.transaction import Transaction, TransactionType


def qr_code_for(card_uuid, prefix: str | None = None) -> str:
    """Derive the card QR payload from its identity (pure function)."""
    if prefix is None:
        from stampman.conf import stampman_settings

        prefix = stampman_settings.QR_CODE_PREFIX
    raw = uuid_lib.UUID(str(card_uuid)).bytes
    payload = base64.b32encode(raw).decode("ascii").rstrip("=").lower()
    return f"{prefix}_{payload}"


class CardStatus(models.TextChoices):
    ACTIVE = "active", _("Ativo")
    SUSPENDED = "suspended", _("Suspenso")
    EXPIRED = "expired", _("Expirado")


class LoyaltyCard(models.Model):
    """
    A customer's membership in one loyalty program.

    `card_type` is copied from the program at enrollment. Only the balance
    matching the type moves; the other stays at zero.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    program = models.ForeignKey(
        "stampman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="cards",
        verbose_name=_("programa"),
    )
    customer_id = models.CharField(_("cliente"), max_length=64, db_index=True)
    card_type = models.CharField(
        _("tipo"),
        max_length=10,
        choices=ProgramType.choices,
    )

    stamps_collected = models.PositiveIntegerField(_("carimbos"), default=0)
    points_balance = models.DecimalField(
        _("saldo de pontos"),
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )

    status = models.CharField(
        _("status"),
        max_length=10,
        choices=CardStatus.choices,
        default=CardStatus.ACTIVE,
        db_index=True,
    )
    qr_code = models.CharField(_("QR code"), max_length=64, unique=True, editable=False)

    # Optimistic concurrency token, bumped by the card store on every save
    version = models.PositiveIntegerField(_("versão"), default=0)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), default=timezone.now)
    expires_at = models.DateTimeField(_("expira em"), null=True, blank=True)

    class Meta:
        verbose_name = _("cartão fidelidade")
        verbose_name_plural = _("cartões fidelidade")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["program", "customer_id"],
                name="stampman_card_program_customer_uniq",
            ),
            models.CheckConstraint(
                condition=Q(points_balance__gte=0),
                name="stampman_card_points_non_negative",
            ),
        ]

    def __str__(self):
        if self.card_type == ProgramType.STAMP:
            return f"{self.customer_id}: {self.stamps_collected} carimbos | {self.status}"
        return f"{self.customer_id}: {self.points_balance}pts | {self.status}"

    @classmethod
    def for_program(cls, program, customer_id: str, expires_at: datetime | None = None):
        """New (unsaved) card for a customer, typed after the program."""
        card = cls(
            program=program,
            customer_id=customer_id,
            card_type=program.program_type,
            expires_at=expires_at,
        )
        card.qr_code = qr_code_for(card.uuid)
        return card

    def save(self, *args, **kwargs):
        if not self.qr_code:
            self.qr_code = qr_code_for(self.uuid)
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Ledger (in-memory view of the owned transactions)
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> list[Transaction]:
        """Transactions in sequence order, committed history plus pending."""
        if getattr(self, "_ledger", None) is None:
            if self._state.adding:
                self._ledger = []
            else:
                self._ledger = list(self.transactions.order_by("sequence"))
        return self._ledger

    @property
    def pending_transactions(self) -> list[Transaction]:
        """Transactions appended since load, not yet persisted."""
        if getattr(self, "_pending", None) is None:
            self._pending = []
        return self._pending

    def restore_history(self, transactions) -> None:
        """
        Rehydrate committed history. Used only by the card store.

        Runs no business validation: history already happened.
        """
        self._ledger = sorted(transactions, key=lambda tx: tx.sequence)
        self._pending = []

    def mark_committed(self) -> None:
        self._pending = []

    def _append(self, tx: Transaction) -> Transaction:
        last = self.ledger[-1].sequence if self.ledger else 0
        tx.sequence = last + 1
        self.ledger.append(tx)
        self.pending_transactions.append(tx)
        self.updated_at = tx.timestamp
        return tx

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _fail(self, code: str, operation: str, message: str | None = None, **data):
        raise LedgerError(
            code,
            message=message,
            card_id=str(self.uuid),
            operation=operation,
            **data,
        )

    _WRONG_TYPE_MESSAGES = {
        ProgramType.STAMP: "Cannot issue stamps to a points-based card",
        ProgramType.POINTS: "Cannot add points to a stamp-based card",
    }

    def require_accepts(self, card_type: str, operation: str) -> None:
        """
        Type and status guards of a balance command, in command order.

        Callers that add their own checks run this first so that
        WRONG_CARD_TYPE and CARD_NOT_ACTIVE always win.
        """
        if self.card_type != card_type:
            self._fail(
                "WRONG_CARD_TYPE",
                operation,
                self._WRONG_TYPE_MESSAGES[card_type],
                card_type=self.card_type,
            )
        self._require_active(operation)

    def _require_active(self, operation: str) -> None:
        if self.status != CardStatus.ACTIVE:
            self._fail("CARD_NOT_ACTIVE", operation, status=self.status)

    def _require_store(self, store_id, operation: str) -> None:
        if not store_id or not str(store_id).strip():
            self._fail("MISSING_STORE", operation, store_id=store_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def issue_stamps(
        self,
        quantity: int,
        store_id: str,
        staff_id: str | None = None,
        pos_transaction_id: str | None = None,
    ) -> Transaction:
        op = "issue_stamps"
        self.require_accepts(ProgramType.STAMP, op)
        if quantity is None or quantity <= 0:
            self._fail("INVALID_QUANTITY", op, quantity=quantity)
        self._require_store(store_id, op)

        tx = Transaction(
            card=self,
            transaction_type=TransactionType.STAMP_ISSUANCE,
            quantity=quantity,
            store_id=store_id,
            staff_id=staff_id,
            pos_transaction_id=pos_transaction_id or "",
        )
        self.stamps_collected += quantity
        return self._append(tx)

    def add_points(
        self,
        points_amount,
        transaction_amount,
        store_id: str,
        staff_id: str | None = None,
        pos_transaction_id: str | None = None,
    ) -> Transaction:
        """
        Credit points already computed by the caller (see LoyaltyProgram.calculate_points).

        Both amounts are truncated to cents, so the in-memory ledger matches
        what the database stores. Points that truncate to zero are rejected.
        """
        op = "add_points"
        self.require_accepts(ProgramType.POINTS, op)
        if points_amount is None or to_cents(points_amount) <= 0:
            self._fail("INVALID_POINTS_AMOUNT", op, points_amount=str(points_amount))
        if transaction_amount is None or to_decimal(transaction_amount) < 0:
            self._fail(
                "INVALID_TRANSACTION_AMOUNT", op, transaction_amount=str(transaction_amount)
            )
        self._require_store(store_id, op)

        points_amount = to_cents(points_amount)
        tx = Transaction(
            card=self,
            transaction_type=TransactionType.POINTS_ISSUANCE,
            points_amount=points_amount,
            transaction_amount=to_cents(transaction_amount),
            store_id=store_id,
            staff_id=staff_id,
            pos_transaction_id=pos_transaction_id or "",
        )
        self.points_balance = to_decimal(self.points_balance) + points_amount
        return self._append(tx)

    def redeem_reward(
        self,
        reward,
        store_id: str,
        staff_id: str | None = None,
    ) -> Transaction:
        op = "redeem_reward"
        now = timezone.now()
        self._require_active(op)
        if reward.program_id != self.program_id:
            self._fail(
                "REWARD_PROGRAM_MISMATCH",
                op,
                reward_id=str(reward.uuid),
                reward_program_id=reward.program_id,
            )
        if not reward.is_active:
            self._fail("REWARD_INACTIVE", op, reward_id=str(reward.uuid))
        if not reward.is_within_window(now):
            self._fail(
                "REWARD_NOT_VALID_AT_TIME",
                op,
                reward_id=str(reward.uuid),
                valid_from=reward.valid_from,
                valid_to=reward.valid_to,
            )
        available = self.balance
        if available < reward.required_value:
            self._fail(
                "INSUFFICIENT_BALANCE",
                op,
                available=available,
                required=reward.required_value,
            )
        self._require_store(store_id, op)

        tx = Transaction(
            card=self,
            transaction_type=TransactionType.REWARD_REDEMPTION,
            reward=reward,
            store_id=store_id,
            staff_id=staff_id,
        )
        if self.card_type == ProgramType.STAMP:
            tx.quantity = reward.required_value
            self.stamps_collected -= reward.required_value
        else:
            tx.points_amount = Decimal(reward.required_value)
            self.points_balance = to_decimal(self.points_balance) - reward.required_value
        return self._append(tx)

    # ------------------------------------------------------------------
    # Status and metadata
    # ------------------------------------------------------------------

    def suspend(self) -> None:
        if self.status == CardStatus.SUSPENDED:
            return
        if self.status == CardStatus.EXPIRED:
            self._fail("INVALID_STATUS_TRANSITION", "suspend", status=self.status)
        self.status = CardStatus.SUSPENDED
        self.updated_at = timezone.now()

    def reactivate(self) -> None:
        if self.status != CardStatus.SUSPENDED:
            self._fail("INVALID_STATUS_TRANSITION", "reactivate", status=self.status)
        self.status = CardStatus.ACTIVE
        self.updated_at = timezone.now()

    def expire(self) -> None:
        if self.status == CardStatus.EXPIRED:
            return
        self.status = CardStatus.EXPIRED
        self.updated_at = timezone.now()

    def set_expiration_date(self, expiration_date: datetime) -> None:
        if expiration_date is None or expiration_date <= timezone.now():
            self._fail(
                "INVALID_EXPIRATION_DATE",
                "set_expiration_date",
                expiration_date=expiration_date,
            )
        self.expires_at = expiration_date
        self.updated_at = timezone.now()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def balance(self):
        """Balance in the card's own unit (stamps or points)."""
        if self.card_type == ProgramType.STAMP:
            return self.stamps_collected
        return to_decimal(self.points_balance)

    @property
    def is_active(self) -> bool:
        return self.status == CardStatus.ACTIVE

    def is_due_for_expiry(self, now: datetime | None = None) -> bool:
        now = now or timezone.now()
        if timezone.is_naive(now):
            now = timezone.make_aware(now)
        return (
            self.status != CardStatus.EXPIRED
            and self.expires_at is not None
            and self.expires_at <= now
        )

    def get_stamps_issued_today(self) -> int:
        """Stamps issued on the current UTC date. Always 0 for points cards."""
        if self.card_type != ProgramType.STAMP:
            return 0
        today = timezone.now().astimezone(dt_timezone.utc).date()
        return sum(
            tx.quantity or 0
            for tx in self.ledger
            if tx.transaction_type == TransactionType.STAMP_ISSUANCE
            and tx.timestamp.astimezone(dt_timezone.utc).date() == today
        )

    def replay_balance(self) -> tuple[int, Decimal]:
        """Recompute (stamps, points) from zero by replaying the ledger."""
        stamps, points = 0, Decimal("0")
        for tx in self.ledger:
            kind = tx.transaction_type
            if kind == TransactionType.STAMP_ISSUANCE:
                stamps += tx.quantity
            elif kind == TransactionType.POINTS_ISSUANCE:
                points += to_decimal(tx.points_amount)
            elif kind == TransactionType.STAMP_VOID:
                stamps -= tx.quantity
            elif kind == TransactionType.POINTS_VOID:
                points -= to_decimal(tx.points_amount)
            elif kind == TransactionType.REWARD_REDEMPTION:
                if self.card_type == ProgramType.STAMP:
                    stamps -= tx.quantity
                else:
                    points -= to_decimal(tx.points_amount)
        return stamps, points

    def has_valid_qr_code(self) -> bool:
        return self.qr_code == qr_code_for(self.uuid)

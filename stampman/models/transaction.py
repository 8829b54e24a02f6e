"""Ledger transaction model."""

import uuid as uuid_lib

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stampman.exceptions import LedgerError


class TransactionType(models.TextChoices):
    STAMP_ISSUANCE = "stamp_issuance", _("Emissão de carimbos")
    POINTS_ISSUANCE = "points_issuance", _("Acúmulo de pontos")
    REWARD_REDEMPTION = "reward_redemption", _("Resgate de recompensa")
    STAMP_VOID = "stamp_void", _("Estorno de carimbos")
    POINTS_VOID = "points_void", _("Estorno de pontos")


class Transaction(models.Model):
    """
    Immutable record of one balance-affecting event against a card.

    Created exactly once by a LoyaltyCard command and persisted by the card
    store together with the card state. Never updated or deleted: replaying
    a card's transactions in `sequence` order reproduces its balance.

    Redemptions record the deducted value in `quantity` (stamp cards) or
    `points_amount` (points cards).
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    card = models.ForeignKey(
        "stampman.LoyaltyCard",
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("cartão"),
    )
    sequence = models.PositiveIntegerField(
        _("sequência"),
        help_text=_("Posição no extrato do cartão"),
    )
    transaction_type = models.CharField(
        _("tipo"),
        max_length=20,
        choices=TransactionType.choices,
    )

    quantity = models.IntegerField(_("carimbos"), null=True, blank=True)
    points_amount = models.DecimalField(
        _("pontos"),
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
    )
    transaction_amount = models.DecimalField(
        _("valor da compra"),
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
    )
    reward = models.ForeignKey(
        "stampman.Reward",
        on_delete=models.PROTECT,
        related_name="redemptions",
        null=True,
        blank=True,
        verbose_name=_("recompensa"),
    )

    store_id = models.CharField(_("loja"), max_length=64, db_index=True)
    staff_id = models.CharField(_("atendente"), max_length=64, null=True, blank=True)
    pos_transaction_id = models.CharField(
        _("referência PDV"),
        max_length=100,
        blank=True,
        help_text=_("ID externo no ponto de venda"),
    )
    timestamp = models.DateTimeField(_("data"), default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _("transação")
        verbose_name_plural = _("transações")
        ordering = ["card_id", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["card", "sequence"],
                name="stampman_transaction_card_sequence_uniq",
            ),
        ]
        indexes = [
            models.Index(fields=["card", "timestamp"], name="stampman_tx_card_timestamp_idx"),
        ]

    def __str__(self):
        return f"#{self.sequence} {self.get_transaction_type_display()} — {self.signed_value}"

    @property
    def signed_value(self):
        """Balance delta this entry applies (negative for redemptions and voids)."""
        value = self.quantity if self.quantity is not None else self.points_amount
        if value is None:
            return 0
        if self.transaction_type in (
            TransactionType.REWARD_REDEMPTION,
            TransactionType.STAMP_VOID,
            TransactionType.POINTS_VOID,
        ):
            return -value
        return value

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise LedgerError("TRANSACTION_IMMUTABLE", transaction_id=str(self.uuid))
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise LedgerError("TRANSACTION_IMMUTABLE", transaction_id=str(self.uuid))

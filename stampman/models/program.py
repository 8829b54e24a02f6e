"""Loyalty program models — program, tiers, and rewards.

A program is read-mostly: brand management creates it, the ledger only
reads it to price purchases, classify balances and validate redemptions.
Programs are never deleted, only deactivated.
"""

import uuid as uuid_lib
from datetime import datetime
from decimal import ROUND_DOWN, Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stampman.exceptions import LedgerError


def to_decimal(value) -> Decimal:
    """Coerce int/float/str to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


CENTS = Decimal("0.01")


def to_cents(value) -> Decimal:
    """Decimal truncated to the two places the ledger stores."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_DOWN)


class ProgramType(models.TextChoices):
    STAMP = "stamp", _("Carimbos")
    POINTS = "points", _("Pontos")


class LoyaltyProgram(models.Model):
    """
    Loyalty program defined by a brand.

    Stamp programs count visits; points programs convert spend into points
    using `points_conversion_rate` (points per currency unit).
    """

    code = models.CharField(
        _("código"),
        max_length=50,
        unique=True,
        help_text=_("Código único do programa (ex: CAFE-CLUB)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    brand_id = models.CharField(_("marca"), max_length=64, db_index=True)

    name = models.CharField(_("nome"), max_length=100)
    description = models.TextField(_("descrição"), blank=True)
    program_type = models.CharField(
        _("tipo"),
        max_length=10,
        choices=ProgramType.choices,
    )

    # Points programs
    points_conversion_rate = models.DecimalField(
        _("taxa de conversão"),
        max_digits=10,
        decimal_places=4,
        null=True,
        blank=True,
        help_text=_("Pontos por unidade monetária"),
    )
    minimum_transaction_amount = models.DecimalField(
        _("valor mínimo da compra"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    has_tiers = models.BooleanField(_("possui níveis"), default=False)

    # Stamp programs
    stamp_threshold = models.PositiveIntegerField(
        _("carimbos por cartela"),
        null=True,
        blank=True,
    )
    daily_stamp_limit = models.PositiveIntegerField(
        _("limite diário de carimbos"),
        null=True,
        blank=True,
        help_text=_("Máximo de carimbos por cartão por dia (UTC)"),
    )

    # Card lifetime
    card_validity_days = models.PositiveIntegerField(
        _("validade do cartão (dias)"),
        null=True,
        blank=True,
    )

    # Bounds (read as simple bounds, not a scheduler)
    start_date = models.DateTimeField(_("início"), default=timezone.now)
    end_date = models.DateTimeField(_("fim"), null=True, blank=True)

    is_active = models.BooleanField(_("ativo"), default=True, db_index=True)
    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        verbose_name = _("programa de fidelidade")
        verbose_name_plural = _("programas de fidelidade")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    # ------------------------------------------------------------------
    # Pricing and classification
    # ------------------------------------------------------------------

    def calculate_points(self, amount, tier: "LoyaltyTier | None" = None) -> Decimal:
        """
        Points earned for a purchase amount.

        Always truncates toward zero, never rounds up. Amounts below the
        program minimum earn nothing. With tiers enabled, the tier
        multiplier is applied to the base points and truncated again.
        """
        amount = to_decimal(amount)
        if (
            self.minimum_transaction_amount is not None
            and amount < self.minimum_transaction_amount
        ):
            return Decimal("0")

        rate = self.points_conversion_rate or Decimal("0")
        points = (amount * rate).quantize(Decimal("1"), rounding=ROUND_DOWN)

        if self.has_tiers and tier is not None:
            points = (points * tier.point_multiplier).quantize(
                Decimal("1"), rounding=ROUND_DOWN
            )
        return points

    def get_tier_for_points(self, points) -> "LoyaltyTier | None":
        """
        Tier with the greatest threshold not above `points`.

        Equal thresholds are resolved by the highest tier_order.
        Returns None when the program has no tiers or points fall
        below the lowest threshold.
        """
        if not self.has_tiers:
            return None
        points = to_decimal(points)
        qualifying = [t for t in self.tiers.all() if t.point_threshold <= points]
        if not qualifying:
            return None
        return max(qualifying, key=lambda t: (t.point_threshold, t.tier_order))

    def is_valid_for_points_issuance(self, amount) -> bool:
        """Active programs accept points issuance (start/end dates are not checked)."""
        if not self.is_active:
            return False
        if self.minimum_transaction_amount is not None:
            return to_decimal(amount) >= self.minimum_transaction_amount
        return True

    def is_valid_for_stamp_issuance(self) -> bool:
        return self.is_active and self.program_type == ProgramType.STAMP

    # ------------------------------------------------------------------
    # Collections (no de-duplication)
    # ------------------------------------------------------------------

    def create_tier(
        self,
        name: str,
        point_threshold: int,
        point_multiplier=Decimal("1"),
        tier_order: int = 0,
        benefits: list[str] | None = None,
    ) -> "LoyaltyTier":
        """Construct a tier and append it to this program."""
        point_multiplier = to_decimal(point_multiplier)
        if not name or not name.strip():
            raise LedgerError("INVALID_TIER", message="Tier name cannot be empty")
        if point_threshold < 0:
            raise LedgerError(
                "INVALID_TIER",
                message="Point threshold cannot be negative",
                point_threshold=point_threshold,
            )
        if point_multiplier <= 0:
            raise LedgerError(
                "INVALID_TIER",
                message="Point multiplier must be greater than zero",
                point_multiplier=str(point_multiplier),
            )
        return self.tiers.create(
            name=name,
            point_threshold=point_threshold,
            point_multiplier=point_multiplier,
            tier_order=tier_order,
            benefits=list(benefits or []),
        )

    def add_tier(self, tier: "LoyaltyTier") -> "LoyaltyTier":
        """Append an existing tier instance."""
        self.tiers.add(tier, bulk=False)
        return tier

    def create_reward(
        self,
        title: str,
        required_value: int,
        description: str = "",
        valid_from: datetime | None = None,
        valid_to: datetime | None = None,
    ) -> "Reward":
        """Construct a reward and append it to this program."""
        if not title or not title.strip():
            raise LedgerError("INVALID_REWARD", message="Reward title cannot be empty")
        Reward.check_definition(required_value, valid_from, valid_to)
        return self.rewards.create(
            title=title,
            description=description,
            required_value=required_value,
            valid_from=valid_from,
            valid_to=valid_to,
        )

    def add_reward(self, reward: "Reward") -> "Reward":
        """Append an existing reward instance."""
        self.rewards.add(reward, bulk=False)
        return reward

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    def activate(self) -> None:
        self.is_active = True
        self.save(update_fields=["is_active", "updated_at"])

    def deactivate(self) -> None:
        self.is_active = False
        self.save(update_fields=["is_active", "updated_at"])


class LoyaltyTier(models.Model):
    """Points banding within a program, granting an earn multiplier."""

    program = models.ForeignKey(
        LoyaltyProgram,
        on_delete=models.CASCADE,
        related_name="tiers",
        verbose_name=_("programa"),
    )
    name = models.CharField(_("nome"), max_length=50)
    point_threshold = models.PositiveIntegerField(_("pontos mínimos"))
    point_multiplier = models.DecimalField(
        _("multiplicador"),
        max_digits=6,
        decimal_places=3,
        default=Decimal("1"),
    )
    tier_order = models.IntegerField(
        _("ordem"),
        default=0,
        help_text=_("Precedência quando limites coincidem"),
    )
    benefits = models.JSONField(_("benefícios"), default=list, blank=True)

    class Meta:
        verbose_name = _("nível")
        verbose_name_plural = _("níveis")
        ordering = ["tier_order", "point_threshold"]

    def __str__(self):
        return f"{self.name} (≥{self.point_threshold}pts)"


class Reward(models.Model):
    """
    Catalog item redeemable for a fixed balance cost.

    `required_value` is counted in stamps or points depending on the
    program type.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)
    program = models.ForeignKey(
        LoyaltyProgram,
        on_delete=models.PROTECT,
        related_name="rewards",
        verbose_name=_("programa"),
    )
    title = models.CharField(_("título"), max_length=100)
    description = models.TextField(_("descrição"), blank=True)
    required_value = models.PositiveIntegerField(
        _("custo"),
        help_text=_("Carimbos ou pontos necessários"),
    )
    valid_from = models.DateTimeField(_("válido de"), null=True, blank=True)
    valid_to = models.DateTimeField(_("válido até"), null=True, blank=True)
    is_active = models.BooleanField(_("ativo"), default=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        verbose_name = _("recompensa")
        verbose_name_plural = _("recompensas")
        ordering = ["required_value", "title"]

    def __str__(self):
        return f"{self.title} ({self.required_value})"

    @staticmethod
    def check_definition(required_value, valid_from=None, valid_to=None) -> None:
        """Construction guard shared by create_reward and callers building rewards."""
        if required_value is None or required_value <= 0:
            raise LedgerError(
                "INVALID_REWARD",
                message="Required value must be greater than zero",
                required_value=required_value,
            )
        if valid_from and valid_to and valid_from > valid_to:
            raise LedgerError(
                "INVALID_REWARD",
                message="Valid from date must be before valid to date",
            )

    def is_within_window(self, moment: datetime) -> bool:
        """Missing bounds are unbounded on that side."""
        if self.valid_from is not None and moment < self.valid_from:
            return False
        return self.valid_to is None or moment <= self.valid_to

    def is_valid_at(self, moment: datetime) -> bool:
        return self.is_active and self.is_within_window(moment)

    def activate(self) -> None:
        self.is_active = True
        self.save(update_fields=["is_active", "updated_at"])

    def deactivate(self) -> None:
        self.is_active = False
        self.save(update_fields=["is_active", "updated_at"])

"""Stampman admin.

Programs, tiers and rewards are edited here. Cards and transactions are
read-only: balances only move through LedgerService, so the admin
actions on cards go through it too.
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from stampman.exceptions import LedgerError
from stampman.models import (
    CardStatus,
    LoyaltyCard,
    LoyaltyProgram,
    LoyaltyTier,
    ProgramType,
    Reward,
    Transaction,
)


# ===========================================
# Program Admin
# ===========================================


class LoyaltyTierInline(admin.TabularInline):
    model = LoyaltyTier
    extra = 0
    fields = ["name", "point_threshold", "point_multiplier", "tier_order", "benefits"]
    ordering = ["tier_order"]


class RewardInline(admin.TabularInline):
    model = Reward
    extra = 0
    fields = ["title", "required_value", "valid_from", "valid_to", "is_active"]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LoyaltyProgram)
class LoyaltyProgramAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "brand_id",
        "program_type",
        "is_active",
        "card_count",
    ]
    list_filter = ["program_type", "is_active", "has_tiers"]
    search_fields = ["code", "name", "brand_id"]
    readonly_fields = ["uuid", "created_at", "updated_at"]
    inlines = [LoyaltyTierInline, RewardInline]

    fieldsets = [
        (None, {"fields": ["code", "uuid", "brand_id", "name", "description", "program_type"]}),
        (
            "Pontos",
            {"fields": ["points_conversion_rate", "minimum_transaction_amount", "has_tiers"]},
        ),
        ("Carimbos", {"fields": ["stamp_threshold", "daily_stamp_limit"]}),
        (
            "Vigência",
            {"fields": ["card_validity_days", "start_date", "end_date", "is_active"]},
        ),
        ("Metadados", {"fields": ["created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    def has_delete_permission(self, request, obj=None):
        return False

    def card_count(self, obj):
        return obj.cards.count()

    card_count.short_description = "Cartões"


# ===========================================
# Card Admin (read-only)
# ===========================================


class TransactionInline(admin.TabularInline):
    model = Transaction
    extra = 0
    fields = [
        "sequence",
        "transaction_type",
        "quantity",
        "points_amount",
        "transaction_amount",
        "reward",
        "store_id",
        "timestamp",
    ]
    readonly_fields = fields
    ordering = ["-sequence"]

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LoyaltyCard)
class LoyaltyCardAdmin(admin.ModelAdmin):
    list_display = [
        "customer_id",
        "program",
        "balance_display",
        "status_badge",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "card_type", "program"]
    search_fields = ["customer_id", "qr_code", "uuid"]
    readonly_fields = [
        "uuid",
        "program",
        "customer_id",
        "card_type",
        "stamps_collected",
        "points_balance",
        "status",
        "qr_code",
        "version",
        "created_at",
        "updated_at",
        "expires_at",
    ]
    inlines = [TransactionInline]
    actions = ["suspend_cards", "reactivate_cards"]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def balance_display(self, obj):
        if obj.card_type == ProgramType.STAMP:
            return f"{obj.stamps_collected} carimbos"
        return f"{obj.points_balance} pts"

    balance_display.short_description = "Saldo"

    def status_badge(self, obj):
        colors = {
            CardStatus.ACTIVE: "#28a745",
            CardStatus.SUSPENDED: "#ffc107",
            CardStatus.EXPIRED: "#6c757d",
        }
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            colors.get(obj.status, "#6c757d"),
            obj.get_status_display(),
        )

    status_badge.short_description = "Status"

    @admin.action(description="Suspender cartões selecionados")
    def suspend_cards(self, request, queryset):
        self._apply(request, queryset, "suspend_card")

    @admin.action(description="Reativar cartões selecionados")
    def reactivate_cards(self, request, queryset):
        self._apply(request, queryset, "reactivate_card")

    def _apply(self, request, queryset, method: str):
        from stampman.service import LedgerService

        ledger = LedgerService()
        done = 0
        for card in queryset:
            try:
                getattr(ledger, method)(card.uuid)
                done += 1
            except LedgerError as e:
                self.message_user(request, f"{card.customer_id}: {e.message}", messages.WARNING)
        if done:
            self.message_user(request, f"{done} cartão(ões) atualizado(s).", messages.SUCCESS)


# ===========================================
# Transaction Admin (read-only)
# ===========================================


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = [
        "timestamp",
        "card",
        "sequence",
        "transaction_type",
        "value_display",
        "store_id",
    ]
    list_filter = ["transaction_type"]
    search_fields = ["card__customer_id", "store_id", "pos_transaction_id"]
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def value_display(self, obj):
        value = obj.signed_value
        if value > 0:
            return format_html('<span style="color:green">+{}</span>', value)
        return format_html('<span style="color:red">{}</span>', value)

    value_display.short_description = "Valor"

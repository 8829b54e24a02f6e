# Initial schema for the loyalty ledger

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyProgram",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "code",
                    models.CharField(
                        help_text="Código único do programa (ex: CAFE-CLUB)",
                        max_length=50,
                        unique=True,
                        verbose_name="código",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("brand_id", models.CharField(db_index=True, max_length=64, verbose_name="marca")),
                ("name", models.CharField(max_length=100, verbose_name="nome")),
                ("description", models.TextField(blank=True, verbose_name="descrição")),
                (
                    "program_type",
                    models.CharField(
                        choices=[("stamp", "Carimbos"), ("points", "Pontos")],
                        max_length=10,
                        verbose_name="tipo",
                    ),
                ),
                (
                    "points_conversion_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text="Pontos por unidade monetária",
                        max_digits=10,
                        null=True,
                        verbose_name="taxa de conversão",
                    ),
                ),
                (
                    "minimum_transaction_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        verbose_name="valor mínimo da compra",
                    ),
                ),
                ("has_tiers", models.BooleanField(default=False, verbose_name="possui níveis")),
                (
                    "stamp_threshold",
                    models.PositiveIntegerField(
                        blank=True, null=True, verbose_name="carimbos por cartela"
                    ),
                ),
                (
                    "daily_stamp_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Máximo de carimbos por cartão por dia (UTC)",
                        null=True,
                        verbose_name="limite diário de carimbos",
                    ),
                ),
                (
                    "card_validity_days",
                    models.PositiveIntegerField(
                        blank=True, null=True, verbose_name="validade do cartão (dias)"
                    ),
                ),
                (
                    "start_date",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="início"
                    ),
                ),
                ("end_date", models.DateTimeField(blank=True, null=True, verbose_name="fim")),
                (
                    "is_active",
                    models.BooleanField(db_index=True, default=True, verbose_name="ativo"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "programa de fidelidade",
                "verbose_name_plural": "programas de fidelidade",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyTier",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=50, verbose_name="nome")),
                ("point_threshold", models.PositiveIntegerField(verbose_name="pontos mínimos")),
                (
                    "point_multiplier",
                    models.DecimalField(
                        decimal_places=3,
                        default=Decimal("1"),
                        max_digits=6,
                        verbose_name="multiplicador",
                    ),
                ),
                (
                    "tier_order",
                    models.IntegerField(
                        default=0,
                        help_text="Precedência quando limites coincidem",
                        verbose_name="ordem",
                    ),
                ),
                (
                    "benefits",
                    models.JSONField(blank=True, default=list, verbose_name="benefícios"),
                ),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tiers",
                        to="stampman.loyaltyprogram",
                        verbose_name="programa",
                    ),
                ),
            ],
            options={
                "verbose_name": "nível",
                "verbose_name_plural": "níveis",
                "ordering": ["tier_order", "point_threshold"],
            },
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("title", models.CharField(max_length=100, verbose_name="título")),
                ("description", models.TextField(blank=True, verbose_name="descrição")),
                (
                    "required_value",
                    models.PositiveIntegerField(
                        help_text="Carimbos ou pontos necessários", verbose_name="custo"
                    ),
                ),
                ("valid_from", models.DateTimeField(blank=True, null=True, verbose_name="válido de")),
                ("valid_to", models.DateTimeField(blank=True, null=True, verbose_name="válido até")),
                ("is_active", models.BooleanField(default=True, verbose_name="ativo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rewards",
                        to="stampman.loyaltyprogram",
                        verbose_name="programa",
                    ),
                ),
            ],
            options={
                "verbose_name": "recompensa",
                "verbose_name_plural": "recompensas",
                "ordering": ["required_value", "title"],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyCard",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("customer_id", models.CharField(db_index=True, max_length=64, verbose_name="cliente")),
                (
                    "card_type",
                    models.CharField(
                        choices=[("stamp", "Carimbos"), ("points", "Pontos")],
                        max_length=10,
                        verbose_name="tipo",
                    ),
                ),
                ("stamps_collected", models.PositiveIntegerField(default=0, verbose_name="carimbos")),
                (
                    "points_balance",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=14,
                        verbose_name="saldo de pontos",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Ativo"),
                            ("suspended", "Suspenso"),
                            ("expired", "Expirado"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=10,
                        verbose_name="status",
                    ),
                ),
                (
                    "qr_code",
                    models.CharField(
                        editable=False, max_length=64, unique=True, verbose_name="QR code"
                    ),
                ),
                ("version", models.PositiveIntegerField(default=0, verbose_name="versão")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                (
                    "updated_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, verbose_name="atualizado em"
                    ),
                ),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expira em")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cards",
                        to="stampman.loyaltyprogram",
                        verbose_name="programa",
                    ),
                ),
            ],
            options={
                "verbose_name": "cartão fidelidade",
                "verbose_name_plural": "cartões fidelidade",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("program", "customer_id"),
                        name="stampman_card_program_customer_uniq",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("points_balance__gte", 0)),
                        name="stampman_card_points_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                (
                    "sequence",
                    models.PositiveIntegerField(
                        help_text="Posição no extrato do cartão", verbose_name="sequência"
                    ),
                ),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("stamp_issuance", "Emissão de carimbos"),
                            ("points_issuance", "Acúmulo de pontos"),
                            ("reward_redemption", "Resgate de recompensa"),
                            ("stamp_void", "Estorno de carimbos"),
                            ("points_void", "Estorno de pontos"),
                        ],
                        max_length=20,
                        verbose_name="tipo",
                    ),
                ),
                ("quantity", models.IntegerField(blank=True, null=True, verbose_name="carimbos")),
                (
                    "points_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=14, null=True, verbose_name="pontos"
                    ),
                ),
                (
                    "transaction_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        verbose_name="valor da compra",
                    ),
                ),
                ("store_id", models.CharField(db_index=True, max_length=64, verbose_name="loja")),
                (
                    "staff_id",
                    models.CharField(blank=True, max_length=64, null=True, verbose_name="atendente"),
                ),
                (
                    "pos_transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="ID externo no ponto de venda",
                        max_length=100,
                        verbose_name="referência PDV",
                    ),
                ),
                (
                    "timestamp",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now, verbose_name="data"
                    ),
                ),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="stampman.loyaltycard",
                        verbose_name="cartão",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="stampman.reward",
                        verbose_name="recompensa",
                    ),
                ),
            ],
            options={
                "verbose_name": "transação",
                "verbose_name_plural": "transações",
                "ordering": ["card_id", "sequence"],
                "indexes": [
                    models.Index(fields=["card", "timestamp"], name="stampman_tx_card_timestamp_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("card", "sequence"),
                        name="stampman_transaction_card_sequence_uniq",
                    ),
                ],
            },
        ),
    ]

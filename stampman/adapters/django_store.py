"""Django ORM adapters for CardStore and ProgramStore.

Optimistic concurrency:
    LoyaltyCard.version is the row token. save() issues
    UPDATE ... WHERE id = %s AND version = <loaded version> and bumps the
    version in the same statement. Zero rows updated means another command
    committed first: VersionConflict is raised inside the atomic block, so
    neither the card row nor its transactions are written.
"""

import logging
import uuid as uuid_lib
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F, Prefetch

from stampman.exceptions import LedgerError, VersionConflict
from stampman.models import (
    CardStatus,
    LoyaltyCard,
    LoyaltyProgram,
    LoyaltyTier,
    Reward,
    Transaction,
)

logger = logging.getLogger(__name__)

# Card columns a command may change. Identity, type and program never change.
_MUTABLE_CARD_FIELDS = (
    "stamps_collected",
    "points_balance",
    "status",
    "expires_at",
    "updated_at",
)


def _as_uuid(value) -> uuid_lib.UUID | None:
    if isinstance(value, uuid_lib.UUID):
        return value
    try:
        return uuid_lib.UUID(str(value))
    except ValueError:
        return None


class DjangoCardStore:
    """
    CardStore backed by the default database.

    Configuration in settings.py:
        STAMPMAN = {
            "CARD_STORE": "stampman.adapters.django_store.DjangoCardStore",
        }
    """

    def load(self, card_id) -> LoyaltyCard:
        """Load card by uuid with its full history (ordered by sequence)."""
        card_uuid = _as_uuid(card_id)
        if card_uuid is None:
            raise LedgerError("CARD_NOT_FOUND", card_id=str(card_id))
        try:
            card = LoyaltyCard.objects.get(uuid=card_uuid)
        except LoyaltyCard.DoesNotExist:
            raise LedgerError("CARD_NOT_FOUND", card_id=str(card_id))
        card.restore_history(Transaction.objects.filter(card=card).order_by("sequence"))
        return card

    def save(self, card: LoyaltyCard, new_transactions: list[Transaction]) -> LoyaltyCard:
        try:
            with transaction.atomic():
                if card._state.adding:
                    card.save(force_insert=True)
                else:
                    updated = LoyaltyCard.objects.filter(
                        pk=card.pk,
                        version=card.version,
                    ).update(
                        version=F("version") + 1,
                        **{name: getattr(card, name) for name in _MUTABLE_CARD_FIELDS},
                    )
                    if not updated:
                        raise VersionConflict(
                            card_id=str(card.uuid),
                            expected_version=card.version,
                        )
                    card.version += 1

                if new_transactions:
                    Transaction.objects.bulk_create(new_transactions)
        except IntegrityError as exc:
            # Losing the (card, sequence) race is the same conflict as a stale version
            if card._state.adding:
                raise
            logger.warning("Ledger sequence collision on card %s: %s", card.uuid, exc)
            raise VersionConflict(card_id=str(card.uuid), expected_version=card.version)

        card.mark_committed()
        return card

    def find_by_qr_code(self, qr_code: str) -> LoyaltyCard | None:
        try:
            return LoyaltyCard.objects.get(qr_code=qr_code)
        except LoyaltyCard.DoesNotExist:
            return None

    def find_for_customer(self, customer_id: str) -> list[LoyaltyCard]:
        return list(LoyaltyCard.objects.filter(customer_id=customer_id))

    def find_due_for_expiry(self, now: datetime) -> list[str]:
        return [
            str(card_uuid)
            for card_uuid in LoyaltyCard.objects.filter(
                expires_at__lte=now,
            )
            .exclude(status=CardStatus.EXPIRED)
            .values_list("uuid", flat=True)
        ]


class DjangoProgramStore:
    """ProgramStore backed by the default database."""

    def load(self, program_id) -> LoyaltyProgram:
        """
        Load program by pk, uuid or code, with tiers and rewards prefetched.
        """
        qs = LoyaltyProgram.objects.prefetch_related(
            Prefetch("tiers", queryset=LoyaltyTier.objects.order_by("tier_order")),
            "rewards",
        )
        try:
            if isinstance(program_id, int):
                return qs.get(pk=program_id)
            program_uuid = _as_uuid(program_id)
            if program_uuid is not None:
                return qs.get(uuid=program_uuid)
            return qs.get(code=program_id)
        except LoyaltyProgram.DoesNotExist:
            raise LedgerError("PROGRAM_NOT_FOUND", program_id=str(program_id))

    def load_reward(self, reward_id) -> Reward:
        try:
            if isinstance(reward_id, int):
                return Reward.objects.get(pk=reward_id)
            reward_uuid = _as_uuid(reward_id)
            if reward_uuid is None:
                raise Reward.DoesNotExist
            return Reward.objects.get(uuid=reward_uuid)
        except Reward.DoesNotExist:
            raise LedgerError("REWARD_NOT_FOUND", reward_id=str(reward_id))

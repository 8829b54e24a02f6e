"""Storage and publication protocols for the Ledger Service."""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from stampman.protocols.events import LedgerEvent

if TYPE_CHECKING:
    from stampman.models import LoyaltyCard, LoyaltyProgram, Reward, Transaction


@runtime_checkable
class CardStore(Protocol):
    """
    Persistence for the LoyaltyCard aggregate.

    Configuration in settings.py:
        STAMPMAN = {
            "CARD_STORE": "stampman.adapters.django_store.DjangoCardStore",
        }
    """

    def load(self, card_id) -> "LoyaltyCard":
        """
        Load a card with its committed history.

        Raises:
            LedgerError: CARD_NOT_FOUND
        """
        ...

    def save(self, card: "LoyaltyCard", new_transactions: list["Transaction"]) -> "LoyaltyCard":
        """
        Persist card state and new transactions as one atomic unit.

        Raises:
            VersionConflict: If the card changed since it was loaded.
                Nothing is written in that case.
        """
        ...

    def find_by_qr_code(self, qr_code: str) -> "LoyaltyCard | None":
        ...

    def find_for_customer(self, customer_id: str) -> list["LoyaltyCard"]:
        ...

    def find_due_for_expiry(self, now: datetime) -> list[str]:
        """Ids of non-expired cards whose expires_at has passed."""
        ...


@runtime_checkable
class ProgramStore(Protocol):
    """Read access to programs (with tiers and rewards) and rewards."""

    def load(self, program_id) -> "LoyaltyProgram":
        """
        Raises:
            LedgerError: PROGRAM_NOT_FOUND
        """
        ...

    def load_reward(self, reward_id) -> "Reward":
        """
        Raises:
            LedgerError: REWARD_NOT_FOUND
        """
        ...


@runtime_checkable
class EventSink(Protocol):
    """
    Receives ledger events after commit.

    Must not block the ledger. Failures are logged by the caller and never
    undo or fail the command that produced the event.
    """

    def publish(self, event: LedgerEvent) -> None:
        ...

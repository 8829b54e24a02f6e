"""EventSink adapters."""

import logging
from dataclasses import asdict

from stampman import signals
from stampman.protocols.events import LedgerEvent

logger = logging.getLogger(__name__)


class SignalEventSink:
    """
    Re-emits ledger events as Django signals.

    Receivers are isolated from each other with send_robust; a failing
    receiver is logged and the remaining receivers still run.

    Usage:
        from stampman.signals import reward_redeemed

        @receiver(reward_redeemed)
        def notify(sender, event, **kwargs):
            ...
    """

    _signals = {
        "stamps_issued": signals.stamps_issued,
        "points_added": signals.points_added,
        "reward_redeemed": signals.reward_redeemed,
    }

    def publish(self, event: LedgerEvent) -> None:
        signal = self._signals.get(event.name)
        if signal is None:
            logger.warning("No signal registered for event %s", event.name)
            return
        for receiver, response in signal.send_robust(sender=type(event), event=event):
            if isinstance(response, Exception):
                logger.error(
                    "Receiver %r failed for %s (%s): %s",
                    receiver,
                    event.name,
                    event.event_id,
                    response,
                )


class LoggingEventSink:
    """Writes each event to the log. Useful in development and for audit trails."""

    def publish(self, event: LedgerEvent) -> None:
        logger.info("Ledger event %s: %s", event.name, asdict(event))

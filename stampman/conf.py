"""
Stampman configuration.

Usage in settings.py:
    STAMPMAN = {
        "EVENT_SINK": "stampman.adapters.sinks.SignalEventSink",
        "MAX_VERSION_RETRIES": 3,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StampmanSettings:
    """Stampman configuration settings."""

    # Storage backends (dotted paths, see stampman.protocols)
    CARD_STORE: str = "stampman.adapters.django_store.DjangoCardStore"
    PROGRAM_STORE: str = "stampman.adapters.django_store.DjangoProgramStore"

    # Event publication after commit
    EVENT_SINK: str = "stampman.adapters.sinks.SignalEventSink"

    # Optimistic concurrency: attempts after the first VersionConflict
    MAX_VERSION_RETRIES: int = 3

    # Prefix of the identity-derived QR code
    QR_CODE_PREFIX: str = "loy"


def get_stampman_settings() -> StampmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STAMPMAN", {})
    return StampmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stampman_settings(), name)


stampman_settings = _LazySettings()

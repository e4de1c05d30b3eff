from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

log = logging.getLogger(__name__)


class FeedbackEvent(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TICK = "tick"
    LEVEL_UP = "level_up"
    LEVEL_DOWN = "level_down"
    SHIELD_BREAK = "shield_break"
    LIFE_UP = "life_up"
    REBOOT = "reboot"
    CIPHER_SHIFT = "cipher_shift"


class FeedbackSink(Protocol):
    """Fire-and-forget receiver for notification cues (audio, haptics...)."""

    def emit(self, event: FeedbackEvent) -> None: ...


class NullSink:
    def emit(self, event: FeedbackEvent) -> None:
        return None


def notify(sink: FeedbackSink, event: FeedbackEvent) -> None:
    """Deliver an event without letting the sink affect the caller."""

    try:
        sink.emit(event)
    except Exception:
        log.warning("feedback sink failed on %s", event.value, exc_info=True)

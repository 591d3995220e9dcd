"""
Exit gesture: the same key pressed over and over.

The first press of a key arms the counter at zero; every further press
of that key adds one.  Pressing any other key re-arms on the new key.
Only presses count: releases, dial turns and touches are ignored.  With
the default threshold of 6 that makes seven presses in a row.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .constants import DEFAULT_EXIT_REPEAT_THRESHOLD, DEFAULT_POLL_TIMEOUT_S
from .errors import DeviceDisconnected, ReadError
from .events import ButtonEvent
from .session import DeviceSession

log = logging.getLogger(__name__)


class ExitReason(enum.Enum):
    GESTURE = "gesture"
    TIMEOUT = "timeout"
    DISCONNECTED = "disconnected"


@dataclass
class RepeatCounter:
    """Streak of consecutive presses of one key."""

    threshold: int = DEFAULT_EXIT_REPEAT_THRESHOLD
    last_button: Optional[int] = None
    streak: int = 0

    def feed(self, index: int) -> bool:
        """Record a press; True once the streak reaches the threshold."""
        if index == self.last_button:
            self.streak += 1
            if self.streak >= self.threshold:
                return True
        else:
            self.last_button = index
            self.streak = 0
        return False

    def reset(self) -> None:
        self.last_button = None
        self.streak = 0


class GestureLoop:
    """Read events from a session until the exit gesture, a timeout or
    a disconnect, then shut the session down."""

    def __init__(self, session: DeviceSession,
                 poll_timeout: float = DEFAULT_POLL_TIMEOUT_S,
                 threshold: int = DEFAULT_EXIT_REPEAT_THRESHOLD):
        if poll_timeout <= 0:
            raise ValueError(f"poll_timeout must be positive, got {poll_timeout}")
        if threshold < 1:
            raise ValueError(f"threshold must be at least 1, got {threshold}")
        self.session = session
        self.poll_timeout = poll_timeout
        self.counter = RepeatCounter(threshold=threshold)

    def _consume(self, events: Iterable[ButtonEvent]) -> bool:
        """Feed one batch; True when the gesture completed."""
        for event in events:
            if not event.is_press:
                continue
            if self.counter.feed(event.index):
                return True
            log.info("Button %d down, count %d", event.index, self.counter.streak)
        return False

    def run(self) -> ExitReason:
        """Run to completion.  Always shuts the session down."""
        self.counter.reset()
        try:
            while True:
                try:
                    events = self.session.read_events(self.poll_timeout)
                except DeviceDisconnected as e:
                    log.info("Device lost: %s", e)
                    return ExitReason.DISCONNECTED
                except ReadError as e:
                    log.info("Nothing was found: %s", e)
                    return ExitReason.TIMEOUT

                if self._consume(events):
                    log.warning("Stopping program")
                    return ExitReason.GESTURE
        finally:
            self.session.shutdown()


def run_until_gesture(session: DeviceSession, settings=None) -> ExitReason:
    """Run a GestureLoop with values from ``settings`` (paths.Settings)."""
    if settings is None:
        return GestureLoop(session).run()
    return GestureLoop(
        session,
        poll_timeout=settings.poll_timeout_seconds,
        threshold=settings.exit_repeat_threshold,
    ).run()

"""Button events as delivered by a transport, in hardware order."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class EventKind(enum.Enum):
    PRESSED = "pressed"
    RELEASED = "released"
    OTHER = "other"


@dataclass(frozen=True)
class ButtonEvent:
    """One hardware notification.

    ``index`` is the key ordinal for PRESSED/RELEASED and None for
    OTHER (dial turns, touchscreen taps).  ``detail`` carries a short
    description of OTHER events for logs.
    """

    kind: EventKind
    index: Optional[int] = None
    detail: str = ""

    @classmethod
    def pressed(cls, index: int) -> ButtonEvent:
        return cls(EventKind.PRESSED, index)

    @classmethod
    def released(cls, index: int) -> ButtonEvent:
        return cls(EventKind.RELEASED, index)

    @classmethod
    def other(cls, detail: str = "") -> ButtonEvent:
        return cls(EventKind.OTHER, None, detail)

    @property
    def is_press(self) -> bool:
        return self.kind is EventKind.PRESSED

    def __str__(self) -> str:
        if self.kind is EventKind.OTHER:
            return f"other({self.detail})" if self.detail else "other"
        return f"{self.kind.value}({self.index})"

"""Lightweight event model used by TurnEngine to decouple game logic from the UI.

The goal is to emit strongly-typed events that the terminal client (or any
other front end) can render, and that tests can assert on, without parsing
free-text strings or polling the session for changes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class Category(Enum):
    """High-level event categories."""

    TURN = auto()  # state transitions, match over
    SHOT = auto()  # shots in either direction and their outcome
    SYSTEM = auto()  # errors, announcements, poll failures


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable event emitted by TurnEngine and SessionController."""

    category: Category
    type: str  # finer-grained identifier, e.g. "state", "own_hit", "enemy_sunk"
    payload: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Event], None]


class EventBus:
    """Fan events out to every subscriber, in subscription order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: List[Subscriber] = []

    def subscribe(self, cb: Subscriber) -> Callable[[], None]:
        """Register *cb*; the returned function removes it again."""
        with self._lock:
            self._subs.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._subs:
                    self._subs.remove(cb)

        return _unsubscribe

    def emit(self, ev: Event) -> None:
        with self._lock:
            subs = tuple(self._subs)
        for cb in subs:
            try:
                cb(ev)
            except Exception:
                # a misbehaving subscriber must not break the engine
                logger.exception("Subscriber %r failed on %s event", cb, ev.type)

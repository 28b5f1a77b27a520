"""Session controller: the single entry point a front end talks to.

SessionController validates user intents (name, key, fleet, shots) before
anything reaches the network, forwards them through GameClient, and hands
every reply to TurnEngine, which decides what happens next. It also keeps the
few observable fields a UI needs that are not part of the match itself:
the latest error message, the latest announcement, and a loading flag.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Optional

from . import config as _cfg
from .battleship import (
    Fleet,
    Orientation,
    PlacementError,
    Ship,
    ShipType,
    place_fleet_randomly,
    place_ship,
    validate_fleet,
)
from .engine import PollerFactory, TurnEngine, TurnState
from .events import Category, Event, Subscriber
from .match import MatchSnapshot, Outcome
from .poller import PollTask
from .protocol import GameClient, ProtocolError, Result, ValidationError
from .wire import Alive, FireOutcome, JoinOutcome

logger = logging.getLogger(__name__)

# The service only accepts coordinates 0..COORD_MAX, whatever board size is used locally.
_SERVER_BOARD = _cfg.COORD_MAX + 1


class SessionController:
    """Drive one match at a time: setup, join, play, play again."""

    def __init__(
        self,
        client: Optional[GameClient] = None,
        engine: Optional[TurnEngine] = None,
        *,
        rng: Optional[random.Random] = None,
        board_size: int = _cfg.BOARD_SIZE,
        poll_interval: float = _cfg.POLL_INTERVAL,
        poller_factory: PollerFactory = PollTask,
    ) -> None:
        if client is None:
            client = engine.client if engine is not None else GameClient()
        self.client = client
        if engine is None:
            engine = TurnEngine(self.client, poll_interval=poll_interval, poller_factory=poller_factory)
        self.engine = engine
        self.rng = rng if rng is not None else random.Random()
        self.board_size = board_size

        self.error_message: Optional[str] = None
        self.announcement: Optional[str] = None
        self.is_loading = False
        self.engine.subscribe(self._announce)

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> TurnState:
        return self.engine.state

    @property
    def snapshot(self) -> MatchSnapshot:
        return self.engine.snapshot()

    @property
    def is_player_name_valid(self) -> bool:
        return _valid_identity(self.engine.session.player_name)

    @property
    def is_game_key_valid(self) -> bool:
        return _valid_identity(self.engine.session.game_key)

    @property
    def is_fleet_valid(self) -> bool:
        try:
            validate_fleet(self.engine.session.fleet, _SERVER_BOARD)
        except PlacementError:
            return False
        return True

    def subscribe(self, cb: Subscriber) -> Callable[[], None]:
        """Receive every engine event plus the controller's error/announcement events."""
        return self.engine.subscribe(cb)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_player_name(self, name: str) -> bool:
        """Store *name* (trimmed); returns whether it is long enough to join with."""
        self.engine.set_identity(player_name=name.strip())
        return self.is_player_name_valid

    def set_game_key(self, key: str) -> bool:
        self.engine.set_identity(game_key=key.strip())
        return self.is_game_key_valid

    def ping(self) -> Result[Alive]:
        """Check the server is up; failure is reported through error_message."""
        self.is_loading = True
        try:
            result = self.client.probe()
        finally:
            self.is_loading = False
        if not result.ok:
            self._set_error(f"Server is not responding: {result.error.message}")
        elif not result.value.ping:
            self._set_error("Server is not responding: ping returned false")
        else:
            logger.info("Server is running")
            self._clear_error()
        return result

    def generate_fleet(self) -> Result[Fleet]:
        """Replace the current fleet with a random legal one."""
        if self.state is not TurnState.AWAITING_JOIN:
            return self._invalid("Ships can only be placed before joining")
        try:
            fleet = place_fleet_randomly(self.board_size, self.rng)
        except PlacementError as exc:
            return self._invalid(str(exc))
        logger.debug("Generated fleet %s", fleet)
        return self._store_fleet(fleet)

    def place_ship(self, ship_type: ShipType, x: int, y: int, orientation: Orientation) -> Result[Fleet]:
        """Manually place (or move) one ship."""
        if self.state is not TurnState.AWAITING_JOIN:
            return self._invalid("Ships can only be placed before joining")
        try:
            fleet = place_ship(self.engine.session.fleet, Ship(ship_type, x, y, orientation), self.board_size)
        except PlacementError as exc:
            return self._invalid(str(exc))
        return self._store_fleet(fleet)

    def clear_fleet(self) -> None:
        self.engine.set_fleet(())

    def _store_fleet(self, fleet: Fleet) -> Result[Fleet]:
        if not self.engine.set_fleet(fleet):
            return self._invalid("Ships can only be placed before joining")
        self._clear_error()
        return Result.success(fleet)

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------

    def join(self) -> Result[JoinOutcome]:
        session = self.engine.session
        if not _valid_identity(session.player_name) or not _valid_identity(session.game_key):
            return self._invalid(
                f"Player name and game key must be at least {_cfg.MIN_IDENTITY_LENGTH} characters"
            )
        if len(session.fleet) != _cfg.FLEET_SIZE:
            return self._invalid(f"Exactly {_cfg.FLEET_SIZE} ships are required")
        try:
            validate_fleet(session.fleet, _SERVER_BOARD)
        except PlacementError as exc:
            return self._invalid(str(exc))
        claim = self.engine.claim_join()
        if not claim.granted:
            return self._invalid(claim.reason)

        self.is_loading = True
        try:
            result = self.client.join(session.player_name, session.game_key, session.fleet)
        finally:
            self.is_loading = False
        self.engine.apply_join(result, claim.ticket)
        self._report(result)
        return result

    def fire(self, x: int, y: int) -> Result[FireOutcome]:
        if not (0 <= x <= _cfg.COORD_MAX and 0 <= y <= _cfg.COORD_MAX):
            return self._invalid(f"Coordinates must be between 0 and {_cfg.COORD_MAX}")
        claim = self.engine.claim_fire(x, y)
        if not claim.granted:
            return self._invalid(claim.reason)

        session = self.engine.session
        self.is_loading = True
        try:
            result = self.client.fire(session.player_name, session.game_key, x, y)
        finally:
            self.is_loading = False
        self.engine.apply_fire(x, y, result, claim.ticket)
        if result.ok and result.value.error is not None:
            self._set_error(result.value.error)
        else:
            self._report(result)
        return result

    def play_again(self) -> None:
        """Reset for a new match, keeping player name and game key."""
        logger.info("Resetting game")
        self.engine.reset()
        self.error_message = None
        self.announcement = None

    def close(self) -> None:
        self.engine.close()
        self.client.close()

    # ------------------------------------------------------------------
    # Errors and announcements
    # ------------------------------------------------------------------

    def _invalid(self, message: str) -> Result:
        logger.info("Validation failed: %s", message)
        return self._fail(ValidationError(message))

    def _fail(self, error: ProtocolError) -> Result:
        self._set_error(error.message)
        return Result.failure(error)

    def _report(self, result: Result) -> None:
        if result.ok:
            self._clear_error()
        else:
            self._set_error(result.error.message)

    def _set_error(self, message: str) -> None:
        self.error_message = message
        self.engine.bus.emit(Event(Category.SYSTEM, "error", {"message": message}))

    def _clear_error(self) -> None:
        self.error_message = None

    def _announce(self, ev: Event) -> None:
        text = _announcement_for(ev)
        if text is None:
            return
        self.announcement = text
        self.engine.bus.emit(Event(Category.SYSTEM, "announcement", {"text": text}))


def _valid_identity(value: str) -> bool:
    return len(value.strip()) >= _cfg.MIN_IDENTITY_LENGTH


def _announcement_for(ev: Event) -> Optional[str]:
    p = ev.payload
    if ev.type == "enemy_hit":
        return f"You hit the enemy's {p['ship']}!" if p.get("ship") else "You hit an enemy ship!"
    if ev.type == "enemy_sunk":
        return f"You sunk the enemy's {p['ship']}!"
    if ev.type == "own_hit":
        return f"The enemy hit your {p['ship']}!"
    if ev.type == "own_sunk":
        return f"The enemy sunk your {p['ship']}!"
    if ev.type == "match_over":
        return "Congratulations! You won the game!" if p["outcome"] is Outcome.WON else "Game Over - You lost!"
    return None

"""Turn synchronization for one match against the game service.

The service never pushes anything, so the client has to work out whose turn
it is on its own and poll for the opponent's moves:

AWAITING_JOIN  no match yet; join() has not succeeded
MY_TURN        we may fire exactly one shot
POLLING        opponent's turn; a PollTask asks /game/enemyFire every few seconds
MATCH_OVER     terminal until reset()

Transitions
-----------
AWAITING_JOIN  join ok, no coordinates            -> MY_TURN (first mover)
AWAITING_JOIN  join ok, opponent shot in reply    -> shot resolved, MY_TURN (second mover)
MY_TURN        fire accepted                      -> POLLING, or MATCH_OVER(won) on gameover
MY_TURN        fire rejected "not your turn"      -> POLLING
MY_TURN        fire failed otherwise              -> MY_TURN (nothing recorded)
POLLING        opponent shot                      -> shot resolved, MY_TURN
POLLING        gameover                           -> MATCH_OVER(lost)
POLLING        no move yet / poll failed          -> POLLING
any            reset()                            -> AWAITING_JOIN

The server is authoritative for the ships *we* sank (cumulative shipsSunk on
every fire reply); we are authoritative for our own fleet, so incoming shots
are resolved locally.

Every mutation of the MatchSession happens under one lock. Events raised by a
mutation are queued and published only after the lock is released, so a
subscriber always sees a consistent snapshot and may call back into the
engine.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Protocol

from . import config as _cfg
from .battleship import Cell, Fleet, is_sunk, ship_hit_by
from .events import Category, Event, EventBus, Subscriber
from .match import MatchSession, MatchSnapshot, Outcome, Phase, Role, Shot, TurnOwner
from .poller import PollTask
from .protocol import GameClient, Result, ServerRejected, is_not_your_turn
from .wire import FireOutcome, JoinOutcome, OpponentMove

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    AWAITING_JOIN = "awaiting_join"
    MY_TURN = "my_turn"
    POLLING = "polling"
    MATCH_OVER = "match_over"


_PHASES = {
    TurnState.AWAITING_JOIN: Phase.SETUP,
    TurnState.MY_TURN: Phase.ACTIVE,
    TurnState.POLLING: Phase.ACTIVE,
    TurnState.MATCH_OVER: Phase.FINISHED,
}


class Poller(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


PollerFactory = Callable[[Callable[[], None], float], Poller]


@dataclass(frozen=True, slots=True)
class Claim:
    """Outcome of claim_join/claim_fire: a ticket when granted, a reason when refused."""

    ticket: Optional[int] = None
    reason: Optional[str] = None

    @property
    def granted(self) -> bool:
        return self.ticket is not None


class TurnEngine:
    """State machine deciding whose turn it is and reconciling poll results."""

    def __init__(
        self,
        client: GameClient,
        session: Optional[MatchSession] = None,
        *,
        poll_interval: float = _cfg.POLL_INTERVAL,
        poller_factory: PollerFactory = PollTask,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.client = client
        self.session = session if session is not None else MatchSession()
        self.poll_interval = poll_interval
        self.bus = bus if bus is not None else EventBus()
        self._poller_factory = poller_factory

        self._lock = threading.Lock()
        self._pending: list[Event] = []
        self._state = TurnState.AWAITING_JOIN
        # join/fire request outstanding; poll ticks are skipped meanwhile
        self._busy = False
        self._poll_in_flight = False
        self._poller: Optional[Poller] = None
        # bumped whenever polling stops so late poll results can be recognised
        self._generation = 0
        # bumped by reset() and close(); join/fire replies carry the value they were claimed under
        self._epoch = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def polling(self) -> bool:
        return self._poller is not None

    def snapshot(self) -> MatchSnapshot:
        with self._lock:
            return self.session.snapshot()

    def subscribe(self, cb: Subscriber) -> Callable[[], None]:
        return self.bus.subscribe(cb)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_identity(self, player_name: Optional[str] = None, game_key: Optional[str] = None) -> bool:
        """Change name and/or key; only allowed before joining."""
        with self._mutation():
            if self._state is not TurnState.AWAITING_JOIN:
                return False
            if player_name is not None:
                self.session.player_name = player_name
            if game_key is not None:
                self.session.game_key = game_key
            return True

    def set_fleet(self, fleet: Fleet) -> bool:
        with self._mutation():
            if self._state is not TurnState.AWAITING_JOIN:
                return False
            self.session.fleet = tuple(fleet)
            self._queue(Category.SYSTEM, "fleet", fleet=self.session.fleet)
            return True

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    def claim_join(self) -> Claim:
        """Reserve the engine for a join request; pass the claim's ticket to apply_join."""
        with self._mutation():
            if self._closed:
                return Claim(reason="The session is closed")
            if self._busy or self._state is not TurnState.AWAITING_JOIN:
                return Claim(reason="Already in a match; play again to start a new one")
            self._busy = True
            return Claim(ticket=self._epoch)

    def apply_join(self, result: Result[JoinOutcome], ticket: Optional[int] = None) -> None:
        with self._mutation():
            if ticket is not None and ticket != self._epoch:
                logger.debug("Dropping join result from before a reset")
                return
            if not self._busy or self._state is not TurnState.AWAITING_JOIN:
                logger.debug("Dropping join result: engine was reset meanwhile")
                return
            self._busy = False
            if not result.ok:
                logger.info("Join failed: %s", result.error)
                return

            outcome = result.value
            shot = outcome.opponent_shot
            if shot is None:
                logger.info("Joined as first mover")
                self.session.role = Role.FIRST
                if outcome.game_over:
                    logger.warning("Join reply without a shot claims the game is over; ignoring")
                self._set_state(TurnState.MY_TURN)
                return

            # the opponent moved before we joined; resolve it like any polled shot
            logger.info("Joined as second mover; opponent already fired at %s", shot)
            self.session.role = Role.SECOND
            self._resolve_incoming(shot)
            if outcome.game_over:
                self._finish(Outcome.LOST)
            else:
                self._set_state(TurnState.MY_TURN)

    # ------------------------------------------------------------------
    # Fire
    # ------------------------------------------------------------------

    def claim_fire(self, x: int, y: int) -> Claim:
        """Reserve our turn for a shot at (*x*, *y*).

        Turn ownership passes to the opponent immediately, so a second claim
        made before the reply arrives is refused. A refused claim carries the
        reason; a granted one carries the ticket to pass to apply_fire.
        """
        with self._mutation():
            if self._closed:
                return Claim(reason="The session is closed")
            if self._state is not TurnState.MY_TURN:
                return Claim(reason="It is not your turn")
            if self._busy:
                return Claim(reason="A shot is already on its way")
            if self.session.fired_at((x, y)):
                return Claim(reason=f"You already fired at ({x}, {y})")
            self._busy = True
            self.session.turn_owner = TurnOwner.OPPONENT
            return Claim(ticket=self._epoch)

    def apply_fire(self, x: int, y: int, result: Result[FireOutcome], ticket: Optional[int] = None) -> None:
        with self._mutation():
            if ticket is not None and ticket != self._epoch:
                logger.debug("Dropping fire result for (%d, %d) from before a reset", x, y)
                return
            if not self._busy or self._state is not TurnState.MY_TURN:
                logger.debug("Dropping fire result for (%d, %d): engine was reset meanwhile", x, y)
                return
            self._busy = False

            if not result.ok:
                rejected = isinstance(result.error, ServerRejected) and is_not_your_turn(result.error.message)
                self._fire_refused(x, y, result.error.message, stale_turn=rejected)
                return

            outcome = result.value
            if outcome.error is not None:
                self._fire_refused(x, y, outcome.error, stale_turn=is_not_your_turn(outcome.error))
                return

            reported = outcome.ships_sunk or ()
            new_sunk = tuple(name for name in reported if name not in self.session.sunk_ship_names)
            self.session.sunk_ship_names.update(reported)
            shot = Shot(x, y, outcome.hit, outcome.ship_type, new_sunk)
            self.session.outgoing.append(shot)

            self._queue(Category.SHOT, "shot_fired", shot=shot)
            if outcome.hit:
                self._queue(Category.SHOT, "enemy_hit", x=x, y=y, ship=outcome.ship_type)
            else:
                self._queue(Category.SHOT, "enemy_miss", x=x, y=y)
            for name in new_sunk:
                self._queue(Category.SHOT, "enemy_sunk", ship=name)

            if outcome.game_over:
                # the winner only ever learns of victory from its own fire reply
                self._finish(Outcome.WON)
            else:
                self._start_polling()

    def _fire_refused(self, x: int, y: int, message: str, *, stale_turn: bool) -> None:
        if stale_turn:
            # our idea of the turn was out of date; let the server lead
            logger.info("Fire at (%d, %d) refused, not our turn; polling", x, y)
            self._start_polling()
        else:
            logger.info("Fire at (%d, %d) failed: %s; turn restored", x, y, message)
            self.session.turn_owner = TurnOwner.SELF
            self._queue(Category.TURN, "turn_restored", x=x, y=y, reason=message)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_polling(self) -> None:
        self._stop_polling()
        self._set_state(TurnState.POLLING)
        if self._closed:
            return
        generation = self._generation
        self._poller = self._poller_factory(lambda: self._poll_tick(generation), self.poll_interval)
        self._poller.start()

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        self._generation += 1

    def _poll_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not TurnState.POLLING:
                return
            if self._busy or self._poll_in_flight:
                logger.debug("Skipping poll tick: another request is outstanding")
                return
            self._poll_in_flight = True
            player, key = self.session.player_name, self.session.game_key

        try:
            result = self.client.poll_opponent_move(player, key)
        finally:
            with self._lock:
                self._poll_in_flight = False
        self.apply_poll(result, generation)

    def apply_poll(self, result: Result[OpponentMove], generation: Optional[int] = None) -> None:
        """Reconcile one poll reply. Replies from a cancelled poll task are ignored."""
        with self._mutation():
            if generation is not None and generation != self._generation:
                logger.debug("Discarding poll result from cancelled poll task")
                return
            if self._state is not TurnState.POLLING:
                logger.debug("Discarding poll result: not polling (%s)", self._state.value)
                return

            if not result.ok:
                # keep polling until the phase changes
                logger.warning("Poll failed: %s", result.error)
                self._queue(Category.SYSTEM, "poll_failed", error=result.error.message)
                return

            move = result.value
            cell = move.shot
            resolved = False
            if cell is not None:
                last = self.session.incoming[-1].cell if self.session.incoming else None
                if cell == last:
                    # the service keeps answering with the last shot until a new one is made
                    logger.info("Ignoring repeat of the last opponent shot at %s", cell)
                elif self.session.received_at(cell):
                    # an older cell fired at again; the turn is ours but the log keeps one entry per cell
                    logger.info("Opponent fired at %s again", cell)
                    resolved = True
                else:
                    self._resolve_incoming(cell)
                    resolved = True

            if move.game_over:
                self._finish(Outcome.LOST)
            elif resolved:
                self._stop_polling()
                self._set_state(TurnState.MY_TURN)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _resolve_incoming(self, cell: Cell) -> None:
        x, y = cell
        ship = ship_hit_by(self.session.fleet, cell)
        if ship is None:
            self.session.incoming.append(Shot(x, y, False))
            self._queue(Category.SHOT, "opponent_miss", x=x, y=y)
            return

        name = ship.type.value
        was_sunk = name in self.session.own_sunk
        sunk_now = not was_sunk and is_sunk(ship, [shot.cell for shot in self.session.incoming] + [cell])
        self.session.incoming.append(Shot(x, y, True, name, (name,) if sunk_now else ()))
        if sunk_now:
            self.session.own_sunk.add(name)
            self._queue(Category.SHOT, "own_sunk", x=x, y=y, ship=name)
        else:
            self._queue(Category.SHOT, "own_hit", x=x, y=y, ship=name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _finish(self, outcome: Outcome) -> None:
        self._stop_polling()
        self.session.outcome = outcome
        self._set_state(TurnState.MATCH_OVER)
        logger.info("Match over: %s", outcome.value)
        self._queue(Category.TURN, "match_over", outcome=outcome)

    def reset(self) -> None:
        """Back to AWAITING_JOIN; keeps player name and game key, drops the rest."""
        with self._mutation():
            self._stop_polling()
            self._busy = False
            self._epoch += 1
            self.session.reset()
            self._set_state(TurnState.AWAITING_JOIN)

    def close(self) -> None:
        """Tear down: stop polling for good. Late results are discarded."""
        with self._mutation():
            self._closed = True
            self._epoch += 1
            self._stop_polling()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, new: TurnState) -> None:
        old = self._state
        self._state = new
        self.session.phase = _PHASES[new]
        self.session.turn_owner = TurnOwner.SELF if new is TurnState.MY_TURN else TurnOwner.OPPONENT
        if old is not new:
            logger.debug("State %s -> %s", old.value, new.value)
            self._queue(Category.TURN, "state", state=new, previous=old)

    def _queue(self, category: Category, type_: str, **payload) -> None:
        self._pending.append(Event(category, type_, payload))

    @contextlib.contextmanager
    def _mutation(self) -> Iterator[None]:
        with self._lock:
            try:
                yield
            finally:
                events, self._pending = self._pending, []
        for ev in events:
            self.bus.emit(ev)

"""Per-match client state.

MatchSession is the mutable record owned by SessionController and written
only by TurnEngine (under its lock). The UI never sees it directly; it reads
MatchSnapshot copies instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .battleship import Cell, Fleet


class Phase(str, Enum):
    SETUP = "setup"
    ACTIVE = "active"
    FINISHED = "finished"


class Role(str, Enum):
    FIRST = "first"
    SECOND = "second"


class TurnOwner(str, Enum):
    SELF = "self"
    OPPONENT = "opponent"


class Outcome(str, Enum):
    WON = "won"
    LOST = "lost"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True, slots=True)
class Shot:
    """A resolved shot in either direction."""

    x: int
    y: int
    hit: bool
    ship: Optional[str] = None  # ship type hit, when known
    sunk: Tuple[str, ...] = ()  # ships newly sunk by this shot

    @property
    def cell(self) -> Cell:
        return (self.x, self.y)


@dataclass(frozen=True, slots=True)
class MatchSnapshot:
    player_name: str
    game_key: str
    role: Optional[Role]
    phase: Phase
    turn_owner: TurnOwner
    fleet: Fleet
    outgoing: Tuple[Shot, ...]
    incoming: Tuple[Shot, ...]
    sunk_ship_names: frozenset
    own_sunk: frozenset
    outcome: Outcome


@dataclass
class MatchSession:
    player_name: str = ""
    game_key: str = ""
    role: Optional[Role] = None
    phase: Phase = Phase.SETUP
    turn_owner: TurnOwner = TurnOwner.OPPONENT
    fleet: Fleet = ()
    outgoing: list[Shot] = field(default_factory=list)
    incoming: list[Shot] = field(default_factory=list)
    sunk_ship_names: set[str] = field(default_factory=set)
    own_sunk: set[str] = field(default_factory=set)
    outcome: Outcome = Outcome.UNDETERMINED

    def fired_at(self, cell: Cell) -> bool:
        return any(shot.cell == cell for shot in self.outgoing)

    def received_at(self, cell: Cell) -> bool:
        return any(shot.cell == cell for shot in self.incoming)

    def snapshot(self) -> MatchSnapshot:
        return MatchSnapshot(
            player_name=self.player_name,
            game_key=self.game_key,
            role=self.role,
            phase=self.phase,
            turn_owner=self.turn_owner,
            fleet=tuple(self.fleet),
            outgoing=tuple(self.outgoing),
            incoming=tuple(self.incoming),
            sunk_ship_names=frozenset(self.sunk_ship_names),
            own_sunk=frozenset(self.own_sunk),
            outcome=self.outcome,
        )

    def reset(self) -> None:
        """Forget everything about the match except who we are and which game."""
        self.role = None
        self.phase = Phase.SETUP
        self.turn_owner = TurnOwner.OPPONENT
        self.fleet = ()
        self.outgoing.clear()
        self.incoming.clear()
        self.sunk_ship_names.clear()
        self.own_sunk.clear()
        self.outcome = Outcome.UNDETERMINED

"""
battleship.py

Contains the board model for the client, including:
 - ShipType / Orientation enums matching the server's wire names
 - Ship, an immutable anchor + orientation record with its occupied cells
 - Random and manual fleet placement with bounds and overlap checks
 - Hit and sunk detection against a shot log
 - render_grid() for a plain-text view of either board

Coordinates are (x, y) with x the column and y the row, both zero-based.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from . import config as _cfg

Cell = Tuple[int, int]
Fleet = Tuple["Ship", ...]


class PlacementError(ValueError):
    """Raised when a ship or fleet breaks the placement rules."""


class ShipType(str, enum.Enum):
    """The five ship kinds; the value is the name the server expects."""

    CARRIER = "Carrier"
    BATTLESHIP = "Battleship"
    DESTROYER = "Destroyer"
    SUBMARINE = "Submarine"
    PATROL_BOAT = "PatrolBoat"

    @property
    def size(self) -> int:
        return _SIZES[self.value]

    @property
    def letter(self) -> str:
        return _cfg.SHIP_LETTERS[self.value]


_SIZES = dict(_cfg.SHIPS)


class Orientation(str, enum.Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


@dataclass(frozen=True, slots=True)
class Ship:
    """A ship anchored at (*x*, *y*) extending right or down."""

    type: ShipType
    x: int
    y: int
    orientation: Orientation

    def cells(self) -> list[Cell]:
        return occupied_cells(self)


def occupied_cells(ship: Ship) -> list[Cell]:
    """Return the cells covered by *ship*, starting at its anchor."""
    if ship.orientation is Orientation.HORIZONTAL:
        return [(ship.x + i, ship.y) for i in range(ship.type.size)]
    return [(ship.x, ship.y + i) for i in range(ship.type.size)]


def in_bounds(cell: Cell, board_size: int = _cfg.BOARD_SIZE) -> bool:
    x, y = cell
    return 0 <= x < board_size and 0 <= y < board_size


def can_place(fleet: Sequence[Ship], ship: Ship, board_size: int = _cfg.BOARD_SIZE) -> bool:
    """Return True if *ship* fits on the board without touching a cell of *fleet*."""
    taken = {cell for other in fleet for cell in occupied_cells(other)}
    for cell in occupied_cells(ship):
        if not in_bounds(cell, board_size) or cell in taken:
            return False
    return True


def place_ship(fleet: Sequence[Ship], ship: Ship, board_size: int = _cfg.BOARD_SIZE) -> Fleet:
    """Return *fleet* with *ship* added, replacing any ship of the same type.

    Used for manual placement; raises PlacementError if the ship does not fit.
    """
    rest = tuple(s for s in fleet if s.type is not ship.type)
    if not can_place(rest, ship, board_size):
        raise PlacementError(f"Cannot place {ship.type.value} at ({ship.x}, {ship.y}) {ship.orientation.value}")
    return rest + (ship,)


def validate_fleet(fleet: Sequence[Ship], board_size: int = _cfg.BOARD_SIZE) -> None:
    """Raise PlacementError unless *fleet* is a complete, legal fleet."""
    if len(fleet) != _cfg.FLEET_SIZE:
        raise PlacementError(f"Exactly {_cfg.FLEET_SIZE} ships are required, got {len(fleet)}")
    if len({ship.type for ship in fleet}) != len(fleet):
        raise PlacementError("Each ship type must appear exactly once")
    placed: list[Ship] = []
    for ship in fleet:
        if not can_place(placed, ship, board_size):
            raise PlacementError(f"{ship.type.value} overlaps another ship or leaves the board")
        placed.append(ship)


def place_fleet_randomly(board_size: int = _cfg.BOARD_SIZE, rng: Optional[random.Random] = None) -> Fleet:
    """Randomly position one ship of every type without collisions.

    Ships are placed largest first. Each ship gets PLACEMENT_ATTEMPTS anchor
    samples; if one runs out the whole fleet is thrown away and placement
    starts over, at most PLACEMENT_RESTARTS times.
    """
    rng = rng or random.Random()
    types = sorted(ShipType, key=lambda t: t.size, reverse=True)
    if board_size < types[0].size:
        raise PlacementError(f"Board size {board_size} cannot hold a {types[0].value}")

    for _ in range(_cfg.PLACEMENT_RESTARTS):
        fleet: list[Ship] = []
        for ship_type in types:
            ship = _sample_ship(fleet, ship_type, board_size, rng)
            if ship is None:
                break
            fleet.append(ship)
        else:
            return tuple(fleet)
    raise PlacementError(f"Could not place a fleet on a {board_size}x{board_size} board")


def _sample_ship(fleet: Sequence[Ship], ship_type: ShipType, board_size: int, rng: random.Random) -> Optional[Ship]:
    for _ in range(_cfg.PLACEMENT_ATTEMPTS):
        orientation = rng.choice((Orientation.HORIZONTAL, Orientation.VERTICAL))
        # keep the far end on the board so only overlap can reject the sample
        max_x = board_size - ship_type.size if orientation is Orientation.HORIZONTAL else board_size - 1
        max_y = board_size - ship_type.size if orientation is Orientation.VERTICAL else board_size - 1
        ship = Ship(ship_type, rng.randint(0, max_x), rng.randint(0, max_y), orientation)
        if can_place(fleet, ship, board_size):
            return ship
    return None


def ship_hit_by(fleet: Iterable[Ship], cell: Cell) -> Optional[Ship]:
    """Return the ship in *fleet* covering *cell*, or None for open water."""
    for ship in fleet:
        if cell in occupied_cells(ship):
            return ship
    return None


def is_sunk(ship: Ship, shots: Iterable) -> bool:
    """True iff every cell of *ship* appears among *shots*.

    *shots* may hold plain (x, y) tuples or objects with ``x``/``y`` attributes.
    """
    fired = {shot if isinstance(shot, tuple) else (shot.x, shot.y) for shot in shots}
    return all(cell in fired for cell in occupied_cells(ship))


def render_grid(
    board_size: int = _cfg.BOARD_SIZE,
    *,
    fleet: Iterable[Ship] = (),
    shots: Iterable = (),
) -> list[str]:
    """Return one space-separated string per row.

    '.' is unknown water, 'o' a miss, 'X' a hit, and a ship letter an intact
    ship cell (only when *fleet* is given, i.e. for the own board).
    """
    grid = [["." for _ in range(board_size)] for _ in range(board_size)]
    for ship in fleet:
        for x, y in occupied_cells(ship):
            if in_bounds((x, y), board_size):
                grid[y][x] = ship.type.letter
    for shot in shots:
        x, y = shot.x, shot.y
        if in_bounds((x, y), board_size):
            grid[y][x] = "X" if shot.hit else "o"
    return [" ".join(row) for row in grid]

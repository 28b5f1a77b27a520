from dataclasses import dataclass
from typing import Union

from .battleship import Orientation, ShipType
from .coord_utils import COORD_RE, coord_to_xy


class CommandParseError(Exception):
    """Raised when a line cannot be parsed as a valid command."""


@dataclass(frozen=True)
class FireCommand:
    x: int
    y: int


@dataclass(frozen=True)
class PlaceCommand:
    ship: ShipType
    x: int
    y: int
    orientation: Orientation


@dataclass(frozen=True)
class NameCommand:
    value: str


@dataclass(frozen=True)
class KeyCommand:
    value: str


@dataclass(frozen=True)
class SimpleCommand:
    """Argument-less verbs: PING, RANDOM, CLEAR, JOIN, BOARD, AGAIN, HELP, QUIT."""

    verb: str


Command = Union[FireCommand, PlaceCommand, NameCommand, KeyCommand, SimpleCommand]

SIMPLE_VERBS = {"PING", "RANDOM", "CLEAR", "JOIN", "BOARD", "AGAIN", "HELP", "QUIT"}

_SHIP_NAMES = {t.value.upper(): t for t in ShipType}


def _coord(token: str):
    coord = token.strip().upper()
    if not COORD_RE.match(coord):
        raise CommandParseError(f"Invalid coordinate: {coord}")
    return coord_to_xy(coord)


def parse_command(line: str) -> Command:
    if line is None:
        raise CommandParseError("No command to parse")
    raw = line.strip()
    if not raw:
        raise CommandParseError("Empty command")
    parts = raw.split()
    verb = parts[0].upper()

    if verb == "FIRE":
        if len(parts) != 2:
            raise CommandParseError("FIRE requires a coordinate")
        x, y = _coord(parts[1])
        return FireCommand(x=x, y=y)
    if len(parts) == 1 and COORD_RE.match(verb):
        # bare coordinate is shorthand for FIRE
        x, y = coord_to_xy(verb)
        return FireCommand(x=x, y=y)
    if verb == "PLACE":
        if len(parts) != 4:
            raise CommandParseError("Syntax: PLACE <ship> <coord> <H|V>")
        ship = _SHIP_NAMES.get(parts[1].upper())
        if ship is None:
            raise CommandParseError(f"Unknown ship: {parts[1]}")
        x, y = _coord(parts[2])
        orient = parts[3].upper()
        if orient not in ("H", "V"):
            raise CommandParseError("Orientation must be H or V")
        orientation = Orientation.HORIZONTAL if orient == "H" else Orientation.VERTICAL
        return PlaceCommand(ship=ship, x=x, y=y, orientation=orientation)
    if verb in ("NAME", "KEY"):
        value = raw.split(maxsplit=1)[1].strip() if len(parts) > 1 else ""
        if not value:
            raise CommandParseError(f"{verb} requires a value")
        return NameCommand(value) if verb == "NAME" else KeyCommand(value)
    if verb in SIMPLE_VERBS and len(parts) == 1:
        return SimpleCommand(verb)
    raise CommandParseError(f"Unknown command: {raw}")

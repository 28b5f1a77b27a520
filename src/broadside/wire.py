"""JSON payloads exchanged with the game service.

Request bodies
--------------
/game/join       {"player", "gamekey", "ships": [{"ship", "x", "y", "orientation"}]}
/game/fire       {"player", "gamekey", "x", "y"}
/game/enemyFire  {"player", "gamekey"}

Response bodies
---------------
/ping            {"ping": bool}
/game/join       {"x"?: int, "y"?: int, "gameover": bool}
/game/fire       {"hit": bool, "shipsSunk"?: [str], "shipType"?: str, "gameover": bool, "Error"?: str}
/game/enemyFire  {"x"?: int, "y"?: int, "gameover": bool}
errors           {"Error": str}

The parse_* helpers accept the decoded JSON object and raise WireError when
it does not have the documented shape; they never touch the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from . import config as _cfg
from .battleship import Cell, Orientation, Ship, ShipType


class WireError(ValueError):
    """Raised when a payload does not match the documented shape."""


@dataclass(frozen=True, slots=True)
class Alive:
    ping: bool


@dataclass(frozen=True, slots=True)
class JoinOutcome:
    """Raw join reply.

    No coordinates means this client moves first on a fresh board; a
    coordinate pair is the opponent's first shot, already made.
    """

    x: Optional[int] = None
    y: Optional[int] = None
    game_over: bool = False

    @property
    def opponent_shot(self) -> Optional[Cell]:
        if self.x is None:
            return None
        return (self.x, self.y)


@dataclass(frozen=True, slots=True)
class FireOutcome:
    hit: bool = False
    ships_sunk: Optional[Tuple[str, ...]] = None  # cumulative, not just this shot
    ship_type: Optional[str] = None
    game_over: bool = False
    error: Optional[str] = None  # semantic rejection carried on a 2xx reply


@dataclass(frozen=True, slots=True)
class OpponentMove:
    x: Optional[int] = None
    y: Optional[int] = None
    game_over: bool = False

    @property
    def shot(self) -> Optional[Cell]:
        if self.x is None:
            return None
        return (self.x, self.y)

    @property
    def kind(self) -> str:
        """'shot', 'game_over' (no coordinates) or 'none' (opponent still thinking)."""
        if self.x is not None:
            return "shot"
        return "game_over" if self.game_over else "none"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


def ship_to_wire(ship: Ship) -> dict[str, Any]:
    return {"ship": ship.type.value, "x": ship.x, "y": ship.y, "orientation": ship.orientation.value}


def ship_from_wire(obj: Any) -> Ship:
    if not isinstance(obj, dict):
        raise WireError(f"ship entry must be an object, got {type(obj).__name__}")
    try:
        return Ship(
            ShipType(obj["ship"]),
            _int(obj, "x"),
            _int(obj, "y"),
            Orientation(obj["orientation"]),
        )
    except KeyError as exc:
        raise WireError(f"ship entry missing {exc}") from None
    except ValueError as exc:
        raise WireError(str(exc)) from None


def join_request(player: str, game_key: str, fleet: Sequence[Ship]) -> dict[str, Any]:
    return {"player": player, "gamekey": game_key, "ships": [ship_to_wire(s) for s in fleet]}


def fire_request(player: str, game_key: str, x: int, y: int) -> dict[str, Any]:
    return {"player": player, "gamekey": game_key, "x": x, "y": y}


def enemy_fire_request(player: str, game_key: str) -> dict[str, Any]:
    return {"player": player, "gamekey": game_key}


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def parse_alive(obj: Any) -> Alive:
    obj = _object(obj)
    return Alive(ping=_bool(obj, "ping"))


def parse_join(obj: Any) -> JoinOutcome:
    obj = _object(obj)
    x, y = _coords(obj)
    return JoinOutcome(x=x, y=y, game_over=_bool(obj, "gameover"))


def parse_fire(obj: Any) -> FireOutcome:
    obj = _object(obj)
    error = obj.get("Error")
    if error is not None and not isinstance(error, str):
        raise WireError("'Error' must be a string")
    if "hit" not in obj and error is None:
        raise WireError("fire reply carries neither 'hit' nor 'Error'")

    sunk = obj.get("shipsSunk")
    if sunk is not None:
        if not isinstance(sunk, list) or not all(isinstance(name, str) for name in sunk):
            raise WireError("'shipsSunk' must be a list of strings")
        sunk = tuple(sunk)
    ship_type = obj.get("shipType")
    if ship_type is not None and not isinstance(ship_type, str):
        raise WireError("'shipType' must be a string")

    return FireOutcome(
        hit=_bool(obj, "hit"),
        ships_sunk=sunk,
        ship_type=ship_type,
        game_over=_bool(obj, "gameover"),
        error=error,
    )


def parse_opponent_move(obj: Any) -> OpponentMove:
    obj = _object(obj)
    x, y = _coords(obj)
    return OpponentMove(x=x, y=y, game_over=_bool(obj, "gameover"))


def parse_error(obj: Any) -> Optional[str]:
    """Return the message of an ``{"Error": ...}`` payload, else None."""
    if isinstance(obj, dict) and isinstance(obj.get("Error"), str):
        return obj["Error"]
    return None


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _object(obj: Any) -> dict:
    if not isinstance(obj, dict):
        raise WireError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def _bool(obj: dict, key: str) -> bool:
    value = obj.get(key, False)
    if not isinstance(value, bool):
        raise WireError(f"{key!r} must be a boolean")
    return value


def _int(obj: dict, key: str) -> int:
    value = obj[key]
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool) or not isinstance(value, int):
        raise WireError(f"{key!r} must be an integer")
    return value


def _coords(obj: dict) -> Tuple[Optional[int], Optional[int]]:
    x, y = obj.get("x"), obj.get("y")
    if x is None and y is None:
        return None, None
    if x is None or y is None:
        raise WireError("only one of 'x'/'y' present")
    x, y = _int(obj, "x"), _int(obj, "y")
    if not (0 <= x <= _cfg.COORD_MAX and 0 <= y <= _cfg.COORD_MAX):
        raise WireError(f"coordinate ({x}, {y}) off the board")
    return x, y

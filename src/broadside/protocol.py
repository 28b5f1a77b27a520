"""HTTP client for the game service.

GameClient turns the four endpoints into typed calls that never raise:
every call returns a Result holding either the parsed reply or one of the
ProtocolError subclasses below.

    Unreachable     connection refused, DNS failure, timeout, non-2xx ping
    InvalidInput    local precondition failed, no request was sent
    ServerRejected  non-2xx reply with an {"Error": ...} payload
    Malformed       2xx reply whose body is empty or has the wrong shape
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from . import config as _cfg
from . import wire
from .battleship import Ship
from .wire import Alive, FireOutcome, JoinOutcome, OpponentMove

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProtocolError(Exception):
    """Base for every failure surfaced by GameClient."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unreachable(ProtocolError):
    """The service could not be reached in time."""


class InvalidInput(ProtocolError):
    """A local precondition failed; nothing was sent."""


# The controller reports its own precondition failures with the same type.
ValidationError = InvalidInput


class ServerRejected(ProtocolError):
    """The service answered with a well-formed error payload."""


class Malformed(ProtocolError):
    """The service answered 2xx with a body we cannot use."""


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Either ``value`` (success) or ``error`` (failure), never both."""

    value: Optional[T] = None
    error: Optional[ProtocolError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ProtocolError) -> "Result[T]":
        return cls(error=error)


def is_not_your_turn(message: Optional[str]) -> bool:
    return bool(message) and "not your turn" in message.lower()


class GameClient:
    """Typed wrapper around the game service's JSON endpoints."""

    def __init__(
        self,
        base_url: str = _cfg.BASE_URL,
        *,
        timeout: float = _cfg.TIMEOUT,
        retries: int = _cfg.HTTP_RETRIES,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            # retry refused/reset connections, never replay a request the server saw
            adapter = HTTPAdapter(max_retries=retries)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def probe(self) -> Result[Alive]:
        """GET /ping; every failure short of a bad body counts as unreachable."""
        result = self._call("GET", "ping", None, wire.parse_alive)
        if isinstance(result.error, ServerRejected):
            return Result.failure(Unreachable(result.error.message))
        return result

    def join(self, player: str, game_key: str, fleet: Sequence[Ship]) -> Result[JoinOutcome]:
        logger.info("Joining game %r as %r", game_key, player)
        return self._call("POST", "game/join", wire.join_request(player, game_key, fleet), wire.parse_join)

    def fire(self, player: str, game_key: str, x: int, y: int) -> Result[FireOutcome]:
        if not (0 <= x <= _cfg.COORD_MAX and 0 <= y <= _cfg.COORD_MAX):
            logger.warning("Refusing to fire at (%s, %s): off the board", x, y)
            return Result.failure(InvalidInput(f"Coordinates must be between 0 and {_cfg.COORD_MAX}"))
        logger.debug("Firing at (%d, %d) in game %r", x, y, game_key)
        return self._call("POST", "game/fire", wire.fire_request(player, game_key, x, y), wire.parse_fire)

    def poll_opponent_move(self, player: str, game_key: str) -> Result[OpponentMove]:
        logger.debug("Checking for enemy move in game %r", game_key)
        return self._call(
            "POST", "game/enemyFire", wire.enemy_fire_request(player, game_key), wire.parse_opponent_move
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _call(self, method: str, path: str, body: Any, parse: Callable[[Any], T]) -> Result[T]:
        url = urljoin(self.base_url, path)
        logger.debug("%s %s body=%r", method, url, body)
        try:
            resp = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.Timeout as exc:
            logger.warning("%s %s timed out after %ss", method, path, self.timeout)
            return Result.failure(Unreachable(f"Request timed out: {exc}"))
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return Result.failure(Unreachable(f"Network error: {exc}"))

        logger.debug("%s %s -> %d %r", method, path, resp.status_code, resp.text)

        if not resp.ok:
            message = wire.parse_error(_json_or_none(resp))
            if message is None:
                logger.warning("%s %s failed with HTTP %d", method, path, resp.status_code)
                return Result.failure(Unreachable(f"HTTP Error: {resp.status_code}"))
            logger.warning("%s %s rejected: %s", method, path, message)
            return Result.failure(ServerRejected(message))

        if not resp.content:
            logger.warning("%s %s returned an empty body", method, path)
            return Result.failure(Malformed("No response from server"))
        try:
            return Result.success(parse(resp.json()))
        except ValueError as exc:
            # covers both JSON decoding errors and wire.WireError
            logger.warning("%s %s returned an unusable body: %s", method, path, exc)
            return Result.failure(Malformed(f"Unexpected response from server: {exc}"))


def _json_or_none(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None

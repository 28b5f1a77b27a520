import json
import logging
import random
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable

import pytest
import requests

# Ensure local src importable before we import broadside
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from broadside.battleship import Orientation, Ship, ShipType
from broadside.protocol import GameClient
from broadside.session import SessionController

# Suppress INFO & DEBUG logs from engine and poll threads during tests
logging.basicConfig(level=logging.WARNING)

BASE_URL = "http://game.test/"

# A fixed, legal fleet so tests can aim at known cells.
#   Carrier     (0,0)-(4,0)
#   Battleship  (0,2)-(3,2)
#   Destroyer   (0,4)-(2,4)
#   Submarine   (5,5)-(5,7)
#   PatrolBoat  (8,8)-(9,8)
KNOWN_FLEET = (
    Ship(ShipType.CARRIER, 0, 0, Orientation.HORIZONTAL),
    Ship(ShipType.BATTLESHIP, 0, 2, Orientation.HORIZONTAL),
    Ship(ShipType.DESTROYER, 0, 4, Orientation.HORIZONTAL),
    Ship(ShipType.SUBMARINE, 5, 5, Orientation.VERTICAL),
    Ship(ShipType.PATROL_BOAT, 8, 8, Orientation.HORIZONTAL),
)


def make_response(status: int = 200, body: Any = None, *, raw: bytes | None = None) -> requests.Response:
    """Build a real requests.Response carrying *body* as JSON (or *raw* bytes)."""
    resp = requests.Response()
    resp.status_code = status
    resp.url = BASE_URL
    resp.encoding = "utf-8"
    if raw is not None:
        resp._content = raw
    elif body is None:
        resp._content = b""
    else:
        resp._content = json.dumps(body).encode()
    return resp


class FakeHttp:
    """Stand-in for requests.Session that replays scripted replies per endpoint.

    A scripted reply is a Response, an exception to raise, or a zero-argument
    callable producing either (useful to act while a request is "in flight").
    """

    def __init__(self) -> None:
        self.replies: dict[str, list] = defaultdict(list)
        self.calls: list[tuple[str, str, Any]] = []
        self.closed = False

    def script(self, path: str, *replies) -> None:
        self.replies[path].extend(replies)

    def reply(self, path: str, body: Any = None, status: int = 200) -> None:
        self.script(path, make_response(status, body))

    def request(self, method: str, url: str, json: Any = None, timeout: float | None = None):
        path = url.split("/", 3)[-1]
        self.calls.append((method, path, json))
        queue = self.replies[path]
        if not queue:
            raise AssertionError(f"unexpected request to {path}")
        reply = queue.pop(0)
        if callable(reply) and not isinstance(reply, requests.Response):
            reply = reply()
        if isinstance(reply, Exception):
            raise reply
        return reply

    def count(self, path: str) -> int:
        return sum(1 for _, p, _ in self.calls if p == path)

    def close(self) -> None:
        self.closed = True


class ManualPoller:
    """Poller that only ticks when the test says so."""

    def __init__(self, tick: Callable[[], None], interval: float) -> None:
        self._tick = tick
        self.interval = interval
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def tick(self) -> None:
        self._tick()


class PollerFactory:
    def __init__(self) -> None:
        self.created: list[ManualPoller] = []

    def __call__(self, tick: Callable[[], None], interval: float) -> ManualPoller:
        poller = ManualPoller(tick, interval)
        self.created.append(poller)
        return poller

    @property
    def latest(self) -> ManualPoller:
        return self.created[-1]


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def pollers() -> PollerFactory:
    return PollerFactory()


@pytest.fixture
def client(http: FakeHttp) -> GameClient:
    return GameClient(BASE_URL, timeout=1, session=http)


@pytest.fixture
def controller(client: GameClient, pollers: PollerFactory) -> SessionController:
    """Controller with identity set and KNOWN_FLEET placed, not yet joined."""
    ctl = SessionController(client, rng=random.Random(7), poller_factory=pollers)
    ctl.set_player_name("Sam")
    ctl.set_game_key("abc")
    ctl.engine.set_fleet(KNOWN_FLEET)
    return ctl


@pytest.fixture
def events(controller: SessionController) -> list:
    """Every event published by *controller*, in order."""
    seen: list = []
    controller.subscribe(seen.append)
    return seen


def event_types(events: list) -> list[str]:
    return [ev.type for ev in events]

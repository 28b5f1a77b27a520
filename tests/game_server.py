"""A small in-process game service speaking the same JSON endpoints as the real one.

Only what two well-behaved clients need: join pairing, strict turn order,
hit/sunk/gameover bookkeeping and a per-player queue of opponent shots.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import TracebackType
from typing import Any, Dict, List, Optional, Tuple, Type

from typing_extensions import Literal

from broadside.battleship import Orientation, ShipType

logger = logging.getLogger(__name__)

WAIT = 10.0


@dataclass
class _Player:
    name: str
    ships: Dict[str, set]
    hits: set = field(default_factory=set)
    pending: List[Tuple[int, int]] = field(default_factory=list)

    def sunk(self) -> List[str]:
        return [name for name, cells in self.ships.items() if cells <= self.hits]


@dataclass
class _Game:
    players: List[_Player] = field(default_factory=list)
    turn: Optional[str] = None
    over: bool = False

    def player(self, name: str) -> Optional[_Player]:
        return next((p for p in self.players if p.name == name), None)

    def opponent(self, name: str) -> Optional[_Player]:
        return next((p for p in self.players if p.name != name), None)


def _cells(ship: Dict[str, Any]) -> set:
    size = ShipType(ship["ship"]).size
    dx, dy = (1, 0) if ship["orientation"] == Orientation.HORIZONTAL.value else (0, 1)
    return {(ship["x"] + i * dx, ship["y"] + i * dy) for i in range(size)}


class GameServer:
    """Serve the game on 127.0.0.1 on an ephemeral port for the duration of a with-block."""

    def __init__(self) -> None:
        self.games: Dict[str, _Game] = {}
        self.cond = threading.Condition()
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        assert self._httpd is not None
        return f"http://127.0.0.1:{self._httpd.server_address[1]}/"

    def __enter__(self) -> "GameServer":
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                if self.path == "/ping":
                    self._send(200, {"ping": True})
                else:
                    self._send(404, {"Error": "Not found"})

            def do_POST(self) -> None:
                length = int(self.headers.get("Content-Length", 0))
                body = json.loads(self.rfile.read(length) or b"{}")
                routes = {
                    "/game/join": server.join,
                    "/game/fire": server.fire,
                    "/game/enemyFire": server.enemy_fire,
                }
                route = routes.get(self.path)
                if route is None:
                    self._send(404, {"Error": "Not found"})
                    return
                status, reply = route(body)
                self._send(status, reply)

            def _send(self, status: int, body: Dict[str, Any]) -> None:
                data = json.dumps(body).encode()
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(data)))
                self.end_headers()
                self.wfile.write(data)

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("game server: " + format, *args)

        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self._httpd.daemon_threads = True
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> Literal[False]:
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
        return False

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def join(self, body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        name, key = body["player"], body["gamekey"]
        ships = {s["ship"]: _cells(s) for s in body["ships"]}
        with self.cond:
            game = self.games.setdefault(key, _Game())
            if len(game.players) >= 2:
                return 400, {"Error": "Game is full"}
            me = _Player(name, ships)
            game.players.append(me)
            self.cond.notify_all()
            if len(game.players) == 1:
                game.turn = name
                if not self.cond.wait_for(lambda: len(game.players) == 2, WAIT):
                    return 504, {"Error": "No opponent"}
                return 200, {"gameover": False}

            # second player: hand back the first mover's opening shot
            if not self.cond.wait_for(lambda: bool(me.pending), WAIT):
                return 504, {"Error": "Opponent never fired"}
            x, y = me.pending.pop(0)
            return 200, {"x": x, "y": y, "gameover": game.over}

    def fire(self, body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        name, key, x, y = body["player"], body["gamekey"], body["x"], body["y"]
        with self.cond:
            game = self.games.get(key)
            if game is None or game.player(name) is None:
                return 400, {"Error": "Unknown game or player"}
            if game.over or game.turn != name:
                return 400, {"Error": "Not your turn"}
            target = game.opponent(name)
            if target is None:
                return 400, {"Error": "Not your turn"}

            ship_type = next((n for n, cells in target.ships.items() if (x, y) in cells), None)
            if ship_type is not None:
                target.hits.add((x, y))
            sunk = target.sunk()
            game.over = len(sunk) == len(target.ships)
            target.pending.append((x, y))
            game.turn = target.name
            self.cond.notify_all()

            reply: Dict[str, Any] = {"hit": ship_type is not None, "shipsSunk": sunk, "gameover": game.over}
            if ship_type is not None:
                reply["shipType"] = ship_type
            return 200, reply

    def enemy_fire(self, body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        name, key = body["player"], body["gamekey"]
        with self.cond:
            game = self.games.get(key)
            me = game.player(name) if game is not None else None
            if me is None:
                return 400, {"Error": "Unknown game or player"}
            if me.pending:
                x, y = me.pending.pop(0)
                return 200, {"x": x, "y": y, "gameover": game.over and not me.pending}
            return 200, {"gameover": game.over}

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def wait_for_players(self, key: str, count: int, timeout: float = WAIT) -> bool:
        with self.cond:
            return self.cond.wait_for(
                lambda: key in self.games and len(self.games[key].players) >= count, timeout
            )

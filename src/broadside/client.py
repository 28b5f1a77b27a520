"""Interactive terminal client."""

from __future__ import annotations

import argparse
import logging
import random

from . import config as _cfg
from .battleship import render_grid
from .commands import (
    CommandParseError,
    FireCommand,
    KeyCommand,
    NameCommand,
    PlaceCommand,
    SimpleCommand,
    parse_command,
)
from .coord_utils import format_coord
from .engine import TurnState
from .events import Event
from .protocol import GameClient
from .session import SessionController

logger = logging.getLogger(__name__)

HELP = """
Commands:
  NAME <name>                 set your player name (3+ characters)
  KEY <key>                   set the game key shared with your opponent (3+ characters)
  PING                        check the server is up
  RANDOM                      place your fleet randomly
  PLACE <ship> <coord> <H|V>  place one ship by hand, e.g. PLACE Carrier A1 H
  CLEAR                       remove all ships
  JOIN                        join the game
  FIRE <coord> | <coord>      fire at the opponent, e.g. FIRE E5 or just E5
  BOARD                       show both boards
  AGAIN                       reset after a match, keeping name and key
  QUIT                        exit

Rows are letters A-J, columns numbers 1-10.
"""


def _print_two_grids(left_rows: list[str], right_rows: list[str], *, header_left: str, header_right: str) -> None:
    """Helper to print two boards side-by-side with custom headers."""

    if not left_rows or not right_rows:
        return

    columns = len(left_rows[0].split())
    numeric_header = "   " + " ".join(f"{i:>2}" for i in range(1, columns + 1))
    board_width = len(numeric_header)

    print(f"\n{f'[{header_left}]'.center(board_width)}   {f'[{header_right}]'.center(board_width)}")
    print(f"{numeric_header}   {numeric_header}")
    for idx in range(len(left_rows)):
        label = chr(ord("A") + idx)
        left = " ".join(f"{c:>2}" for c in left_rows[idx].split())
        right = " ".join(f"{c:>2}" for c in right_rows[idx].split())
        print(f"{label:2} {left}   {label:2} {right}")


def _print_boards(ctl: SessionController) -> None:
    snap = ctl.snapshot
    own = render_grid(ctl.board_size, fleet=snap.fleet, shots=snap.incoming)
    opp = render_grid(ctl.board_size, shots=snap.outgoing)
    _print_two_grids(opp, own, header_left="Opponent Fleet", header_right="Your Fleet")
    if snap.sunk_ship_names:
        print(f"Sunk enemy ships: {', '.join(sorted(snap.sunk_ship_names))}")


_STATE_TEXT = {
    TurnState.AWAITING_JOIN: "INFO Set up your fleet and JOIN",
    TurnState.MY_TURN: "INFO YOUR TURN",
    TurnState.POLLING: "INFO Waiting for the opponent…",
}


def _make_printer(ctl: SessionController, verbose: int):
    def on_event(ev: Event) -> None:
        if ev.type in _cfg.QUIET_EVENTS or verbose < 0:
            return
        if ev.type == "announcement":
            print(f"\r*** {ev.payload['text']} ***")
        elif ev.type == "error":
            print(f"\rERR {ev.payload['message']}")
        elif ev.type == "state":
            state = ev.payload["state"]
            if state is TurnState.MY_TURN:
                _print_boards(ctl)
            if state in _STATE_TEXT:
                print(f"\r{_STATE_TEXT[state]}")
        elif ev.type == "enemy_miss":
            print(f"\rMISS at {format_coord(ev.payload['x'], ev.payload['y'])}")
        elif ev.type == "turn_restored" and verbose >= 1:
            print(f"\rINFO Still your turn; {format_coord(ev.payload['x'], ev.payload['y'])} was not fired")
        elif ev.type == "poll_failed" and verbose >= 1:
            print(f"\r[WARN] Poll failed: {ev.payload['error']} – retrying")
        elif ev.type == "match_over":
            _print_boards(ctl)
            print("Type AGAIN for a new match or QUIT to exit.")

    return on_event


def _dispatch(ctl: SessionController, cmd) -> bool:
    """Run one command; returns False when the user wants to leave."""
    if isinstance(cmd, FireCommand):
        ctl.fire(cmd.x, cmd.y)
    elif isinstance(cmd, PlaceCommand):
        if ctl.place_ship(cmd.ship, cmd.x, cmd.y, cmd.orientation).ok:
            _print_boards(ctl)
    elif isinstance(cmd, NameCommand):
        if not ctl.set_player_name(cmd.value):
            print(f"ERR Player name must be at least {_cfg.MIN_IDENTITY_LENGTH} characters")
    elif isinstance(cmd, KeyCommand):
        if not ctl.set_game_key(cmd.value):
            print(f"ERR Game key must be at least {_cfg.MIN_IDENTITY_LENGTH} characters")
    elif isinstance(cmd, SimpleCommand):
        verb = cmd.verb
        if verb == "QUIT":
            return False
        if verb == "HELP":
            print(HELP)
        elif verb == "PING":
            if ctl.ping().ok and ctl.error_message is None:
                print("INFO Server is running")
        elif verb == "RANDOM":
            if ctl.generate_fleet().ok:
                _print_boards(ctl)
        elif verb == "CLEAR":
            ctl.clear_fleet()
        elif verb == "JOIN":
            ctl.join()
        elif verb == "BOARD":
            _print_boards(ctl)
        elif verb == "AGAIN":
            ctl.play_again()
            print("INFO New match: place your fleet and JOIN")
    return True


def main() -> None:  # pragma: no cover – CLI entry
    """Interactive CLI client."""

    parser = argparse.ArgumentParser(description="Broadside Battleship client")
    parser.add_argument("--url", default=_cfg.BASE_URL, help="Base URL of the game service")
    parser.add_argument("--name", help="Player name")
    parser.add_argument("--key", help="Game key")
    parser.add_argument("--seed", type=int, help="Seed for random ship placement")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (stackable)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress most output")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if (args.debug or _cfg.DEBUG) else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    verbose = -1 if args.quiet else args.verbose

    ctl = SessionController(GameClient(args.url), rng=random.Random(args.seed))
    ctl.subscribe(_make_printer(ctl, verbose))
    if args.name:
        ctl.set_player_name(args.name)
    if args.key:
        ctl.set_game_key(args.key)

    print("Broadside – type HELP for commands.")
    try:
        while True:
            try:
                line = input(">> ")
            except EOFError:
                break
            if not line.strip():
                continue
            try:
                cmd = parse_command(line)
            except CommandParseError as exc:
                print(f"ERR {exc}")
                continue
            if not _dispatch(ctl, cmd):
                break
    except KeyboardInterrupt:
        logger.info("Client exiting")
    finally:
        ctl.close()


if __name__ == "__main__":  # pragma: no cover
    main()

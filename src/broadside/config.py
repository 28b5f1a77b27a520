"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
client talks to the public game server with production timings by default,
while the automated test-suite can point it at a local server and shrink the
poll interval.
"""

from __future__ import annotations

import os

# ===========================================================================
# Server Endpoint
# ===========================================================================
# BROADSIDE_URL: Base URL of the game service. A trailing "/" is added if missing.
#   Defaults to the course server on javaprojects.ch.
#   Example: export BROADSIDE_URL=http://127.0.0.1:8080/
BASE_URL: str = os.getenv("BROADSIDE_URL", "http://javaprojects.ch:50003/").rstrip("/") + "/"


# ===========================================================================
# Network Timing Controls
# ===========================================================================
# BROADSIDE_TIMEOUT: Seconds to wait for any single request (connect and read)
#   before it is treated as unreachable. Defaults to 120 (two minutes).
#   Example: export BROADSIDE_TIMEOUT=10
TIMEOUT: float = float(os.getenv("BROADSIDE_TIMEOUT", "120"))

# BROADSIDE_POLL_INTERVAL: Seconds between two "has the opponent moved yet?" polls.
#   Defaults to 5. Tests drop this to a few milliseconds.
#   Example: export BROADSIDE_POLL_INTERVAL=2
POLL_INTERVAL: float = float(os.getenv("BROADSIDE_POLL_INTERVAL", "5"))

# BROADSIDE_RETRIES: How many times a request is retried on connection failure
#   before giving up. Defaults to 1.
#   Example: export BROADSIDE_RETRIES=0
HTTP_RETRIES: int = int(os.getenv("BROADSIDE_RETRIES", "1"))


# ===========================================================================
# Game Constants
# ===========================================================================
# BROADSIDE_BOARD_SIZE: Width and height of the board used for random placement.
#   Defaults to 10 (for a 10x10 grid). The server only accepts 0..9 coordinates.
#   Example: export BROADSIDE_BOARD_SIZE=12
BOARD_SIZE: int = int(os.getenv("BROADSIDE_BOARD_SIZE", "10"))

# Largest coordinate the server accepts on either axis.
COORD_MAX = 9

# Standard ship roster: list of (name, size) tuples in descending size order.
# Names are the exact strings the server expects. Not overridden by env vars.
SHIPS = [
    ("Carrier", 5),
    ("Battleship", 4),
    ("Destroyer", 3),
    ("Submarine", 3),
    ("PatrolBoat", 2),
]

FLEET_SIZE = len(SHIPS)

# Unique single-letter representations for each ship on the board.
SHIP_LETTERS = {
    "Carrier": "C",
    "Battleship": "B",
    "Destroyer": "D",
    "Submarine": "S",
    "PatrolBoat": "P",
}

# Player name and game key must both be at least this long.
MIN_IDENTITY_LENGTH = 3


# ===========================================================================
# Random Placement
# ===========================================================================
# Anchor samples tried per ship before the whole fleet is discarded.
PLACEMENT_ATTEMPTS = 100
# Whole-fleet restarts before placement gives up.
PLACEMENT_RESTARTS = 50


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# BROADSIDE_DEBUG: If "1", enables detailed debug logging across modules,
#   including every request and response body.
#   Defaults to "0" (disabled).
#   Example: export BROADSIDE_DEBUG=1
DEBUG: bool = os.getenv("BROADSIDE_DEBUG", "0") == "1"

# BROADSIDE_QUIET: Comma-separated list of event types the CLI should *not* print.
#   Defaults to an empty list (all events printed).
#   Example: export BROADSIDE_QUIET="enemy_miss,poll_failed"
QUIET_EVENTS: list[str] = os.getenv("BROADSIDE_QUIET", "").split(",") if os.getenv("BROADSIDE_QUIET") else []

import re
from typing import Tuple

# Regex for valid coordinates A1-J10 (letter = row, number = column)
COORD_RE = re.compile(r"^[A-J](10|[1-9])$")


def coord_to_xy(coord: str) -> Tuple[int, int]:
    """
    Convert a coordinate like 'A1' through 'J10' to a zero-based (x, y) tuple.
    """
    coord = coord.strip().upper()
    y = ord(coord[0]) - ord('A')
    x = int(coord[1:]) - 1
    return x, y


def format_coord(x: int, y: int) -> str:
    """
    Convert zero-based (x, y) to a coordinate string like 'A1'.
    """
    return f"{chr(ord('A') + y)}{x + 1}"

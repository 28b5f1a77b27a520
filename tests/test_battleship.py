"""Unit tests for the board model."""

from __future__ import annotations

import random

import pytest

from broadside.battleship import (
    Orientation,
    PlacementError,
    Ship,
    ShipType,
    can_place,
    is_sunk,
    occupied_cells,
    place_fleet_randomly,
    place_ship,
    render_grid,
    ship_hit_by,
    validate_fleet,
)
from broadside.match import Shot
from conftest import KNOWN_FLEET


def test_occupied_cells_horizontal_and_vertical() -> None:
    assert occupied_cells(Ship(ShipType.DESTROYER, 2, 3, Orientation.HORIZONTAL)) == [(2, 3), (3, 3), (4, 3)]
    assert occupied_cells(Ship(ShipType.PATROL_BOAT, 7, 1, Orientation.VERTICAL)) == [(7, 1), (7, 2)]


@pytest.mark.parametrize("ship_type", list(ShipType))
@pytest.mark.parametrize("orientation", list(Orientation))
def test_occupied_cells_contiguous_and_sized(ship_type: ShipType, orientation: Orientation) -> None:
    ship = Ship(ship_type, 1, 1, orientation)
    cells = ship.cells()
    assert len(cells) == ship_type.size
    xs = [x for x, _ in cells]
    ys = [y for _, y in cells]
    if orientation is Orientation.HORIZONTAL:
        assert ys == [1] * ship_type.size
        assert xs == list(range(1, 1 + ship_type.size))
    else:
        assert xs == [1] * ship_type.size
        assert ys == list(range(1, 1 + ship_type.size))
    assert all(0 <= x < 10 and 0 <= y < 10 for x, y in cells)


def test_ship_sizes() -> None:
    assert {t.value: t.size for t in ShipType} == {
        "Carrier": 5,
        "Battleship": 4,
        "Destroyer": 3,
        "Submarine": 3,
        "PatrolBoat": 2,
    }


@pytest.mark.parametrize("board_size", [10, 11, 12, 15])
def test_random_fleet_is_always_legal(board_size: int) -> None:
    for seed in range(40):
        fleet = place_fleet_randomly(board_size, random.Random(seed))
        validate_fleet(fleet, board_size)
        assert {ship.type for ship in fleet} == set(ShipType)
        cells = [cell for ship in fleet for cell in ship.cells()]
        assert len(cells) == len(set(cells)) == 17


def test_random_fleet_deterministic_for_seed() -> None:
    assert place_fleet_randomly(10, random.Random(99)) == place_fleet_randomly(10, random.Random(99))


def test_random_fleet_placed_largest_first() -> None:
    fleet = place_fleet_randomly(10, random.Random(3))
    assert [ship.type.size for ship in fleet] == sorted((t.size for t in ShipType), reverse=True)


def test_random_fleet_rejects_board_smaller_than_carrier() -> None:
    with pytest.raises(PlacementError):
        place_fleet_randomly(4, random.Random(0))


def test_ship_hit_by() -> None:
    assert ship_hit_by(KNOWN_FLEET, (2, 0)).type is ShipType.CARRIER
    assert ship_hit_by(KNOWN_FLEET, (5, 7)).type is ShipType.SUBMARINE
    assert ship_hit_by(KNOWN_FLEET, (9, 9)) is None


def test_patrol_boat_sunk_only_when_both_cells_shot() -> None:
    boat = Ship(ShipType.PATROL_BOAT, 0, 0, Orientation.HORIZONTAL)
    assert not is_sunk(boat, [])
    assert not is_sunk(boat, [(0, 0)])
    assert not is_sunk(boat, [(0, 0), (0, 1)])
    assert is_sunk(boat, [(0, 0), (5, 5), (1, 0)])


def test_is_sunk_accepts_shot_records() -> None:
    boat = Ship(ShipType.PATROL_BOAT, 0, 0, Orientation.HORIZONTAL)
    assert is_sunk(boat, [Shot(0, 0, True), Shot(1, 0, True)])


def test_validate_fleet_rejects_wrong_count() -> None:
    with pytest.raises(PlacementError, match="Exactly 5"):
        validate_fleet(KNOWN_FLEET[:4])


def test_validate_fleet_rejects_duplicate_type() -> None:
    fleet = KNOWN_FLEET[:4] + (Ship(ShipType.CARRIER, 0, 9, Orientation.HORIZONTAL),)
    with pytest.raises(PlacementError, match="exactly once"):
        validate_fleet(fleet)


def test_validate_fleet_rejects_overlap_and_out_of_bounds() -> None:
    overlapping = KNOWN_FLEET[:4] + (Ship(ShipType.PATROL_BOAT, 4, 0, Orientation.VERTICAL),)
    with pytest.raises(PlacementError):
        validate_fleet(overlapping)
    off_board = KNOWN_FLEET[:4] + (Ship(ShipType.PATROL_BOAT, 9, 9, Orientation.HORIZONTAL),)
    with pytest.raises(PlacementError):
        validate_fleet(off_board)


def test_place_ship_replaces_same_type() -> None:
    fleet = place_ship((), Ship(ShipType.CARRIER, 0, 0, Orientation.HORIZONTAL))
    fleet = place_ship(fleet, Ship(ShipType.CARRIER, 0, 5, Orientation.VERTICAL))
    assert fleet == (Ship(ShipType.CARRIER, 0, 5, Orientation.VERTICAL),)


def test_place_ship_rejects_collision() -> None:
    fleet = place_ship((), Ship(ShipType.CARRIER, 0, 0, Orientation.HORIZONTAL))
    assert not can_place(fleet, Ship(ShipType.SUBMARINE, 2, 0, Orientation.VERTICAL))
    with pytest.raises(PlacementError):
        place_ship(fleet, Ship(ShipType.SUBMARINE, 2, 0, Orientation.VERTICAL))


def test_render_grid_marks_ships_hits_and_misses() -> None:
    rows = render_grid(10, fleet=KNOWN_FLEET, shots=[Shot(0, 0, True), Shot(9, 9, False)])
    assert rows[0].split()[:6] == ["X", "C", "C", "C", "C", "."]
    assert rows[9].split()[9] == "o"
    assert rows[8].split()[8:] == ["P", "P"]


def test_render_grid_opponent_view_hides_ships() -> None:
    rows = render_grid(10, shots=[Shot(3, 1, True)])
    assert rows[1].split()[3] == "X"
    assert sum(row.count("X") for row in rows) == 1
    assert all(set(row.split()) <= {".", "X"} for row in rows)

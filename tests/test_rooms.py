import pytest

from core.errors import RoomGrowthExhausted
from core.loc import Loc
from core.rand import Dice
from dungeon.blocks import EMPTY, RoomMark, StairBlock, is_wall
from dungeon.rooms import (GrowthStuck, RoomGenerator, bad_stairs, broken_entries, generate_rooms,
                           validate_floor, wall_clumps)
from dungeon.scan import StairFlag, room_adjacency, scan_rooms
from dungeon.topology import generate_base

START = Loc(6, 12)


@pytest.fixture(scope="module")
def room_floors():
    dice = Dice(2024)
    return generate_rooms(generate_base(3, START, dice, 13), dice)


# ----------------------------------------------------------
# Validation on hand-drawn floors
# ----------------------------------------------------------

def test_corridor_floor_is_valid(corridor_floor):
    assert validate_floor(corridor_floor) == []


def test_wall_clump_is_reported(make_floor):
    ctx = make_floor(
        "#######",
        "#<....#",
        "#.##..#",
        "#.##..#",
        "#....>#",
        "#.....#",
        "#######",
    )
    assert wall_clumps(ctx) == [Loc(2, 2)]
    assert validate_floor(ctx)[0].startswith("2x2 walls")


def test_outer_corners_are_not_clumps(corridor_floor):
    assert wall_clumps(corridor_floor) == []


def test_stair_right_behind_an_entry_is_bad(make_floor):
    ctx = make_floor(
        "#######",
        "#<#.#.#",
        "#.#.#.#",
        "#.+.+>#",
        "#.#.#.#",
        "#.#.#.#",
        "#######",
    )
    assert bad_stairs(ctx, scan_rooms(ctx)) == [Loc(5, 3)]
    assert any(problem.startswith("bad stairs") for problem in validate_floor(ctx))


def test_stair_outside_any_room_is_bad(corridor_floor):
    corridor_floor.up_stair_loc = Loc(2, 3)
    assert Loc(2, 3) in bad_stairs(corridor_floor, scan_rooms(corridor_floor))


def test_dangling_entry_is_broken(make_floor):
    ctx = make_floor(
        "#####",
        "#<..#",
        "#+###",
        "#..>#",
        "#####",
    )
    # (1,2) joins the two rooms. An entry touching only one room is broken.
    assert broken_entries(ctx, scan_rooms(ctx)) == []
    ctx.room_layer[Loc(4, 1)] = RoomMark.ENTRY
    assert broken_entries(ctx, scan_rooms(ctx)) == [Loc(4, 1)]


def test_disconnected_rooms_are_rejected(make_floor):
    ctx = make_floor(
        "#####",
        "#<..#",
        "#####",
        "#..>#",
        "#####",
    )
    assert validate_floor(ctx) == ["2 disconnected room groups"]


# ----------------------------------------------------------
# Generated floors
# ----------------------------------------------------------

def test_generated_floors_validate(room_floors):
    for ctx in room_floors:
        assert validate_floor(ctx) == []


def test_generated_floors_cover_every_cell(room_floors):
    for ctx in room_floors:
        assert ctx.room_layer.where(lambda mark: mark == RoomMark.EMPTY) == []


def test_borders_become_walls_and_entries_are_open(room_floors):
    for ctx in room_floors:
        for loc, mark in ctx.room_layer.cells():
            if mark == RoomMark.BORDER:
                assert is_wall(ctx.block_layer[loc])
            elif mark == RoomMark.ENTRY:
                assert not is_wall(ctx.block_layer[loc])


def test_stairs_survive_and_sit_in_rooms(room_floors):
    for ctx in room_floors:
        scan = scan_rooms(ctx)
        for stair in ctx.stair_locs:
            assert isinstance(ctx.block_layer[stair], StairBlock)
            assert ctx.room_layer[stair] == RoomMark.INNER
            assert scan.room_at(stair).contains(stair)


def test_room_pass_leaves_inputs_untouched():
    dice = Dice(5)
    base = generate_base(1, START, dice, 13)
    before = base[0].room_layer.copy()
    generate_rooms(base, dice)
    assert base[0].room_layer == before


def test_same_seed_same_rooms():
    def build():
        dice = Dice(77)
        return generate_rooms(generate_base(2, START, dice, 13), dice)

    assert [ctx.room_layer for ctx in build()] == [ctx.room_layer for ctx in build()]


def test_exhausted_attempts_name_the_floor(monkeypatch):
    dice = Dice(3)
    base = generate_base(1, START, dice, 13)[0]
    monkeypatch.setattr("dungeon.rooms.validate_floor", lambda ctx: ["always rejected"])
    with pytest.raises(RoomGrowthExhausted) as info:
        RoomGenerator(base, dice, max_attempts=3, floor=4).generate()
    assert info.value.floor == 4
    assert info.value.attempts == 3


# ----------------------------------------------------------
# Growth on hand-drawn floors
# ----------------------------------------------------------

def working_generator(ctx, seed=0, predefined=()):
    """Generator already mid-attempt on ctx; only the outer ring and predefined are protected."""
    gen = RoomGenerator(ctx, Dice(seed))
    gen.ctx = ctx
    gen.predefined = {loc for loc in ctx.room_layer.locs() if loc.is_border(ctx.size)} | set(predefined)
    return gen


def entries_of(ctx):
    return ctx.room_layer.where(lambda mark: mark == RoomMark.ENTRY)


OPEN_7 = (
    "#######",
    "#.....#",
    "#.....#",
    "#.....#",
    "#.....#",
    "#.....#",
    "#######",
)


def test_prepare_marks_walls_and_records_predefined(make_raw_floor):
    base = make_raw_floor(*OPEN_7)
    base.room_layer[Loc(3, 3)] = RoomMark.INNER
    gen = RoomGenerator(base, Dice(0))
    ctx = gen.prepare()
    assert ctx is not base
    assert all(ctx.room_layer[loc] == RoomMark.BORDER for loc in ctx.room_layer.locs() if loc.is_border(7))
    assert Loc(3, 3) in gen.predefined and Loc(0, 0) in gen.predefined
    assert Loc(1, 1) not in gen.predefined
    assert base.room_layer[Loc(0, 0)] == RoomMark.EMPTY


def test_small_region_is_taken_whole(make_raw_floor):
    base = make_raw_floor("#####", "#...#", "#...#", "#...#", "#####")
    gen = RoomGenerator(base, Dice(1), room_size_factor=2.0)
    gen.prepare()
    assert gen.grow(Loc(1, 1))
    interior = [Loc(x, y) for y in range(1, 4) for x in range(1, 4)]
    assert all(gen.ctx.room_layer[loc] == RoomMark.INNER for loc in interior)


@pytest.mark.parametrize("seed", range(12))
def test_grown_room_is_connected_and_fully_bordered(make_raw_floor, seed):
    base = make_raw_floor(*OPEN_7)
    gen = RoomGenerator(base, Dice(seed))
    ctx = gen.prepare()
    assert gen.grow(Loc(1, 1))
    inner = ctx.room_layer.where(lambda mark: mark == RoomMark.INNER)
    assert Loc(1, 1) in inner and len(inner) >= gen.area_min
    graph = ctx.room_layer.build_graph_dir4(lambda f, t: f[0] == t[0] == RoomMark.INNER)
    assert sorted(graph.single_source_reach(Loc(1, 1))) == sorted(inner)
    for loc in inner:
        assert all(ctx.room_layer[n] != RoomMark.EMPTY for n in loc.dir8(7))


@pytest.mark.parametrize("seed", range(12))
def test_stair_next_to_the_room_is_absorbed(make_raw_floor, seed):
    base = make_raw_floor(
        "#######",
        "#.>...#",
        "#.....#",
        "#.....#",
        "#.....#",
        "#.....#",
        "#######",
    )
    gen = RoomGenerator(base, Dice(seed))
    gen.prepare()
    assert gen.grow(Loc(1, 1))
    assert gen.ctx.room_layer[Loc(2, 1)] == RoomMark.INNER


@pytest.mark.parametrize("seed", range(12))
def test_cell_next_to_an_entry_is_absorbed(make_raw_floor, seed):
    base = make_raw_floor(*OPEN_7)
    base.room_layer[Loc(1, 3)] = RoomMark.ENTRY
    gen = RoomGenerator(base, Dice(seed))
    gen.prepare()
    assert gen.grow(Loc(1, 1))
    assert gen.ctx.room_layer[Loc(1, 2)] == RoomMark.INNER
    assert gen.ctx.room_layer[Loc(1, 3)] == RoomMark.ENTRY


def stair_trap(make_raw_floor):
    base = make_raw_floor("#####", "#...#", "#.>.#", "#...#", "#####")
    base.room_layer[Loc(2, 1)] = RoomMark.BORDER
    base.room_layer[Loc(1, 2)] = RoomMark.BORDER
    return base


def test_room_that_would_border_a_stair_is_rejected(make_raw_floor):
    gen = RoomGenerator(stair_trap(make_raw_floor), Dice(0))
    gen.prepare()
    assert not gen.grow(Loc(1, 1))
    assert gen.ctx.room_layer[Loc(1, 1)] == RoomMark.EMPTY
    assert gen.ctx.room_layer[Loc(2, 2)] == RoomMark.EMPTY
    assert gen.grow_failures == 1


def test_repeated_growth_failures_abort_the_attempt(make_raw_floor):
    gen = RoomGenerator(stair_trap(make_raw_floor), Dice(0), max_attempts=1)
    gen.prepare()
    with pytest.raises(GrowthStuck):
        gen.grow(Loc(1, 1))


def test_free_region_stops_at_marked_cells(make_raw_floor):
    gen = RoomGenerator(stair_trap(make_raw_floor), Dice(0))
    gen.prepare()
    assert gen._free_region(Loc(1, 1)) == [Loc(1, 1)]
    assert set(gen._free_region(Loc(3, 3))) == {
        Loc(3, 1), Loc(2, 2), Loc(3, 2), Loc(1, 3), Loc(2, 3), Loc(3, 3)}
    assert gen._free_region(Loc(0, 0)) == []


def test_leftovers_are_filled_in_every_pocket(make_raw_floor):
    base = make_raw_floor(*OPEN_7)
    base.room_layer.set([Loc(3, y) for y in range(1, 6)], RoomMark.BORDER)
    gen = RoomGenerator(base, Dice(9))
    ctx = gen.prepare()
    gen.fill_leftovers()
    assert ctx.room_layer.where(lambda mark: mark == RoomMark.EMPTY) == []
    assert all(ctx.room_layer[Loc(3, y)] == RoomMark.BORDER for y in range(1, 6))


# ----------------------------------------------------------
# Repair on hand-drawn floors
# ----------------------------------------------------------

PILLAR = (
    "#######",
    "#.....#",
    "#.....#",
    "#..#..#",
    "#.....#",
    "#.....#",
    "#######",
)


def test_border_inside_one_room_is_absorbed(make_floor):
    ctx = make_floor(*PILLAR)
    ctx.place_block(Loc(3, 3), EMPTY)
    working_generator(ctx).absorb_one_degree_borders()
    assert ctx.room_layer[Loc(3, 3)] == RoomMark.INNER
    assert len(scan_rooms(ctx).rooms) == 1


def test_predefined_border_is_never_absorbed(make_floor):
    ctx = make_floor(*PILLAR)
    working_generator(ctx, predefined=[Loc(3, 3)]).absorb_one_degree_borders()
    assert ctx.room_layer[Loc(3, 3)] == RoomMark.BORDER


def test_borders_between_rooms_stay(corridor_floor):
    before = corridor_floor.room_layer.copy()
    working_generator(corridor_floor).absorb_one_degree_borders()
    assert corridor_floor.room_layer == before


WALLED_CORRIDOR = (
    "#######",
    "#<#.#.#",
    "#.#.#.#",
    "#.#.#.#",
    "#.#.#.#",
    "#.#.#>#",
    "#######",
)


@pytest.mark.parametrize("seed", range(8))
def test_separate_rooms_get_a_spanning_set_of_entries(make_floor, seed):
    ctx = make_floor(*WALLED_CORRIDOR)
    working_generator(ctx, seed).connect_rooms()
    entries = entries_of(ctx)
    assert sorted(loc.x for loc in entries) == [2, 4]
    assert not any(is_wall(ctx.block_layer[loc]) for loc in entries)
    scan = scan_rooms(ctx)
    assert broken_entries(ctx, scan) == []
    assert len(room_adjacency(scan).multi_source_reach(list(range(3)))) == 1


@pytest.mark.parametrize("seed", range(8))
def test_predefined_borders_never_become_entries(make_floor, seed):
    ctx = make_floor(*WALLED_CORRIDOR)
    fixed = [Loc(2, y) for y in (1, 2, 3, 4)]
    working_generator(ctx, seed, predefined=fixed).connect_rooms()
    assert Loc(2, 5) in entries_of(ctx)
    assert not any(loc in entries_of(ctx) for loc in fixed)


def test_a_ring_of_rooms_closes_its_loop_about_half_the_time(make_floor):
    counts = set()
    for seed in range(40):
        ctx = make_floor(
            "#######",
            "#..#..#",
            "#..#..#",
            "#######",
            "#..#..#",
            "#..#..#",
            "#######",
        )
        working_generator(ctx, seed).connect_rooms()
        counts.add(len(entries_of(ctx)))
    assert counts == {3, 4}


def count_extra_entries(make_floor, art, candidates, runs):
    extra = 0
    for seed in range(runs):
        ctx = make_floor(*art)
        before = len(entries_of(ctx))
        walls = set(ctx.room_layer.where(lambda mark: mark == RoomMark.BORDER))
        working_generator(ctx, seed, predefined=walls - set(candidates)).connect_rooms()
        extra += len(entries_of(ctx)) - before
    return extra


def test_parallel_entry_is_usually_skipped(make_floor):
    art = (
        "#######",
        "#.....#",
        "#.....#",
        "#+#####",
        "#.....#",
        "#.....#",
        "#######",
    )
    extra = count_extra_entries(make_floor, art, [Loc(x, 3) for x in range(2, 6)], runs=200)
    assert 5 <= extra <= 45


def test_entry_into_a_busy_room_is_often_skipped(make_floor):
    # The centre room already has three entries and reaches the room below it
    # through the left column.
    art = (
        "#######",
        "#.#.#.#",
        "###+###",
        "#.+.+.#",
        "#+#####",
        "#.+.#.#",
        "#######",
    )
    extra = count_extra_entries(make_floor, art, [Loc(3, 4)], runs=300)
    assert 35 <= extra <= 95


SPUR = (
    "#######",
    "#.....#",
    "#+###.#",
    "#.###.#",
    "#.#####",
    "#<...>#",
    "#######",
)


def test_dead_end_stub_is_the_only_split_candidate(make_floor):
    ctx = make_floor(*SPUR)
    gen = working_generator(ctx)
    scan = scan_rooms(ctx)
    # (1,1) is also a dead end, but it sits right behind the entry.
    assert gen._stub_candidates(scan, scan.room_at(Loc(3, 1))) == [(Loc(5, 3), Loc(5, 2))]
    assert gen._stub_candidates(scan, scan.room_at(Loc(3, 5))) == []


def test_cut_into_three_pieces_is_not_a_split_candidate(make_floor):
    ctx = make_floor(
        "#######",
        "#.....#",
        "#+#.###",
        "#.#####",
        "#.#####",
        "#<...>#",
        "#######",
    )
    scan = scan_rooms(ctx)
    candidates = working_generator(ctx)._stub_candidates(scan, scan.room_at(Loc(3, 1)))
    assert candidates == [(Loc(5, 1), Loc(4, 1))]


def test_split_turns_the_stub_into_a_side_room(make_floor):
    ctx = make_floor(*SPUR)
    working_generator(ctx).split_sub_rooms()
    assert ctx.room_layer[Loc(5, 2)] == RoomMark.ENTRY
    scan = scan_rooms(ctx)
    assert len(scan.rooms) == 3
    assert broken_entries(ctx, scan) == []


def test_predefined_room_is_never_split(make_floor):
    ctx = make_floor(*SPUR)
    top = scan_rooms(ctx).room_at(Loc(3, 1)).inner
    working_generator(ctx, predefined=top).split_sub_rooms()
    assert ctx.room_layer[Loc(5, 2)] == RoomMark.INNER
    assert len(entries_of(ctx)) == 1


# ----------------------------------------------------------
# A whole floor from the start stair
# ----------------------------------------------------------

@pytest.mark.parametrize("seed", [1, 7, 31])
def test_single_floor_is_one_connected_group(seed):
    dice = Dice(seed)
    base = generate_base(1, START, dice, 13)[0]
    ctx = RoomGenerator(base, dice, floor=0).generate()
    scan = scan_rooms(ctx)
    assert len(scan.rooms) >= 2
    flags = StairFlag.NONE
    for room in scan.rooms:
        flags |= room.stair
    assert flags == StairFlag.BOTH
    components = room_adjacency(scan).multi_source_reach(list(range(len(scan.rooms))))
    assert len(components) == 1
    assert len(components[0]) == len(scan.rooms)

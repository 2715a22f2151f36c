from core.loc import Loc


def test_dump_and_load_keys():
    loc = Loc(3, 11)
    assert loc.dump() == "3,11"
    assert Loc.load("3,11") == loc


def test_dir4_clips_to_floor():
    assert Loc(0, 0).dir4(5) == [Loc(0, 1), Loc(1, 0)]
    assert len(Loc(2, 2).dir4(5)) == 4


def test_dir8_order_and_clipping():
    assert Loc(2, 2).dir8(5) == [
        Loc(2, 1), Loc(2, 3), Loc(1, 2), Loc(3, 2),
        Loc(1, 1), Loc(3, 1), Loc(1, 3), Loc(3, 3),
    ]
    assert len(Loc(4, 4).dir8(5)) == 3


def test_border_and_corner():
    assert Loc(6, 12).is_border(13)
    assert not Loc(6, 12).is_corner(13)
    assert Loc(12, 0).is_corner(13)
    assert not Loc(6, 6).is_border(13)


def test_steps_and_adjacency():
    loc = Loc(4, 4)
    assert (loc.up(), loc.down(), loc.left(), loc.right()) == (Loc(4, 3), Loc(4, 5), Loc(3, 4), Loc(5, 4))
    assert loc.is_near(Loc(5, 4))
    assert not loc.is_near(Loc(5, 5))
    assert loc.distance(Loc(7, 8)) == 5.0


def test_locs_are_hashable_and_ordered():
    assert len({Loc(1, 2), Loc(1, 2), Loc(2, 1)}) == 2
    assert sorted([Loc(2, 0), Loc(1, 5)]) == [Loc(1, 5), Loc(2, 0)]

import pytest

from tarification.schemas.room_demand import BedType, RoomDemandEntry
from tarification.services import room_demand
from tarification.services.room_demand import RoomDemandEditor, RoomDemandError


def entries(*pairs):
    return [RoomDemandEntry(bed_type=bt, qty=qty) for bt, qty in pairs]


def as_pairs(demand):
    return [(entry.bed_type.value, entry.qty) for entry in demand]


def test_edit_scenario():
    demand = entries(("DBL", 2))

    demand = room_demand.add(demand, "TWN")
    assert as_pairs(demand) == [("DBL", 2), ("TWN", 1)]

    demand = room_demand.decrement(demand, "TWN")
    assert as_pairs(demand) == [("DBL", 2), ("TWN", 1)]

    demand = room_demand.remove(demand, "DBL")
    assert as_pairs(demand) == [("TWN", 1)]


def test_functions_do_not_mutate_input():
    demand = entries(("DBL", 2))
    room_demand.add(demand, "SGL")
    room_demand.increment(demand, "DBL")
    assert as_pairs(demand) == [("DBL", 2)]


def test_increment_and_decrement():
    demand = entries(("DBL", 1), ("SGL", 1))
    demand = room_demand.increment(demand, "DBL")
    demand = room_demand.increment(demand, "DBL")
    assert as_pairs(demand) == [("DBL", 3), ("SGL", 1)]
    demand = room_demand.decrement(demand, "DBL")
    assert as_pairs(demand) == [("DBL", 2), ("SGL", 1)]


def test_missing_bed_type_is_a_no_op():
    demand = entries(("DBL", 1))
    assert as_pairs(room_demand.increment(demand, "TPL")) == [("DBL", 1)]
    assert as_pairs(room_demand.decrement(demand, "TPL")) == [("DBL", 1)]
    assert as_pairs(room_demand.remove(demand, "TPL")) == [("DBL", 1)]


def test_addable_bed_types_excludes_used_ones_in_display_order():
    demand = entries(("TWN", 1))
    assert room_demand.addable_bed_types(demand) == [
        BedType.DBL, BedType.SGL, BedType.TPL, BedType.FAM, BedType.EXB, BedType.CNT,
    ]
    assert room_demand.addable_bed_types(demand, ["SGL", "TWN", "DBL"]) == [BedType.DBL, BedType.SGL]


def test_add_rejects_duplicate_bed_type():
    with pytest.raises(RoomDemandError) as exc:
        room_demand.add(entries(("DBL", 1)), "DBL")
    assert exc.value.bed_type == "DBL"


def test_add_rejects_unavailable_bed_type():
    with pytest.raises(RoomDemandError):
        room_demand.add([], "FAM", available_bed_types=["DBL", "TWN"])


def test_unavailable_bed_types_are_flagged_not_dropped():
    demand = entries(("DBL", 1), ("FAM", 1))
    assert room_demand.unavailable_bed_types(demand, ["DBL", "TWN"]) == [BedType.FAM]
    assert room_demand.unavailable_bed_types(demand) == []


def test_parse_room_demand():
    demand = room_demand.parse_room_demand([{"bed_type": "DBL", "qty": 2}, {"bed_type": "SGL"}])
    assert as_pairs(demand) == [("DBL", 2), ("SGL", 1)]
    assert room_demand.parse_room_demand(None) == []


@pytest.mark.parametrize(
    "raw",
    [
        [{"bed_type": "DBL", "qty": 0}],
        [{"bed_type": "XXL", "qty": 1}],
        [{"bed_type": "DBL", "qty": 1}, {"bed_type": "DBL", "qty": 2}],
    ],
)
def test_parse_room_demand_rejects_invalid_payloads(raw):
    with pytest.raises(RoomDemandError):
        room_demand.parse_room_demand(raw)


def test_room_counts():
    demand = entries(("DBL", 2), ("SGL", 1))
    assert room_demand.room_demand_to_room_counts(demand) == {"dbl": 2, "sgl": 1}


def test_invariants_hold_after_any_sequence_of_operations():
    demand = []
    operations = [
        ("add", "DBL"), ("add", "SGL"), ("decrement", "SGL"), ("increment", "DBL"),
        ("decrement", "DBL"), ("decrement", "DBL"), ("remove", "SGL"), ("add", "SGL"),
        ("increment", "SGL"), ("remove", "DBL"), ("add", "DBL"), ("decrement", "DBL"),
    ]
    for name, bed_type in operations:
        demand = getattr(room_demand, name)(demand, bed_type)
        bed_types = [entry.bed_type for entry in demand]
        assert len(bed_types) == len(set(bed_types))
        assert all(entry.qty >= 1 for entry in demand)


class TestRoomDemandEditor:
    def test_on_change_called_only_on_effective_changes(self):
        calls = []
        editor = RoomDemandEditor(entries(("DBL", 2)), on_change=lambda: calls.append(1))

        editor.add("TWN")
        editor.decrement("TWN")  # floor: no change
        editor.increment("DBL")
        editor.remove("CNT")  # absent: no change

        assert len(calls) == 2
        assert as_pairs(editor.entries) == [("DBL", 3), ("TWN", 1)]

    def test_available_bed_types(self):
        editor = RoomDemandEditor(entries(("FAM", 1)), available_bed_types=["DBL", "FAM"])
        assert editor.addable == [BedType.DBL]

        editor.set_available_bed_types(["DBL", "TWN"])
        assert editor.unavailable == [BedType.FAM]
        assert editor.addable == [BedType.DBL, BedType.TWN]
        assert as_pairs(editor.entries) == [("FAM", 1)]

    def test_rejects_duplicate_initial_entries(self):
        with pytest.raises(RoomDemandError):
            RoomDemandEditor(entries(("DBL", 1), ("DBL", 2)))

    def test_to_room_counts(self):
        editor = RoomDemandEditor(entries(("TWN", 2)))
        assert editor.to_room_counts() == {"twn": 2}

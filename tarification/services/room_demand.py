"""
Room demand editing.

A room demand is a list of (bed type, quantity) entries with at most one
entry per bed type and every quantity >= 1. All functions are pure: they
return a new list and never mutate their input.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from tarification.schemas.room_demand import ALL_BED_TYPES, BedType, RoomDemandEntry

logger = logging.getLogger(__name__)


class RoomDemandError(ValueError):
    """Raised when a room demand would break its invariants."""

    def __init__(self, message: str, bed_type: Optional[str] = None):
        self.bed_type = bed_type
        self.message = message
        super().__init__(message)


RoomDemand = List[RoomDemandEntry]


def _pool(available_bed_types: Optional[Iterable[str]]) -> List[BedType]:
    """Bed types that may be used, in display order."""
    if available_bed_types is None:
        return list(ALL_BED_TYPES)
    allowed = {BedType(bt) for bt in available_bed_types}
    return [bt for bt in ALL_BED_TYPES if bt in allowed]


def used_bed_types(entries: Sequence[RoomDemandEntry]) -> List[BedType]:
    return [entry.bed_type for entry in entries]


def addable_bed_types(
    entries: Sequence[RoomDemandEntry],
    available_bed_types: Optional[Iterable[str]] = None,
) -> List[BedType]:
    """All (or available) bed types minus the ones already present."""
    used = set(used_bed_types(entries))
    return [bt for bt in _pool(available_bed_types) if bt not in used]


def add(
    entries: Sequence[RoomDemandEntry],
    bed_type: str,
    available_bed_types: Optional[Iterable[str]] = None,
) -> RoomDemand:
    """Append one room of ``bed_type``."""
    bed_type = BedType(bed_type)
    if bed_type not in addable_bed_types(entries, available_bed_types):
        if bed_type in used_bed_types(entries):
            raise RoomDemandError(f"Bed type {bed_type.value} is already in the room demand", bed_type.value)
        raise RoomDemandError(f"Bed type {bed_type.value} is not available", bed_type.value)
    return list(entries) + [RoomDemandEntry(bed_type=bed_type, qty=1)]


def change_qty(entries: Sequence[RoomDemandEntry], bed_type: str, delta: int) -> RoomDemand:
    """Shift the quantity of ``bed_type`` by ``delta``, never below 1."""
    bed_type = BedType(bed_type)
    return [
        entry.model_copy(update={"qty": max(1, entry.qty + delta)}) if entry.bed_type == bed_type else entry
        for entry in entries
    ]


def increment(entries: Sequence[RoomDemandEntry], bed_type: str) -> RoomDemand:
    return change_qty(entries, bed_type, 1)


def decrement(entries: Sequence[RoomDemandEntry], bed_type: str) -> RoomDemand:
    """Decrease by one. From 1 this is a no-op: removal is a separate action."""
    return change_qty(entries, bed_type, -1)


def remove(entries: Sequence[RoomDemandEntry], bed_type: str) -> RoomDemand:
    bed_type = BedType(bed_type)
    return [entry for entry in entries if entry.bed_type != bed_type]


def unavailable_bed_types(
    entries: Sequence[RoomDemandEntry],
    available_bed_types: Optional[Iterable[str]] = None,
) -> List[BedType]:
    """
    Entries whose bed type is not offered by the current room category.

    They are kept in the demand and flagged, so switching back to a category
    that offers them loses nothing.
    """
    if available_bed_types is None:
        return []
    pool = set(_pool(available_bed_types))
    return [entry.bed_type for entry in entries if entry.bed_type not in pool]


def ensure_unique_bed_types(entries: Sequence[RoomDemandEntry]) -> None:
    seen = set()
    for entry in entries:
        if entry.bed_type in seen:
            raise RoomDemandError(f"Duplicate bed type {entry.bed_type.value} in room demand", entry.bed_type.value)
        seen.add(entry.bed_type)


def parse_room_demand(raw: Optional[List[Dict[str, Any]]]) -> RoomDemand:
    """
    Parse a stored/posted room demand, e.g. [{"bed_type": "DBL", "qty": 2}].

    Raises RoomDemandError on unknown bed types, qty < 1 or duplicates.
    """
    entries = []
    for item in raw or []:
        try:
            entries.append(RoomDemandEntry.model_validate(item))
        except ValidationError as e:
            raise RoomDemandError(f"Invalid room demand entry {item!r}: {e.errors()[0]['msg']}") from e
    ensure_unique_bed_types(entries)
    return entries


def room_demand_to_room_counts(entries: Sequence[RoomDemandEntry]) -> Dict[str, int]:
    """Convert to pax config room keys: [{DBL, 2}] -> {"dbl": 2}."""
    return {entry.bed_type.value.lower(): entry.qty for entry in entries}


def dump_room_demand(entries: Sequence[RoomDemandEntry]) -> List[Dict[str, Any]]:
    return [entry.model_dump(mode="json") for entry in entries]


class RoomDemandEditor:
    """
    Editable room demand bound to an optional set of available bed types.

    ``on_change`` is called after every effective change.
    """

    def __init__(
        self,
        entries: Optional[Sequence[RoomDemandEntry]] = None,
        available_bed_types: Optional[Iterable[str]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.entries: RoomDemand = list(entries or [])
        ensure_unique_bed_types(self.entries)
        self.available_bed_types = list(available_bed_types) if available_bed_types is not None else None
        self.on_change = on_change

    def _set(self, entries: RoomDemand) -> None:
        if entries == self.entries:
            return
        self.entries = entries
        if self.on_change:
            self.on_change()

    @property
    def addable(self) -> List[BedType]:
        return addable_bed_types(self.entries, self.available_bed_types)

    @property
    def unavailable(self) -> List[BedType]:
        return unavailable_bed_types(self.entries, self.available_bed_types)

    def add(self, bed_type: str) -> None:
        self._set(add(self.entries, bed_type, self.available_bed_types))

    def increment(self, bed_type: str) -> None:
        self._set(increment(self.entries, bed_type))

    def decrement(self, bed_type: str) -> None:
        self._set(decrement(self.entries, bed_type))

    def remove(self, bed_type: str) -> None:
        self._set(remove(self.entries, bed_type))

    def set_available_bed_types(self, available_bed_types: Optional[Iterable[str]]) -> None:
        self.available_bed_types = list(available_bed_types) if available_bed_types is not None else None
        if self.unavailable:
            logger.info("Room demand has unavailable bed types: %s", [bt.value for bt in self.unavailable])

    def to_room_counts(self) -> Dict[str, int]:
        return room_demand_to_room_counts(self.entries)

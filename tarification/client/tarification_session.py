"""
Tarification editing session: the state behind the tarification panel.

States::

    idle -> editing -> computing -> computed -> saving -> saved
                          |                       |
                          +------> error <--------+

Entries are edited as plain dicts (form values) for the active mode and
only validated when they are sent. Switching mode drops the entries: they
do not carry over between modes.

Last request wins: every edit and every compute bumps a request token, and
a compute response whose token is no longer current is discarded. Closing
the session discards all responses still in flight.

Errors are kept per action (``compute_error``, ``save_error``) and never
clear edits or the last computed result.
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from tarification.client.api_client import ApiClient, ApiError
from tarification.schemas.room_demand import RoomDemandEntry
from tarification.schemas.tarification import (
    CotationSupplement,
    PaxComposition,
    TarificationComputeResult,
    TarificationData,
    TarificationMode,
    ENTRY_TYPES,
)
from tarification.services.room_demand import RoomDemandEditor, dump_room_demand, parse_room_demand
from tarification.services.tarification_engine import TarificationValidationError, validate_tarification
from tarification.services.validity import ValidityStatus, validity_status

logger = logging.getLogger(__name__)

Entry = Union[Dict[str, Any], BaseModel]


class SessionState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    COMPUTING = "computing"
    COMPUTED = "computed"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class SessionClosedError(RuntimeError):
    """The session was closed; it no longer sends requests."""


def _entry_to_dict(entry: Optional[Entry], mode: TarificationMode) -> Dict[str, Any]:
    if entry is None:
        entry = ENTRY_TYPES[mode]()
    if isinstance(entry, BaseModel):
        return entry.model_dump(mode="json", exclude_none=True)
    return dict(entry)


class TarificationSession:
    """
    Edit, compute and save the tarification of one cotation.

    Args:
        api: Client used for compute and save requests.
        cotation_id: Cotation being priced.
        mode: Active tarification mode.
        entries: Entries of the active mode (dicts or entry models).
        pax: Pax composition sent with compute requests.
        room_demand: Initial room demand.
        available_bed_types: Bed types the room demand may use (None = all).
        supplements: Supplements sent with compute requests; None lets the
            server use the ones saved on the cotation.
    """

    def __init__(
        self,
        api: ApiClient,
        cotation_id: int,
        mode: TarificationMode = TarificationMode.RANGE_WEB,
        entries: Optional[Sequence[Entry]] = None,
        validity_date: Optional[date] = None,
        pax: Optional[PaxComposition] = None,
        room_demand: Optional[Sequence[RoomDemandEntry]] = None,
        available_bed_types: Optional[Iterable[str]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        supplements: Optional[List[CotationSupplement]] = None,
    ):
        self.api = api
        self.cotation_id = cotation_id
        self.mode = TarificationMode(mode)
        self.entries: List[Dict[str, Any]] = [_entry_to_dict(e, self.mode) for e in entries or []]
        self.validity_date = validity_date
        self.pax = pax or PaxComposition()
        self.start_date = start_date
        self.end_date = end_date
        self.supplements = supplements
        self.room_demand = RoomDemandEditor(room_demand, available_bed_types, on_change=self._mark_edited)

        self.state = SessionState.IDLE
        self.result: Optional[TarificationComputeResult] = None
        self.compute_error: Optional[Exception] = None
        self.save_error: Optional[Exception] = None
        self.saved_cotation: Optional[Dict[str, Any]] = None

        self._token = 0
        self._version = 0
        self._closed = False

    @classmethod
    async def load(
        cls,
        api: ApiClient,
        cotation_id: int,
        pax: Optional[PaxComposition] = None,
        available_bed_types: Optional[Iterable[str]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> "TarificationSession":
        """Open a session on the entries saved on a cotation."""
        cotation = await api.get(f"/cotations/{cotation_id}")
        saved = cotation.get("tarification_json") or {}
        validity_date = saved.get("validity_date")

        return cls(
            api,
            cotation_id,
            mode=saved.get("mode") or TarificationMode.RANGE_WEB,
            entries=saved.get("entries") or [],
            validity_date=date.fromisoformat(validity_date) if validity_date else None,
            pax=pax,
            room_demand=parse_room_demand(cotation.get("room_demand_override")),
            available_bed_types=available_bed_types,
            start_date=start_date,
            end_date=end_date,
        )

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _mark_edited(self) -> None:
        self._token += 1
        self._version += 1
        if not self._closed:
            self.state = SessionState.EDITING

    def set_mode(self, mode: TarificationMode) -> None:
        """Switch mode; the entries of the previous mode are dropped."""
        mode = TarificationMode(mode)
        if mode == self.mode:
            return
        logger.debug(
            "Cotation %s: mode %s -> %s, %d entries dropped",
            self.cotation_id, self.mode.value, mode.value, len(self.entries),
        )
        self.mode = mode
        self.entries = []
        self._mark_edited()

    def set_entries(self, entries: Sequence[Entry]) -> None:
        self.entries = [_entry_to_dict(e, self.mode) for e in entries]
        self._mark_edited()

    def add_entry(self, entry: Optional[Entry] = None) -> int:
        """Append an entry (defaults of the mode when omitted); returns its index."""
        self.entries.append(_entry_to_dict(entry, self.mode))
        self._mark_edited()
        return len(self.entries) - 1

    def update_entry(self, index: int, **changes: Any) -> None:
        self.entries[index] = {**self.entries[index], **changes}
        self._mark_edited()

    def remove_entry(self, index: int) -> None:
        del self.entries[index]
        self._mark_edited()

    def set_validity_date(self, validity_date: Optional[date]) -> None:
        self.validity_date = validity_date
        self._mark_edited()

    def set_pax(self, pax: PaxComposition) -> None:
        self.pax = pax
        self._mark_edited()

    def set_dates(self, start_date: Optional[date], end_date: Optional[date]) -> None:
        self.start_date = start_date
        self.end_date = end_date
        self._mark_edited()

    def set_supplements(self, supplements: Optional[List[CotationSupplement]]) -> None:
        self.supplements = supplements
        self._mark_edited()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def to_tarification(self) -> TarificationData:
        """Validated tarification; raises TarificationValidationError."""
        raw: Dict[str, Any] = {"mode": self.mode.value, "entries": self.entries}
        if self.validity_date is not None:
            raw["validity_date"] = self.validity_date
        return validate_tarification(raw)

    @property
    def validity(self) -> ValidityStatus:
        return validity_status(self.validity_date)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _is_current(self, token: int) -> bool:
        return not self._closed and token == self._token

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Tarification session of cotation {self.cotation_id} is closed")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def compute(self) -> Optional[TarificationComputeResult]:
        """
        Compute the current entries on the server.

        Returns the result, or None when the entries are invalid (nothing is
        sent), the request failed, or the response was superseded.
        """
        self._ensure_open()
        try:
            tarification = self.to_tarification()
        except TarificationValidationError as e:
            self.compute_error = e
            return None

        self._token += 1
        token = self._token
        if self.state != SessionState.SAVING:
            self.state = SessionState.COMPUTING
        self.compute_error = None

        payload: Dict[str, Any] = {
            "tarification": tarification.model_dump(mode="json", exclude_none=True),
            "pax": self.pax.model_dump(mode="json"),
            "room_demand": dump_room_demand(self.room_demand.entries),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }
        if self.supplements is not None:
            payload["supplements"] = [s.model_dump(mode="json") for s in self.supplements]

        try:
            body = await self.api.post(f"/cotations/{self.cotation_id}/tarification/compute", json=payload)
        except ApiError as e:
            if not self._is_current(token):
                logger.warning("Discarding stale compute error for cotation %s: %s", self.cotation_id, e.message)
                return None
            return self._compute_failed(e)

        if not self._is_current(token):
            logger.warning("Discarding stale compute response for cotation %s (token %d)", self.cotation_id, token)
            return None

        try:
            result = TarificationComputeResult.model_validate(body)
        except ValidationError as e:
            logger.warning("Unexpected compute response for cotation %s: %s", self.cotation_id, e)
            return self._compute_failed(e)

        self.result = result
        # A save in flight owns the state until it completes
        if self.state != SessionState.SAVING:
            self.state = SessionState.COMPUTED
        return self.result

    def _compute_failed(self, error: Exception) -> None:
        self.compute_error = error
        if self.state != SessionState.SAVING:
            self.state = SessionState.ERROR
        return None

    async def save(self) -> bool:
        """
        Save the entries (never the computed result).

        On failure the session goes to ``error`` and keeps its entries and
        last computed result.
        """
        self._ensure_open()
        try:
            tarification = self.to_tarification()
        except TarificationValidationError as e:
            self.save_error = e
            return False

        version = self._version
        previous_state = self.state
        self.state = SessionState.SAVING
        self.save_error = None

        try:
            body = await self.api.patch(
                f"/cotations/{self.cotation_id}/tarification",
                json={"tarification": tarification.model_dump(mode="json", exclude_none=True)},
            )
        except ApiError as e:
            if self._closed:
                return False
            logger.warning(
                "Saving tarification of cotation %s failed (was %s): %s",
                self.cotation_id, previous_state.value, e.message,
            )
            self.save_error = e
            self.state = SessionState.ERROR
            return False

        if self._closed:
            return True
        self.saved_cotation = body
        # Edits made while saving are not saved yet
        if version == self._version:
            self.state = SessionState.SAVED
        logger.info("Saved %s tarification of cotation %s", self.mode.value, self.cotation_id)
        return True

    def close(self) -> None:
        """Detach the session: responses still in flight are dropped."""
        self._closed = True
        self.room_demand.on_change = None

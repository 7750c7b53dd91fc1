"""
Tarification schemas.

The tarification data is a tagged union on ``mode``: each pricing mode owns
its own entry type, and switching mode replaces the whole variant.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from tarification.schemas.room_demand import RoomDemandEntry


class TarificationMode(str, Enum):
    RANGE_WEB = "range_web"
    PER_PERSON = "per_person"
    PER_GROUP = "per_group"
    SERVICE_LIST = "service_list"
    ENUMERATION = "enumeration"


MODE_LABELS = {
    TarificationMode.RANGE_WEB: "Prix / tranche",
    TarificationMode.PER_PERSON: "Prix / personne",
    TarificationMode.PER_GROUP: "Prix / groupe",
    TarificationMode.SERVICE_LIST: "Multi-groupes",
    TarificationMode.ENUMERATION: "Détail prestations",
}


# ---------------------------------------------------------------------------
# Entries (one type per mode)
# ---------------------------------------------------------------------------

# Largest group a single line can price
MAX_PAX = 999


class _Entry(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RangeWebEntry(_Entry):
    """Price per person for a range of participants (e.g. 4-6 pax)."""
    pax_min: int = Field(1, ge=1, le=MAX_PAX)
    pax_max: Optional[int] = Field(None, ge=1, le=MAX_PAX)
    selling_price: Decimal = Field(Decimal("0"), ge=0)
    pax_label: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self):
        if self.pax_max is None:
            self.pax_max = self.pax_min
        if self.pax_max < self.pax_min:
            raise ValueError(f"pax_max ({self.pax_max}) must be >= pax_min ({self.pax_min})")
        return self

    @property
    def label(self) -> str:
        if self.pax_label:
            return self.pax_label
        if self.pax_max == self.pax_min:
            return str(self.pax_min)
        return f"{self.pax_min}-{self.pax_max}"


class PerPersonEntry(_Entry):
    total_pax: int = Field(2, ge=1, le=MAX_PAX)
    price_per_person: Decimal = Field(Decimal("0"), ge=0)


class PerGroupEntry(_Entry):
    total_pax: int = Field(2, ge=1, le=MAX_PAX)
    group_price: Decimal = Field(Decimal("0"), ge=0)


class ServiceListEntry(_Entry):
    """A group of people with its own price. Pax add up across lines."""
    label: str = "Prestation"
    pax: int = Field(2, ge=1, le=MAX_PAX)
    price_per_person: Decimal = Field(Decimal("0"), ge=0)
    cumulative_pax: Optional[int] = Field(None, ge=1)


class EnumerationEntry(_Entry):
    """A service for the same people as the other lines. Pax do not add up."""
    label: str = "Prestation"
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(Decimal("0"), ge=0)


# ---------------------------------------------------------------------------
# Tarification data (tagged union)
# ---------------------------------------------------------------------------

class _TarificationBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    validity_date: Optional[date] = None  # optional tariff expiry


class RangeWebTarification(_TarificationBase):
    mode: Literal["range_web"] = "range_web"
    entries: List[RangeWebEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_overlaps(self):
        for idx, entry in enumerate(self.entries):
            for other_idx, other in enumerate(self.entries[:idx]):
                if entry.pax_min <= other.pax_max and other.pax_min <= entry.pax_max:
                    pax = max(entry.pax_min, other.pax_min)
                    raise ValueError(
                        f"Ranges overlap: {pax} pax is covered by lines {other_idx + 1} and {idx + 1}"
                    )
        return self


class PerPersonTarification(_TarificationBase):
    mode: Literal["per_person"] = "per_person"
    entries: List[PerPersonEntry] = Field(default_factory=list)


class PerGroupTarification(_TarificationBase):
    mode: Literal["per_group"] = "per_group"
    entries: List[PerGroupEntry] = Field(default_factory=list)


class ServiceListTarification(_TarificationBase):
    mode: Literal["service_list"] = "service_list"
    entries: List[ServiceListEntry] = Field(default_factory=list)


class EnumerationTarification(_TarificationBase):
    mode: Literal["enumeration"] = "enumeration"
    entries: List[EnumerationEntry] = Field(default_factory=list)


TarificationData = Annotated[
    Union[
        RangeWebTarification,
        PerPersonTarification,
        PerGroupTarification,
        ServiceListTarification,
        EnumerationTarification,
    ],
    Field(discriminator="mode"),
]

TARIFICATION_TYPES = {
    TarificationMode.RANGE_WEB: RangeWebTarification,
    TarificationMode.PER_PERSON: PerPersonTarification,
    TarificationMode.PER_GROUP: PerGroupTarification,
    TarificationMode.SERVICE_LIST: ServiceListTarification,
    TarificationMode.ENUMERATION: EnumerationTarification,
}

ENTRY_TYPES = {
    TarificationMode.RANGE_WEB: RangeWebEntry,
    TarificationMode.PER_PERSON: PerPersonEntry,
    TarificationMode.PER_GROUP: PerGroupEntry,
    TarificationMode.SERVICE_LIST: ServiceListEntry,
    TarificationMode.ENUMERATION: EnumerationEntry,
}

_tarification_adapter = TypeAdapter(TarificationData)


def parse_tarification(data: dict) -> "TarificationData":
    """Parse a stored/posted {"mode": ..., "entries": [...]} dict into its variant."""
    return _tarification_adapter.validate_python(data)


def empty_tarification(mode: TarificationMode) -> "TarificationData":
    """A variant of the given mode with no entries."""
    return TARIFICATION_TYPES[TarificationMode(mode)]()


def _nest_tarification_fields(data):
    """Accept the flat wire format {"mode", "entries", "validity_date", ...}."""
    if isinstance(data, dict) and "tarification" not in data and "mode" in data:
        data = dict(data)
        data["tarification"] = {
            key: data.pop(key) for key in ("mode", "entries", "validity_date") if key in data
        }
    return data


# ---------------------------------------------------------------------------
# Compute inputs
# ---------------------------------------------------------------------------

class CotationPaxResult(BaseModel):
    """Cost basis for one pax configuration (from the cotation's calculation results)."""
    model_config = ConfigDict(extra="ignore")

    label: Optional[str] = None
    total_pax: int = Field(..., ge=0)
    paying_pax: Optional[int] = Field(None, ge=0)
    total_cost: Decimal = Decimal("0")
    cost_per_person: Decimal = Decimal("0")
    # Surcharge added to HT items to protect the margin: not a real supplier cost
    vat_surcharge_total: Decimal = Decimal("0")
    vat_recoverable: Decimal = Decimal("0")

    @model_validator(mode="before")
    @classmethod
    def _flatten_vat(cls, data):
        # Calculation results nest the recoverable VAT under "vat"
        if isinstance(data, dict) and "vat_recoverable" not in data:
            vat_detail = data.get("vat")
            if isinstance(vat_detail, dict) and "vat_recoverable" in vat_detail:
                data = dict(data)
                data["vat_recoverable"] = vat_detail["vat_recoverable"]
        return data

    @model_validator(mode="after")
    def _default_paying_pax(self):
        if self.paying_pax is None:
            self.paying_pax = self.total_pax
        return self


class CotationSupplement(BaseModel):
    """Optional add-on offered with a cotation (e.g. single room supplement)."""
    label: str = ""
    price: Decimal = Decimal("0")
    per_person: bool = True


class PaxComposition(BaseModel):
    """Travellers by category."""
    adult: int = Field(2, ge=0)
    teen: int = Field(0, ge=0)
    child: int = Field(0, ge=0)
    baby: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return self.adult + self.teen + self.child + self.baby


class PricingSettings(BaseModel):
    """Trip-level commission and VAT settings used by the margin analysis."""
    primary_commission_pct: Decimal = Decimal("0")
    primary_commission_label: str = ""
    secondary_commission_pct: Decimal = Decimal("0")
    secondary_commission_label: str = ""
    vat_pct: Decimal = Decimal("0")
    vat_calculation_mode: Literal["on_margin", "on_selling_price"] = "on_margin"


class TarificationSave(BaseModel):
    """Save tarification data (mode + entries) to a cotation."""
    tarification: TarificationData

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_format(cls, data):
        return _nest_tarification_fields(data)


class TarificationComputeRequest(BaseModel):
    """
    Compute request: active mode and entries plus the context they are priced in.
    Supplements default to the ones saved on the cotation when omitted.
    """
    tarification: TarificationData
    pax: PaxComposition = Field(default_factory=PaxComposition)
    room_demand: List[RoomDemandEntry] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    supplements: Optional[List[CotationSupplement]] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_format(cls, data):
        return _nest_tarification_fields(data)

    @field_validator("room_demand")
    @classmethod
    def _unique_bed_types(cls, value: List[RoomDemandEntry]) -> List[RoomDemandEntry]:
        from tarification.services.room_demand import ensure_unique_bed_types

        ensure_unique_bed_types(value)
        return value


# ---------------------------------------------------------------------------
# Compute outputs
# ---------------------------------------------------------------------------

class TarificationComputedLine(BaseModel):
    """Computed margin result for a single tarification line."""
    label: Optional[str] = None
    selling_price: Decimal
    total_cost: Decimal
    margin_total: Decimal
    margin_pct: Decimal
    primary_commission_amount: Decimal = Decimal("0")
    secondary_commission_amount: Decimal = Decimal("0")
    commission_amount: Decimal
    agency_selling_price: Decimal = Decimal("0")
    margin_after_commission: Decimal
    vat_forecast: Decimal
    vat_recoverable: Decimal
    net_vat: Decimal
    margin_nette: Decimal

    # Mode-specific details
    range_label: Optional[str] = None
    selling_price_per_person: Optional[Decimal] = None
    price_per_person: Optional[Decimal] = None
    cost_per_person: Optional[Decimal] = None
    paying_pax: Optional[int] = None
    pax: Optional[int] = None
    unit_price: Optional[Decimal] = None
    quantity: Optional[int] = None


class ComputedSupplement(BaseModel):
    label: str
    price: Decimal
    per_person: bool
    quantity: int
    amount: Decimal


class TarificationComputeResult(BaseModel):
    """Full computed tarification. Derived data: never persisted."""
    mode: TarificationMode
    currency: str = "EUR"
    lines: List[TarificationComputedLine]
    totals: TarificationComputedLine
    supplements: List[ComputedSupplement] = Field(default_factory=list)
    supplements_total: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    pax: Optional[PaxComposition] = None
    room_demand: List[RoomDemandEntry] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

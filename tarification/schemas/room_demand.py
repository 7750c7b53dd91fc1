"""
Room demand schemas.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class BedType(str, Enum):
    SGL = "SGL"
    DBL = "DBL"
    TWN = "TWN"
    TPL = "TPL"
    FAM = "FAM"
    EXB = "EXB"  # Extra Bed
    CNT = "CNT"  # Child/Cot


# Display order used by pickers
ALL_BED_TYPES: List[BedType] = [
    BedType.DBL, BedType.TWN, BedType.SGL, BedType.TPL, BedType.FAM, BedType.EXB, BedType.CNT,
]

BED_TYPE_LABELS = {
    BedType.SGL: "Single",
    BedType.DBL: "Double",
    BedType.TWN: "Twin",
    BedType.TPL: "Triple",
    BedType.FAM: "Familiale",
    BedType.EXB: "Lit suppl.",
    BedType.CNT: "Lit bébé",
}


class RoomDemandEntry(BaseModel):
    """A number of rooms of one bed type."""
    model_config = ConfigDict(frozen=True)

    bed_type: BedType
    qty: int = Field(1, ge=1)

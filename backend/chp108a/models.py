from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Tuple

DEFAULT_CARRIER_NAME = "California Charter Bus & Tours"


class Month(str, Enum):
    JAN = "JAN"
    FEB = "FEB"
    MAR = "MAR"
    APR = "APR"
    MAY = "MAY"
    JUN = "JUN"
    JUL = "JUL"
    AUG = "AUG"
    SEP = "SEP"
    OCT = "OCT"
    NOV = "NOV"
    DEC = "DEC"

    @property
    def ordinal(self) -> int:
        return MONTHS.index(self)

    @property
    def full_name(self) -> str:
        return MONTH_FULL_NAMES[self]


MONTHS: Tuple[Month, ...] = tuple(Month)

MONTH_FULL_NAMES: Dict[Month, str] = {
    Month.JAN: "January",
    Month.FEB: "February",
    Month.MAR: "March",
    Month.APR: "April",
    Month.MAY: "May",
    Month.JUN: "June",
    Month.JUL: "July",
    Month.AUG: "August",
    Month.SEP: "September",
    Month.OCT: "October",
    Month.NOV: "November",
    Month.DEC: "December",
}


@dataclass
class VehicleInfo:
    carrier_name: str = DEFAULT_CARRIER_NAME
    unit_number: str = ""
    year: str = ""
    make: str = ""
    license_number: str = ""
    has_air_brakes: bool = False


@dataclass
class MonthEntry:
    passed: bool = False
    deficient: bool = False
    deficiency_rate_percent: int = 0
    sampled_deficient_items: Tuple[int, ...] = ()
    inspection_date: str = ""
    odometer_reading: str = ""
    signature_image: str = ""

    @property
    def has_status(self) -> bool:
        return self.passed or self.deficient

    @property
    def is_signed(self) -> bool:
        return bool(self.signature_image)


@dataclass
class InspectionRecord:
    vehicle: VehicleInfo = field(default_factory=VehicleInfo)
    months: Dict[Month, MonthEntry] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.months = _complete_months(self.months)

    def entries(self) -> Iterator[Tuple[Month, MonthEntry]]:
        return ((month, self.months[month]) for month in MONTHS)


@dataclass(frozen=True)
class DeficiencyRecord:
    item_index: int
    description: str
    month: Month
    inspection_date: str
    odometer_reading: str

    @property
    def item_number(self) -> int:
        return self.item_index + 1


@dataclass(frozen=True)
class FleetVehicle:
    unit_number: str
    license_number: str
    make: str
    model: str
    has_air_brakes: bool
    year: str

    def to_vehicle_info(self, carrier_name: str = DEFAULT_CARRIER_NAME) -> VehicleInfo:
        return VehicleInfo(
            carrier_name=carrier_name,
            unit_number=self.unit_number,
            year=self.year,
            make=f"{self.make} {self.model}".strip(),
            license_number=self.license_number,
            has_air_brakes=self.has_air_brakes,
        )


def _complete_months(months: Optional[Mapping[object, MonthEntry]]) -> Dict[Month, MonthEntry]:
    provided: Dict[Month, MonthEntry] = {}
    for key, entry in (months or {}).items():
        try:
            month = Month(key)
        except ValueError as exc:
            raise ValueError(f"Unknown month slot '{key}'") from exc
        provided[month] = entry
    return {month: provided.get(month) or MonthEntry() for month in MONTHS}


def create_empty_record(vehicle: Optional[VehicleInfo] = None) -> InspectionRecord:
    return InspectionRecord(vehicle=vehicle or VehicleInfo())

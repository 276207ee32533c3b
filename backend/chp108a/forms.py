from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .models import DEFAULT_CARRIER_NAME, InspectionRecord, Month, MonthEntry, VehicleInfo


class BrakeSystem(str, Enum):
    AIR = "air"
    HYDRAULIC = "hydraulic"


@dataclass(frozen=True)
class ChecklistItem:
    index: int
    description: str
    cvc_required: bool = False
    brake_system: Optional[BrakeSystem] = None

    @property
    def number(self) -> int:
        return self.index + 1

    def is_active(self, has_air_brakes: bool) -> bool:
        if self.brake_system is BrakeSystem.AIR:
            return has_air_brakes
        if self.brake_system is BrakeSystem.HYDRAULIC:
            return not has_air_brakes
        return True


ITEM_DESCRIPTIONS: Tuple[str, ...] = (
    "Fire extinguisher, first aid kit, and reflective warning devices",
    "Horn, defroster, gauges, odometer, and speedometer",
    "Driver seat, passenger seats, padding, interior, and floor condition",
    "Windshield wipers, windows, mirrors, and supports",
    "All interior and exterior lights, signals, reflectors",
    "Electrical wiring-condition and protection",
    "Batteries-water level, terminals, and cables",
    "Warning devices-air, oil, temperature, exit, and/or vacuum",
    "Heaters, defrosters, switches, and vents",
    "Doors, exterior, paint, and marking",
    "Radiator and water hoses-coolant level, condition, and/or leaks",
    "Belts-compressor, fan, water, and/or alternator",
    "Air hoses and tubing-leaks, condition, and/or protection",
    "Fuel system-tank, hoses, tubing, and/or pump-leaks",
    "Exhaust system, manifolds, piping, muffler-leaks and/or condition",
    "Engine-mounting, excessive grease and/or oil",
    "Clutch adjustment-free play",
    "Air filter, throttle linkage",
    "Starting and charging system",
    "Hydraulic brake system-adjustment, components, and/or condition",
    "Hydraulic master cylinder-level, leaks, and/or condition",
    "Hoses and tubing-condition, protection",
    "Air brake system-adjustment, compartments, and/or condition",
    "1 minute air or vacuum loss test",
    "Air compressor governor-cut in and cut out pressure (85-130)",
    "Primary air tank-drain and test function of check valve",
    "Other air tanks-drain and check for contamination",
    "Tires-tread depth, inflation, condition",
    "Wheels, lug nuts, and studs-cracks, looseness, and/or condition",
    "Parking brake-able to hold the vehicle",
    "Emergency stopping system-labeled, operative",
    "Brakes do not release after complete loss of service air",
    "Steering system-mounting, free lash and components",
    "Steering arms, drag links, and/or tie rod ends",
    "Suspension system-springs, shackles, u-bolts, and/or torque rods",
    "Frame and cross members-cracks and/or condition",
    "Drive shaft, universal joints, and/or guards",
    "Transmission and differential-mounting, leaks, and/or condition",
    "Wheel seals-leaks and/or condition",
    "Under carriage-clean and secure",
)

# 0-based indices; printed item numbers are one higher.
CVC_REQUIRED_ITEMS = frozenset(range(21))
AIR_BRAKE_ITEMS = frozenset({22, 23, 24, 25, 26, 31})
HYDRAULIC_BRAKE_ITEMS = frozenset({19, 20})


def _brake_system_for(index: int) -> Optional[BrakeSystem]:
    if index in AIR_BRAKE_ITEMS:
        return BrakeSystem.AIR
    if index in HYDRAULIC_BRAKE_ITEMS:
        return BrakeSystem.HYDRAULIC
    return None


CHECKLIST: Tuple[ChecklistItem, ...] = tuple(
    ChecklistItem(
        index=index,
        description=description,
        cvc_required=index in CVC_REQUIRED_ITEMS,
        brake_system=_brake_system_for(index),
    )
    for index, description in enumerate(ITEM_DESCRIPTIONS)
)

ITEM_COUNT = len(CHECKLIST)

# Deficiency rate (percent) -> number of items sampled out of the 40.
DEFICIENCY_SAMPLE_SIZES: Dict[int, int] = {0: 0, 3: 1, 5: 2, 10: 4}


def active_item_indices(has_air_brakes: bool) -> Tuple[int, ...]:
    return tuple(item.index for item in CHECKLIST if item.is_active(has_air_brakes))


def sample_deficient_items(rate_percent: int, rng: random.Random) -> Tuple[int, ...]:
    if rate_percent not in DEFICIENCY_SAMPLE_SIZES:
        raise ValueError(f"Deficiency rate must be one of {sorted(DEFICIENCY_SAMPLE_SIZES)}")
    count = DEFICIENCY_SAMPLE_SIZES[rate_percent]
    return tuple(sorted(rng.sample(range(ITEM_COUNT), count)))


def record_from_dict(payload: Dict[str, Any]) -> InspectionRecord:
    """Build a record from its JSON form, coercing and validating each field."""
    if not isinstance(payload, dict):
        raise ValueError("Inspection record must be an object")
    vehicle_data = payload.get("vehicle") or {}
    if not isinstance(vehicle_data, dict):
        raise ValueError("Field 'vehicle' must be an object")
    vehicle = VehicleInfo(
        carrier_name=_coerce_text(vehicle_data, "carrier_name", DEFAULT_CARRIER_NAME),
        unit_number=_coerce_text(vehicle_data, "unit_number"),
        year=_coerce_text(vehicle_data, "year"),
        make=_coerce_text(vehicle_data, "make"),
        license_number=_coerce_text(vehicle_data, "license_number"),
        has_air_brakes=_coerce_bool(vehicle_data, "has_air_brakes"),
    )

    months_data = payload.get("months") or {}
    if not isinstance(months_data, dict):
        raise ValueError("Field 'months' must be an object")
    months: Dict[Month, MonthEntry] = {}
    for key, entry_data in months_data.items():
        try:
            month = Month(str(key).upper())
        except ValueError as exc:
            raise ValueError(f"Unknown month slot '{key}'") from exc
        if not isinstance(entry_data, dict):
            raise ValueError(f"Month '{key}' must be an object")
        months[month] = _coerce_month(entry_data)
    return InspectionRecord(vehicle=vehicle, months=months)


def _coerce_month(data: Dict[str, Any]) -> MonthEntry:
    rate = data.get("deficiency_rate_percent", 0) or 0
    if isinstance(rate, bool) or not isinstance(rate, int) or rate not in DEFICIENCY_SAMPLE_SIZES:
        raise ValueError(f"Field 'deficiency_rate_percent' must be one of {sorted(DEFICIENCY_SAMPLE_SIZES)}")
    sampled = data.get("sampled_deficient_items") or []
    if not isinstance(sampled, (list, tuple)):
        raise ValueError("Field 'sampled_deficient_items' must be a list")
    indices: list[int] = []
    for value in sampled:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < ITEM_COUNT:
            raise ValueError(f"Checklist index {value!r} is out of range")
        if value not in indices:
            indices.append(value)
    return MonthEntry(
        passed=_coerce_bool(data, "passed"),
        deficient=_coerce_bool(data, "deficient"),
        deficiency_rate_percent=rate,
        sampled_deficient_items=tuple(sorted(indices)),
        inspection_date=_coerce_text(data, "inspection_date"),
        odometer_reading=_coerce_text(data, "odometer_reading"),
        signature_image=_coerce_text(data, "signature_image"),
    )


def _coerce_text(data: Dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Field '{key}' must be a string")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    raise ValueError(f"Field '{key}' must be a string")


def _coerce_bool(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if isinstance(value, bool):
        return value
    raise ValueError(f"Field '{key}' must be a boolean")

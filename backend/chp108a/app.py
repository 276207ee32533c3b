from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from .inspections import InspectionService
from .layout import ExportOptions
from .models import DEFAULT_CARRIER_NAME, FleetVehicle, InspectionRecord, create_empty_record

FLEET_VEHICLES: Tuple[FleetVehicle, ...] = (
    FleetVehicle("Sprinter 5", "52295R3", "Merz", "3500", False, "2023"),
    FleetVehicle("Sprinter 6", "52293R3", "Merz", "3500", False, "2023"),
    FleetVehicle("Tiffany 6", "96689D2", "Ford", "F-750", True, "2012"),
    FleetVehicle("Tiffany 8", "15191D2", "Ford", "E-450", False, "2017"),
    FleetVehicle("Tiffany 9", "14709D2", "Ford", "F-650", False, "2015"),
    FleetVehicle("Tiffany 10", "87355G2", "Ford", "E-450", False, "2017"),
    FleetVehicle("Tiffany 11", "26513P2", "Ford", "F-550", False, "2017"),
    FleetVehicle("Tiffany 12", "26512P2", "Ford", "F-550", False, "2017"),
    FleetVehicle("Tiffany 14", "26810P2", "Ford", "F-550", False, "2018"),
    FleetVehicle("Tiffany 15", "32612W2", "Ford", "E-450", False, "2019"),
    FleetVehicle("Tiffany 16", "18533B3", "Ford", "F-750", True, "2015"),
    FleetVehicle("Tiffany 17", "14343G3", "Ford", "F-650", True, "2016"),
    FleetVehicle("Tiffany 18", "53825P3", "Ford", "F-650", True, "2016"),
    FleetVehicle("Tiffany 20", "53740G4", "Freightliner", "M2", True, "2020"),
)


@dataclass
class InspectionFormApp:
    inspections: InspectionService
    carrier_name: str = DEFAULT_CARRIER_NAME

    @classmethod
    def create(
        cls,
        *,
        seed: Optional[int] = None,
        interactive_fields: bool = True,
        carrier_name: str = DEFAULT_CARRIER_NAME,
    ) -> "InspectionFormApp":
        options = ExportOptions(interactive_fields=interactive_fields)
        inspections = InspectionService(rng=random.Random(seed), options=options)
        return cls(inspections=inspections, carrier_name=carrier_name)

    # Fleet operations
    def list_fleet(self) -> List[FleetVehicle]:
        return list(FLEET_VEHICLES)

    def get_fleet_vehicle(self, unit_number: str) -> FleetVehicle:
        wanted = unit_number.strip().lower()
        for vehicle in FLEET_VEHICLES:
            if vehicle.unit_number.lower() == wanted:
                return vehicle
        raise LookupError(f"Unit '{unit_number}' is not in the fleet")

    def new_record(self, unit_number: Optional[str] = None) -> InspectionRecord:
        if not unit_number:
            record = create_empty_record()
            record.vehicle.carrier_name = self.carrier_name
            return record
        vehicle = self.get_fleet_vehicle(unit_number)
        return create_empty_record(vehicle.to_vehicle_info(self.carrier_name))

    # Export operations
    def export_pdf(self, record: InspectionRecord, *, today: Optional[date] = None) -> tuple[str, bytes]:
        return self.inspections.export_pdf(record, today=today)

    def export_workbook(self, record: InspectionRecord, *, today: Optional[date] = None) -> tuple[str, bytes]:
        return self.inspections.export_repair_log_workbook(record, today=today)

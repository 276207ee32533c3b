from __future__ import annotations

import copy
import io
import logging
import random
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .forms import sample_deficient_items
from .layout import ExportOptions, build_document, collect_deficiencies, paginate_deficiencies
from .models import MONTHS, InspectionRecord, Month
from .schedule import display_month_name, format_for_document, project_schedule

logger = logging.getLogger(__name__)

DEFAULT_UNIT_LABEL = "inspection"
UNSAFE_FILENAME_CHARS = re.compile(r"[\\/:*?\"<>|\x00-\x1f]+")


class ExportError(RuntimeError):
    """Raised when a document could not be produced; no partial output exists."""


@dataclass
class InspectionService:
    rng: random.Random = field(default_factory=random.Random)
    options: ExportOptions = field(default_factory=ExportOptions)

    # Month status
    def toggle_passed(self, record: InspectionRecord, month: Month) -> None:
        entry = record.months[month]
        entry.passed = not entry.passed
        entry.deficient = False

    def toggle_deficient(self, record: InspectionRecord, month: Month) -> None:
        entry = record.months[month]
        entry.deficient = not entry.deficient
        entry.passed = False

    def set_all_passed(self, record: InspectionRecord) -> None:
        for _, entry in record.entries():
            entry.passed = True
            entry.deficient = False

    def set_all_deficient(self, record: InspectionRecord) -> None:
        for _, entry in record.entries():
            entry.passed = False
            entry.deficient = True

    def set_deficiency_rate(self, record: InspectionRecord, month: Month, rate_percent: int) -> tuple[int, ...]:
        sampled = sample_deficient_items(rate_percent, self.rng)
        entry = record.months[month]
        entry.deficiency_rate_percent = rate_percent
        entry.sampled_deficient_items = sampled
        return sampled

    # Dates and readings
    def set_inspection_date(self, record: InspectionRecord, month: Month, value: str) -> None:
        if month is Month.JAN:
            for slot, projected in project_schedule(value).items():
                record.months[slot].inspection_date = projected
            return
        record.months[month].inspection_date = (value or "").strip()

    def set_odometer_reading(self, record: InspectionRecord, month: Month, reading: str) -> None:
        record.months[month].odometer_reading = reading

    # Signatures
    def sign_month(self, record: InspectionRecord, month: Month, signature: str) -> None:
        if not signature:
            raise ValueError("A signature is required before signing")
        record.months[month].signature_image = signature

    def sign_all(self, record: InspectionRecord, signature: str) -> int:
        if not signature:
            raise ValueError("A signature is required before signing")
        signed = 0
        for _, entry in record.entries():
            if entry.has_status and not entry.is_signed:
                entry.signature_image = signature
                signed += 1
        return signed

    def unsign_month(self, record: InspectionRecord, month: Month) -> None:
        record.months[month].signature_image = ""

    # Exports
    def export_filename(self, record: InspectionRecord, today: Optional[date] = None, extension: str = "pdf") -> str:
        unit = UNSAFE_FILENAME_CHARS.sub("_", record.vehicle.unit_number).strip(" ._") or DEFAULT_UNIT_LABEL
        generated_on = (today or date.today()).isoformat()
        return f"{self.options.form_code}_{unit}_{generated_on}.{extension}"

    def export_pdf(self, record: InspectionRecord, *, today: Optional[date] = None) -> tuple[str, bytes]:
        snapshot = copy.deepcopy(record)
        try:
            payload = build_document(snapshot, self.options)
        except Exception as exc:
            logger.exception("PDF export failed for unit %r", snapshot.vehicle.unit_number)
            raise ExportError("Could not generate the inspection PDF") from exc
        filename = self.export_filename(snapshot, today)
        deficiencies = collect_deficiencies(snapshot)
        logger.info(
            "Exported %s: %d page(s), %d repair item(s), %d bytes",
            filename,
            1 + len(paginate_deficiencies(deficiencies)),
            len(deficiencies),
            len(payload),
        )
        return filename, payload

    def export_repair_log_workbook(self, record: InspectionRecord, *, today: Optional[date] = None) -> tuple[str, bytes]:
        snapshot = copy.deepcopy(record)
        deficiencies = collect_deficiencies(snapshot)

        workbook = Workbook()
        schedule_ws = workbook.active
        schedule_ws.title = "Schedule"

        title_font = Font(size=14, bold=True, color="24512C")
        header_font = Font(bold=True, color="1F2A24")
        muted_font = Font(color="5B6657")

        vehicle = snapshot.vehicle
        schedule_ws["A1"] = f"{vehicle.carrier_name} - unit {vehicle.unit_number or '-'}"
        schedule_ws["A1"].font = title_font
        schedule_ws.merge_cells("A1:F1")
        schedule_ws["A2"] = " ".join(part for part in (vehicle.year, vehicle.make, vehicle.license_number) if part)
        schedule_ws["A2"].font = muted_font
        schedule_ws.merge_cells("A2:F2")

        headers = ["Slot", "Month", "Date", "Odometer", "Status", "Signed"]
        for column, header in enumerate(headers, start=1):
            cell = schedule_ws.cell(row=4, column=column, value=header)
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

        deficient_fill = PatternFill(start_color="FFF4E5", end_color="FFF4E5", fill_type="solid")
        for row, month in enumerate(MONTHS, start=5):
            entry = snapshot.months[month]
            if entry.deficient or entry.sampled_deficient_items:
                status = "DEF"
            elif entry.passed:
                status = "OK"
            else:
                status = ""
            values = [
                month.value,
                display_month_name(month, entry.inspection_date),
                format_for_document(entry.inspection_date),
                entry.odometer_reading,
                status,
                "Yes" if entry.is_signed else "No",
            ]
            for column, value in enumerate(values, start=1):
                schedule_ws.cell(row=row, column=column, value=value)
            if status == "DEF":
                for column in range(1, len(headers) + 1):
                    schedule_ws.cell(row=row, column=column).fill = deficient_fill

        for column, width in [(1, 8), (2, 14), (3, 14), (4, 14), (5, 10), (6, 10)]:
            schedule_ws.column_dimensions[get_column_letter(column)].width = width

        repairs_ws = workbook.create_sheet("Repairs")
        repair_headers = ["Item #", "Description", "Month", "Date", "Mileage"]
        repairs_ws.append(repair_headers)
        for cell in repairs_ws[1]:
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")
        for deficiency in deficiencies:
            repairs_ws.append(
                [
                    deficiency.item_number,
                    deficiency.description,
                    deficiency.month.value,
                    format_for_document(deficiency.inspection_date),
                    deficiency.odometer_reading,
                ]
            )
        repairs_ws.freeze_panes = "A2"
        for column_index in range(1, len(repair_headers) + 1):
            column_letter = get_column_letter(column_index)
            max_length = max(
                (len(str(repairs_ws.cell(row=row, column=column_index).value or "")) for row in range(1, repairs_ws.max_row + 1)),
                default=10,
            )
            repairs_ws.column_dimensions[column_letter].width = min(max(10, max_length + 2), 70)

        filename = self.export_filename(snapshot, today, extension="xlsx")
        buffer = io.BytesIO()
        workbook.save(buffer)
        buffer.seek(0)
        return filename, buffer.getvalue()

"""CHP 108A page layout.

Page 1 reproduces the monthly checklist side of the paper form. Every month
that reports deficiencies adds rows to a repair-items appendix, 30 rows per
landscape page. All drawing is absolute-position on a 792 x 612 point canvas.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .forms import CHECKLIST, ITEM_COUNT
from .models import MONTHS, DeficiencyRecord, InspectionRecord, Month, MonthEntry, VehicleInfo
from .schedule import display_month_name, format_for_document
from .signatures import decode_signature, fit_within

logger = logging.getLogger(__name__)

FORM_CODE = "CHP108A"
FORM_REVISION = "CHP 108A (Rev. 7-05) OPI 062"
GENERATOR_LABEL = "CHP 108A Inspector"

PAGE_WIDTH = 792
PAGE_HEIGHT = 612
PAGE_SIZE = (PAGE_WIDTH, PAGE_HEIGHT)
MARGIN_LEFT = 20
MARGIN_RIGHT = 20
MARGIN_TOP = 25
FOOTER_Y = 14

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
TITLE_SIZE = 12
TEXT_SIZE = 7
SMALL_SIZE = 6
TINY_SIZE = 5.5
MICRO_SIZE = 4

BLACK = colors.black
GRAY = colors.Color(0.4, 0.4, 0.4)
RED = colors.Color(0.7, 0, 0)
WHITE = colors.white

VEHICLE_ROW_HEIGHT = 16

ITEM_NUMBER_WIDTH = 20
ITEM_DESCRIPTION_WIDTH = 240
MONTH_COLUMN_WIDTH = 42
MARK_WIDTH = MONTH_COLUMN_WIDTH / 2
GRID_TOP = 505
HEADER_STRIP_HEIGHT = 8
ITEM_ROW_HEIGHT = 8.6
CHECKBOX_SIZE = 6

SIGNATURE_COLUMNS = 4
SIGNATURE_ROWS = 3
SIGNATURE_BLOCK_WIDTH = 180
SIGNATURE_BLOCK_HEIGHT = 30
SIGNATURE_COLUMN_GAP = 10
SIGNATURE_ROW_GAP = 3
SIGNATURE_MAX_WIDTH = 70
SIGNATURE_MAX_HEIGHT = 16

ROWS_PER_APPENDIX_PAGE = 30
APPENDIX_TABLE_TOP = 527
APPENDIX_HEADER_HEIGHT = 14
APPENDIX_ROW_HEIGHT = 15.6
APPENDIX_COLUMNS: Tuple[Tuple[str, float], ...] = (
    ("MILEAGE", 90),
    ("DATE", 90),
    ("DESCRIPTION OF REPAIRS", 572),
)

CVC_NOTE = "* Inspection of these items meet the minimum requirements of 34505 CVC"
REPRODUCTION_NOTE = "Form may be reproduced privately. Bulk supplies are not available from the CHP"
SIGNED_FALLBACK = "[Signed]"
ELLIPSIS = "..."


@dataclass(frozen=True)
class ExportOptions:
    interactive_fields: bool = True
    form_code: str = FORM_CODE
    generator_label: str = GENERATOR_LABEL


@dataclass(frozen=True)
class CellMarks:
    active: bool
    passed: bool = False
    deficient: bool = False


@dataclass(frozen=True)
class AppendixPage:
    page_number: int
    rows: Tuple[Optional[DeficiencyRecord], ...]

    @property
    def filled_rows(self) -> int:
        return sum(1 for row in self.rows if row is not None)


def fit_text(text: str, font_name: str, font_size: float, max_width: float) -> str:
    """Trim ``text`` until it fits ``max_width``, marking any cut with ``...``."""
    fitted = text
    while fitted and stringWidth(fitted, font_name, font_size) > max_width:
        fitted = fitted[:-1]
    if len(fitted) < len(text):
        fitted = fitted[:-3] + ELLIPSIS
    return fitted


def cell_marks(record: InspectionRecord, item_index: int, month: Month) -> CellMarks:
    item = CHECKLIST[item_index]
    if not item.is_active(record.vehicle.has_air_brakes):
        return CellMarks(active=False)
    entry = record.months[month]
    deficient = entry.deficient or item_index in entry.sampled_deficient_items
    return CellMarks(active=True, passed=entry.passed and not deficient, deficient=deficient)


def collect_deficiencies(record: InspectionRecord) -> List[DeficiencyRecord]:
    seen: set[int] = set()
    deficiencies: List[DeficiencyRecord] = []
    for month, entry in record.entries():
        candidates = list(range(ITEM_COUNT)) if entry.deficient else []
        candidates.extend(sorted(entry.sampled_deficient_items))
        for index in candidates:
            if index in seen or not 0 <= index < ITEM_COUNT:
                continue
            seen.add(index)
            deficiencies.append(
                DeficiencyRecord(
                    item_index=index,
                    description=CHECKLIST[index].description,
                    month=month,
                    inspection_date=entry.inspection_date,
                    odometer_reading=entry.odometer_reading,
                )
            )
    return deficiencies


def paginate_deficiencies(
    deficiencies: Sequence[DeficiencyRecord],
    rows_per_page: int = ROWS_PER_APPENDIX_PAGE,
) -> List[Tuple[Optional[DeficiencyRecord], ...]]:
    chunks: List[Tuple[Optional[DeficiencyRecord], ...]] = []
    for start in range(0, len(deficiencies), rows_per_page):
        chunk: List[Optional[DeficiencyRecord]] = list(deficiencies[start:start + rows_per_page])
        chunk.extend([None] * (rows_per_page - len(chunk)))
        chunks.append(tuple(chunk))
    return chunks


def build_document(record: InspectionRecord, options: Optional[ExportOptions] = None) -> bytes:
    options = options or ExportOptions()
    deficiencies = collect_deficiencies(record)
    total_pages = 1 + len(paginate_deficiencies(deficiencies))

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE)
    pdf.setTitle(f"{options.form_code} {record.vehicle.unit_number}".strip())
    pdf.setAuthor(record.vehicle.carrier_name)
    pdf.setSubject("Bus Maintenance & Safety Inspection")
    pdf.setCreator(options.generator_label)

    render_checklist_page(pdf, record, total_pages=total_pages, options=options)
    render_appendix_pages(
        pdf,
        deficiencies,
        record.vehicle,
        first_page_number=2,
        total_pages=total_pages,
        options=options,
    )
    pdf.save()
    return buffer.getvalue()


# Page 1


def render_checklist_page(
    pdf: canvas.Canvas,
    record: InspectionRecord,
    *,
    total_pages: int = 1,
    options: Optional[ExportOptions] = None,
) -> None:
    options = options or ExportOptions()
    _draw_letterhead(pdf)
    _draw_vehicle_boxes(pdf, record.vehicle)
    rows_bottom = _draw_checklist_grid(pdf, record, options)
    _draw_signature_blocks(pdf, record, rows_bottom - 10)
    _draw_checklist_footer(pdf, total_pages, options)
    pdf.showPage()


def _draw_letterhead(pdf: canvas.Canvas) -> None:
    y = PAGE_HEIGHT - MARGIN_TOP
    _text(pdf, MARGIN_LEFT, y, "STATE OF CALIFORNIA", SMALL_SIZE)
    y -= 8
    _text(pdf, MARGIN_LEFT, y, "DEPARTMENT OF CALIFORNIA HIGHWAY PATROL", SMALL_SIZE)
    y -= 12
    _text(pdf, MARGIN_LEFT, y, "BUS MAINTENANCE & SAFETY INSPECTION", TITLE_SIZE, FONT_BOLD)
    y -= 10
    _text(pdf, MARGIN_LEFT, y, FORM_REVISION, TINY_SIZE, color=GRAY)
    _text(pdf, PAGE_WIDTH - MARGIN_RIGHT - 240, y, CVC_NOTE, TINY_SIZE, color=RED)


def _draw_vehicle_boxes(pdf: canvas.Canvas, vehicle: VehicleInfo) -> None:
    top = GRID_TOP + 40
    _label_box(pdf, MARGIN_LEFT, top, 250, "CARRIER NAME", vehicle.carrier_name)
    _label_box(pdf, MARGIN_LEFT + 280, top, 120, "UNIT NUMBER", vehicle.unit_number)
    top -= VEHICLE_ROW_HEIGHT + 2
    _label_box(pdf, MARGIN_LEFT, top, 60, "YEAR", vehicle.year)
    _label_box(pdf, MARGIN_LEFT + 60, top, 120, "MAKE", vehicle.make)
    _label_box(pdf, MARGIN_LEFT + 180, top, 100, "LICENSE NUMBER", vehicle.license_number)
    _label_box(pdf, MARGIN_LEFT + 280, top, 120, "AIR BRAKES", "YES" if vehicle.has_air_brakes else "NO")


def _month_column_x(position: int) -> float:
    return MARGIN_LEFT + ITEM_NUMBER_WIDTH + ITEM_DESCRIPTION_WIDTH + position * MONTH_COLUMN_WIDTH


def _draw_checklist_grid(pdf: canvas.Canvas, record: InspectionRecord, options: ExportOptions) -> float:
    top = GRID_TOP
    header_height = HEADER_STRIP_HEIGHT * 3
    _rect(pdf, MARGIN_LEFT, top - header_height, ITEM_NUMBER_WIDTH + ITEM_DESCRIPTION_WIDTH, header_height)
    _centered(
        pdf,
        "INSPECTION ITEMS",
        MARGIN_LEFT,
        top - header_height + 9,
        ITEM_NUMBER_WIDTH + ITEM_DESCRIPTION_WIDTH,
        SMALL_SIZE,
        FONT_BOLD,
    )

    for position, month in enumerate(MONTHS):
        entry = record.months[month]
        x = _month_column_x(position)
        mileage_bottom = top - HEADER_STRIP_HEIGHT
        name_bottom = mileage_bottom - HEADER_STRIP_HEIGHT
        marks_bottom = name_bottom - HEADER_STRIP_HEIGHT

        _rect(pdf, x, mileage_bottom, MONTH_COLUMN_WIDTH, HEADER_STRIP_HEIGHT)
        _text(pdf, x + 2, mileage_bottom + 2.5, "MILEAGE", MICRO_SIZE, color=GRAY)
        if entry.odometer_reading:
            reading = fit_text(entry.odometer_reading, FONT, MICRO_SIZE, MONTH_COLUMN_WIDTH - 22)
            _text(pdf, x + 20, mileage_bottom + 2.5, reading, MICRO_SIZE)

        _rect(pdf, x, name_bottom, MONTH_COLUMN_WIDTH, HEADER_STRIP_HEIGHT)
        _centered(pdf, month.value, x, name_bottom + 2, MONTH_COLUMN_WIDTH, SMALL_SIZE, FONT_BOLD)

        _rect(pdf, x, marks_bottom, MONTH_COLUMN_WIDTH, HEADER_STRIP_HEIGHT)
        _line(pdf, x + MARK_WIDTH, name_bottom, x + MARK_WIDTH, marks_bottom)
        _centered(pdf, "OK", x, marks_bottom + 2.5, MARK_WIDTH, MICRO_SIZE)
        _centered(pdf, "DEF", x + MARK_WIDTH, marks_bottom + 2.5, MARK_WIDTH, MICRO_SIZE)

    row_top = top - header_height
    for item in CHECKLIST:
        _draw_item_row(pdf, record, item.index, row_top, options)
        row_top -= ITEM_ROW_HEIGHT
    return row_top


def _draw_item_row(
    pdf: canvas.Canvas,
    record: InspectionRecord,
    item_index: int,
    row_top: float,
    options: ExportOptions,
) -> None:
    item = CHECKLIST[item_index]
    bottom = row_top - ITEM_ROW_HEIGHT
    baseline = bottom + 2
    active = item.is_active(record.vehicle.has_air_brakes)

    _rect(pdf, MARGIN_LEFT, bottom, ITEM_NUMBER_WIDTH, ITEM_ROW_HEIGHT)
    _text(pdf, MARGIN_LEFT + 2, baseline, f"{item.number}.", TINY_SIZE)

    description_x = MARGIN_LEFT + ITEM_NUMBER_WIDTH
    _rect(pdf, description_x, bottom, ITEM_DESCRIPTION_WIDTH, ITEM_ROW_HEIGHT)
    prefix = "* " if item.cvc_required else "  "
    prefix_width = stringWidth(prefix, FONT, TINY_SIZE)
    description = fit_text(item.description, FONT, TINY_SIZE, ITEM_DESCRIPTION_WIDTH - 8 - prefix_width)
    text_x = description_x + 2
    if active:
        _text(pdf, text_x, baseline, prefix + description, TINY_SIZE)
    else:
        _text(pdf, text_x, baseline, prefix + description, TINY_SIZE, color=GRAY)
        strike_start = text_x + prefix_width
        strike_y = baseline + TINY_SIZE * 0.3
        _line(pdf, strike_start, strike_y, strike_start + stringWidth(description, FONT, TINY_SIZE), strike_y, color=GRAY)

    for position, month in enumerate(MONTHS):
        x = _month_column_x(position)
        _rect(pdf, x, bottom, MONTH_COLUMN_WIDTH, ITEM_ROW_HEIGHT)
        _line(pdf, x + MARK_WIDTH, row_top, x + MARK_WIDTH, bottom)
        marks = cell_marks(record, item_index, month)
        if not marks.active:
            continue
        if options.interactive_fields:
            _checkbox(pdf, f"item{item.number}.{month.value}.ok", x, bottom, marks.passed)
            _checkbox(pdf, f"item{item.number}.{month.value}.def", x + MARK_WIDTH, bottom, marks.deficient)
            continue
        if marks.passed:
            _centered(pdf, "X", x, bottom + 2, MARK_WIDTH, TEXT_SIZE + 1)
        if marks.deficient:
            _centered(pdf, "X", x + MARK_WIDTH, bottom + 2, MARK_WIDTH, TEXT_SIZE + 1)


def _checkbox(pdf: canvas.Canvas, name: str, cell_x: float, cell_bottom: float, checked: bool) -> None:
    pdf.acroForm.checkbox(
        name=name,
        tooltip=name,
        checked=checked,
        buttonStyle="cross",
        x=cell_x + (MARK_WIDTH - CHECKBOX_SIZE) / 2,
        y=cell_bottom + (ITEM_ROW_HEIGHT - CHECKBOX_SIZE) / 2,
        size=CHECKBOX_SIZE,
        borderWidth=0,
        borderColor=WHITE,
        fillColor=WHITE,
        textColor=BLACK,
        fieldFlags="",
        forceBorder=False,
    )


def _draw_signature_blocks(pdf: canvas.Canvas, record: InspectionRecord, section_top: float) -> None:
    _text(pdf, MARGIN_LEFT, section_top, "SIGNATURES OF INSPECTORS", SMALL_SIZE, FONT_BOLD)
    blocks_top = section_top - 5
    for position, month in enumerate(MONTHS):
        row, column = divmod(position, SIGNATURE_COLUMNS)
        x = MARGIN_LEFT + column * (SIGNATURE_BLOCK_WIDTH + SIGNATURE_COLUMN_GAP)
        top = blocks_top - row * (SIGNATURE_BLOCK_HEIGHT + SIGNATURE_ROW_GAP)
        _draw_signature_block(pdf, month, record.months[month], x, top)


def _draw_signature_block(pdf: canvas.Canvas, month: Month, entry: MonthEntry, x: float, top: float) -> None:
    bottom = top - SIGNATURE_BLOCK_HEIGHT
    _rect(pdf, x, bottom, SIGNATURE_BLOCK_WIDTH, SIGNATURE_BLOCK_HEIGHT)

    label = f"{display_month_name(month, entry.inspection_date).upper()} INSPECTION"
    _text(pdf, x + 2, top - 8, label, TINY_SIZE, FONT_BOLD)

    date_x = x + SIGNATURE_BLOCK_WIDTH - 50
    _text(pdf, date_x, top - 8, "DATE", TINY_SIZE)
    if entry.is_signed:
        signed_on = format_for_document(entry.inspection_date)
        if signed_on:
            _text(pdf, date_x, top - 17, signed_on, TINY_SIZE)
        _draw_signature(pdf, month, entry.signature_image, x, bottom)

    _line(pdf, x + 3, bottom + 4, x + 80, bottom + 4)


def _draw_signature(pdf: canvas.Canvas, month: Month, data_uri: str, x: float, bottom: float) -> None:
    signature = decode_signature(data_uri)
    if not signature.ok:
        logger.warning("Signature for %s could not be embedded: %s", month.value, signature.error)
        _text(pdf, x + 5, bottom + 8, SIGNED_FALLBACK, TINY_SIZE)
        return
    width, height = fit_within(signature.width, signature.height, SIGNATURE_MAX_WIDTH, SIGNATURE_MAX_HEIGHT)
    pdf.drawImage(signature.image, x + 4, bottom + 4, width=width, height=height, mask="auto")


def _draw_checklist_footer(pdf: canvas.Canvas, total_pages: int, options: ExportOptions) -> None:
    _text(pdf, MARGIN_LEFT, FOOTER_Y, CVC_NOTE, TINY_SIZE, color=RED)
    _text(
        pdf,
        PAGE_WIDTH / 2 - 60,
        FOOTER_Y,
        f"Page 1 of {total_pages} - Generated by {options.generator_label}",
        TINY_SIZE,
        color=GRAY,
    )
    _text(pdf, PAGE_WIDTH - MARGIN_RIGHT - 220, FOOTER_Y, REPRODUCTION_NOTE, TINY_SIZE, color=GRAY)


# Appendix


def render_appendix_pages(
    pdf: canvas.Canvas,
    deficiencies: Sequence[DeficiencyRecord],
    vehicle: VehicleInfo,
    *,
    first_page_number: int = 2,
    total_pages: Optional[int] = None,
    options: Optional[ExportOptions] = None,
) -> List[AppendixPage]:
    options = options or ExportOptions()
    chunks = paginate_deficiencies(deficiencies)
    if total_pages is None:
        total_pages = first_page_number - 1 + len(chunks)

    pages: List[AppendixPage] = []
    for offset, rows in enumerate(chunks):
        page = AppendixPage(page_number=first_page_number + offset, rows=rows)
        _draw_appendix_page(pdf, page, vehicle, offset * ROWS_PER_APPENDIX_PAGE, total_pages, options)
        pdf.showPage()
        pages.append(page)
    return pages


def _draw_appendix_page(
    pdf: canvas.Canvas,
    page: AppendixPage,
    vehicle: VehicleInfo,
    first_row_index: int,
    total_pages: int,
    options: ExportOptions,
) -> None:
    y = PAGE_HEIGHT - MARGIN_TOP
    _text(pdf, MARGIN_LEFT, y, "DEPARTMENT OF CALIFORNIA HIGHWAY PATROL", SMALL_SIZE)
    y -= 12
    _text(pdf, MARGIN_LEFT, y, "BUS MAINTENANCE & SAFETY INSPECTION - REPAIR ITEMS", TITLE_SIZE, FONT_BOLD)
    y -= 10
    _text(pdf, MARGIN_LEFT, y, f"{FORM_REVISION} - Deficiencies noted during monthly inspections", TINY_SIZE, color=GRAY)

    band_top = APPENDIX_TABLE_TOP + 26
    x = MARGIN_LEFT
    for label, value, width in (
        ("CARRIER NAME", vehicle.carrier_name, 250),
        ("UNIT NUMBER", vehicle.unit_number, 110),
        ("YEAR", vehicle.year, 60),
        ("MAKE", vehicle.make, 150),
        ("LICENSE NUMBER", vehicle.license_number, 182),
    ):
        _label_box(pdf, x, band_top, width, label, value)
        x += width

    header_bottom = APPENDIX_TABLE_TOP - APPENDIX_HEADER_HEIGHT
    x = MARGIN_LEFT
    for label, width in APPENDIX_COLUMNS:
        _rect(pdf, x, header_bottom, width, APPENDIX_HEADER_HEIGHT)
        _centered(pdf, label, x, header_bottom + 4.5, width, SMALL_SIZE, FONT_BOLD)
        x += width

    row_top = header_bottom
    for position, deficiency in enumerate(page.rows):
        _draw_appendix_row(pdf, deficiency, first_row_index + position, row_top, options)
        row_top -= APPENDIX_ROW_HEIGHT

    _text(
        pdf,
        PAGE_WIDTH / 2 - 60,
        FOOTER_Y,
        f"Page {page.page_number} of {total_pages} - Generated by {options.generator_label}",
        TINY_SIZE,
        color=GRAY,
    )
    _text(pdf, PAGE_WIDTH - MARGIN_RIGHT - 220, FOOTER_Y, REPRODUCTION_NOTE, TINY_SIZE, color=GRAY)


def _repair_description(deficiency: DeficiencyRecord) -> str:
    return f"#{deficiency.item_number} {deficiency.description} ({deficiency.month.value})"


def _draw_appendix_row(
    pdf: canvas.Canvas,
    deficiency: Optional[DeficiencyRecord],
    row_index: int,
    row_top: float,
    options: ExportOptions,
) -> None:
    bottom = row_top - APPENDIX_ROW_HEIGHT
    if deficiency is None:
        values = ("", "", "")
    else:
        values = (
            deficiency.odometer_reading,
            format_for_document(deficiency.inspection_date),
            _repair_description(deficiency),
        )
    names = (f"mileage_{row_index}", f"date_{row_index}", f"repair_{row_index}")

    x = MARGIN_LEFT
    for (_, width), value, name in zip(APPENDIX_COLUMNS, values, names):
        _rect(pdf, x, bottom, width, APPENDIX_ROW_HEIGHT)
        if options.interactive_fields:
            pdf.acroForm.textfield(
                name=name,
                tooltip=name,
                value=value,
                x=x + 1,
                y=bottom + 1,
                width=width - 2,
                height=APPENDIX_ROW_HEIGHT - 2,
                fontName=FONT,
                fontSize=TEXT_SIZE,
                borderWidth=0,
                borderColor=WHITE,
                fillColor=WHITE,
                textColor=BLACK,
                maxlen=200,
                forceBorder=False,
            )
        elif value:
            _text(pdf, x + 3, bottom + 5, fit_text(value, FONT, TEXT_SIZE, width - 6), TEXT_SIZE)
        x += width


# Drawing primitives


def _text(
    pdf: canvas.Canvas,
    x: float,
    y: float,
    text: str,
    size: float,
    font: str = FONT,
    color: colors.Color = BLACK,
) -> None:
    pdf.setFillColor(color)
    pdf.setFont(font, size)
    pdf.drawString(x, y, text)


def _centered(
    pdf: canvas.Canvas,
    text: str,
    x: float,
    y: float,
    width: float,
    size: float,
    font: str = FONT,
) -> None:
    _text(pdf, x + (width - stringWidth(text, font, size)) / 2, y, text, size, font)


def _rect(pdf: canvas.Canvas, x: float, y: float, width: float, height: float, line_width: float = 0.5) -> None:
    pdf.setStrokeColor(BLACK)
    pdf.setLineWidth(line_width)
    pdf.rect(x, y, width, height, stroke=1, fill=0)


def _line(
    pdf: canvas.Canvas,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    color: colors.Color = BLACK,
    line_width: float = 0.5,
) -> None:
    pdf.setStrokeColor(color)
    pdf.setLineWidth(line_width)
    pdf.line(x1, y1, x2, y2)


def _label_box(pdf: canvas.Canvas, x: float, top: float, width: float, label: str, value: str) -> None:
    _rect(pdf, x, top - VEHICLE_ROW_HEIGHT, width, VEHICLE_ROW_HEIGHT)
    _text(pdf, x + 2, top - 6, label, TINY_SIZE, color=GRAY)
    if value:
        _text(pdf, x + 2, top - 14, fit_text(value, FONT_BOLD, TEXT_SIZE, width - 4), TEXT_SIZE, FONT_BOLD)

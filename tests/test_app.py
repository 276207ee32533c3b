from __future__ import annotations

import inspect
import io
import json
import random
from datetime import date
from pathlib import Path

import pytest
from openpyxl import load_workbook
from pypdf import PdfReader

from backend.chp108a import InspectionFormApp
from backend.chp108a import inspections as inspections_module
from backend.chp108a.app import FLEET_VEHICLES
from backend.chp108a.cli import main
from backend.chp108a.forms import AIR_BRAKE_ITEMS, HYDRAULIC_BRAKE_ITEMS, active_item_indices, record_from_dict
from backend.chp108a.inspections import ExportError
from backend.chp108a.models import MONTHS, InspectionRecord, Month
from backend.chp108a.schedule import project_schedule


def test_dataclasses_do_not_use_slots() -> None:
    from backend.chp108a import app as app_module
    from backend.chp108a import forms as forms_module
    from backend.chp108a import layout as layout_module
    from backend.chp108a import models as models_module
    from backend.chp108a import schedule as schedule_module
    from backend.chp108a import signatures as signatures_module

    modules = [
        app_module,
        forms_module,
        inspections_module,
        layout_module,
        models_module,
        schedule_module,
        signatures_module,
    ]
    dataclass_params = []
    for module in modules:
        for _, obj in inspect.getmembers(module, inspect.isclass):
            params = getattr(obj, "__dataclass_params__", None)
            if params is not None:
                dataclass_params.append(params)

    assert dataclass_params, "Expected to discover dataclasses in backend modules"
    assert all(
        not getattr(params, "slots", False) for params in dataclass_params
    ), "Dataclasses must not request slots for Python 3.9 compatibility"


# Fleet


def test_fleet_units_are_unique(app: InspectionFormApp) -> None:
    units = [vehicle.unit_number for vehicle in app.list_fleet()]
    assert len(units) == len(FLEET_VEHICLES) == 14
    assert len(set(units)) == len(units)


def test_fleet_lookup_prefills_vehicle(app: InspectionFormApp) -> None:
    record = app.new_record("tiffany 20")
    assert record.vehicle.unit_number == "Tiffany 20"
    assert record.vehicle.make == "Freightliner M2"
    assert record.vehicle.license_number == "53740G4"
    assert record.vehicle.year == "2020"
    assert record.vehicle.has_air_brakes is True
    assert record.vehicle.carrier_name == app.carrier_name


def test_unknown_unit_raises_lookup_error(app: InspectionFormApp) -> None:
    with pytest.raises(LookupError):
        app.get_fleet_vehicle("Tiffany 99")


def test_blank_record_has_twelve_empty_months(app: InspectionFormApp) -> None:
    record = app.new_record()
    assert list(record.months) == list(MONTHS)
    assert record.vehicle.unit_number == ""
    assert not any(entry.has_status or entry.is_signed for _, entry in record.entries())


def test_brake_items_follow_vehicle_type() -> None:
    hydraulic = set(active_item_indices(has_air_brakes=False))
    air = set(active_item_indices(has_air_brakes=True))
    assert not hydraulic & AIR_BRAKE_ITEMS
    assert HYDRAULIC_BRAKE_ITEMS <= hydraulic
    assert not air & HYDRAULIC_BRAKE_ITEMS
    assert AIR_BRAKE_ITEMS <= air
    assert len(hydraulic) == 34
    assert len(air) == 38


# Month status


def test_toggles_are_mutually_exclusive(app: InspectionFormApp, record: InspectionRecord) -> None:
    service = app.inspections
    service.toggle_passed(record, Month.MAR)
    assert record.months[Month.MAR].passed is True

    service.toggle_deficient(record, Month.MAR)
    assert record.months[Month.MAR].deficient is True
    assert record.months[Month.MAR].passed is False

    service.toggle_passed(record, Month.MAR)
    assert record.months[Month.MAR].passed is True
    assert record.months[Month.MAR].deficient is False

    service.toggle_passed(record, Month.MAR)
    assert not record.months[Month.MAR].has_status


def test_set_all(app: InspectionFormApp, record: InspectionRecord) -> None:
    app.inspections.set_all_deficient(record)
    assert all(entry.deficient and not entry.passed for _, entry in record.entries())
    app.inspections.set_all_passed(record)
    assert all(entry.passed and not entry.deficient for _, entry in record.entries())


def test_deficiency_rate_sampling_is_seeded(app: InspectionFormApp, record: InspectionRecord) -> None:
    sampled = app.inspections.set_deficiency_rate(record, Month.APR, 10)
    expected = tuple(sorted(random.Random(1234).sample(range(40), 4)))
    assert sampled == expected
    assert record.months[Month.APR].sampled_deficient_items == expected
    assert record.months[Month.APR].deficiency_rate_percent == 10

    assert app.inspections.set_deficiency_rate(record, Month.APR, 0) == ()
    assert len(app.inspections.set_deficiency_rate(record, Month.MAY, 3)) == 1
    assert len(app.inspections.set_deficiency_rate(record, Month.JUN, 5)) == 2


def test_deficiency_rate_rejects_unknown_percent(app: InspectionFormApp, record: InspectionRecord) -> None:
    with pytest.raises(ValueError):
        app.inspections.set_deficiency_rate(record, Month.APR, 7)


# Dates


def test_january_date_projects_whole_year(app: InspectionFormApp, record: InspectionRecord) -> None:
    app.inspections.set_inspection_date(record, Month.JAN, "2025-01-15")
    projected = project_schedule("2025-01-15")
    assert {month: entry.inspection_date for month, entry in record.entries()} == projected

    app.inspections.set_inspection_date(record, Month.JAN, "")
    assert all(entry.inspection_date == "" for _, entry in record.entries())


def test_other_months_are_manual_overrides(app: InspectionFormApp, record: InspectionRecord) -> None:
    app.inspections.set_inspection_date(record, Month.JAN, "2025-01-15")
    app.inspections.set_inspection_date(record, Month.MAR, "2025-03-20")
    assert record.months[Month.MAR].inspection_date == "2025-03-20"
    assert record.months[Month.JAN].inspection_date == "2025-01-15"
    assert record.months[Month.APR].inspection_date == "2025-04-15"


# Signatures


def test_sign_all_signs_months_with_status(app: InspectionFormApp, record: InspectionRecord, signature_png: str) -> None:
    service = app.inspections
    service.toggle_passed(record, Month.JAN)
    service.toggle_deficient(record, Month.FEB)
    service.toggle_passed(record, Month.MAR)
    service.sign_month(record, Month.MAR, "data:image/png;base64,AAAA")

    assert service.sign_all(record, signature_png) == 2
    assert record.months[Month.JAN].signature_image == signature_png
    assert record.months[Month.FEB].signature_image == signature_png
    assert record.months[Month.MAR].signature_image == "data:image/png;base64,AAAA"
    assert not record.months[Month.APR].is_signed

    service.unsign_month(record, Month.JAN)
    assert not record.months[Month.JAN].is_signed


def test_signing_requires_a_signature(app: InspectionFormApp, record: InspectionRecord) -> None:
    with pytest.raises(ValueError):
        app.inspections.sign_month(record, Month.JAN, "")
    with pytest.raises(ValueError):
        app.inspections.sign_all(record, "")


# Export


def test_export_pdf_filename_and_payload(app: InspectionFormApp, record: InspectionRecord) -> None:
    filename, payload = app.export_pdf(record, today=date(2025, 1, 20))
    assert filename == "CHP108A_Tiffany 8_2025-01-20.pdf"
    assert len(PdfReader(io.BytesIO(payload)).pages) == 1

    blank = app.new_record()
    filename, _ = app.export_pdf(blank, today=date(2025, 1, 20))
    assert filename == "CHP108A_inspection_2025-01-20.pdf"


@pytest.mark.parametrize(
    ("unit", "expected"),
    [
        ("Bus 4/B", "CHP108A_Bus 4_B_2025-01-20.pdf"),
        ("Bus\\4", "CHP108A_Bus_4_2025-01-20.pdf"),
        ('Coach: "A"?', "CHP108A_Coach_ _A_2025-01-20.pdf"),
        ("../..", "CHP108A_inspection_2025-01-20.pdf"),
    ],
)
def test_export_filename_replaces_unsafe_characters(app: InspectionFormApp, unit: str, expected: str) -> None:
    record = record_from_dict({"vehicle": {"unit_number": unit}})
    filename, _ = app.export_pdf(record, today=date(2025, 1, 20))
    assert filename == expected
    assert "/" not in filename
    assert "\\" not in filename


def test_export_does_not_mutate_record(app: InspectionFormApp, record: InspectionRecord) -> None:
    app.inspections.toggle_deficient(record, Month.JAN)
    before = repr(record)
    app.export_pdf(record)
    assert repr(record) == before


def test_export_failure_is_wrapped(
    app: InspectionFormApp,
    record: InspectionRecord,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def _broken(*_args, **_kwargs):
        raise RuntimeError("canvas exploded")

    monkeypatch.setattr(inspections_module, "build_document", _broken)
    with pytest.raises(ExportError) as excinfo:
        app.export_pdf(record)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert "PDF export failed" in caplog.text


def test_flat_app_exports_without_fields(flat_app: InspectionFormApp) -> None:
    record = flat_app.new_record("Tiffany 8")
    flat_app.inspections.set_all_passed(record)
    _, payload = flat_app.export_pdf(record)
    assert not PdfReader(io.BytesIO(payload)).get_fields()


def test_repair_log_workbook(app: InspectionFormApp, air_brake_record: InspectionRecord) -> None:
    service = app.inspections
    service.set_inspection_date(air_brake_record, Month.JAN, "2025-01-15")
    service.toggle_passed(air_brake_record, Month.JAN)
    service.toggle_passed(air_brake_record, Month.MAR)
    air_brake_record.months[Month.MAR].sampled_deficient_items = (2, 30)
    service.set_odometer_reading(air_brake_record, Month.MAR, "51022")

    filename, payload = app.export_workbook(air_brake_record, today=date(2025, 3, 2))
    assert filename == "CHP108A_Tiffany 20_2025-03-02.xlsx"
    workbook = load_workbook(io.BytesIO(payload))
    assert workbook.sheetnames == ["Schedule", "Repairs"]

    schedule = workbook["Schedule"]
    assert [cell.value for cell in schedule[4]] == ["Slot", "Month", "Date", "Odometer", "Status", "Signed"]
    rows = {
        schedule.cell(row=row, column=1).value: [schedule.cell(row=row, column=col).value for col in range(2, 7)]
        for row in range(5, 17)
    }
    assert rows["JAN"][:2] == ["January", "01/15/2025"]
    assert rows["JAN"][3] == "OK"
    assert rows["FEB"][:2] == ["January", "01/10/2026"]
    assert rows["MAR"][2:] == ["51022", "DEF", "No"]

    repairs = workbook["Repairs"]
    assert [cell.value for cell in repairs[1]] == ["Item #", "Description", "Month", "Date", "Mileage"]
    repair_rows = [[cell.value for cell in row] for row in repairs.iter_rows(min_row=2)]
    assert [row[0] for row in repair_rows] == [3, 31]
    assert repair_rows[0][2:] == ["MAR", "03/01/2025", "51022"]


# Record loading


def test_record_from_dict() -> None:
    record = record_from_dict(
        {
            "vehicle": {"unit_number": " Tiffany 8 ", "year": 2017, "has_air_brakes": False},
            "months": {
                "jan": {"passed": True, "inspection_date": "2025-01-15", "odometer_reading": 45210},
                "FEB": {"deficiency_rate_percent": 5, "sampled_deficient_items": [7, 3, 7]},
            },
        }
    )
    assert record.vehicle.unit_number == "Tiffany 8"
    assert record.vehicle.year == "2017"
    assert record.months[Month.JAN].passed is True
    assert record.months[Month.JAN].odometer_reading == "45210"
    assert record.months[Month.FEB].sampled_deficient_items == (3, 7)
    assert list(record.months) == list(MONTHS)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"vehicle": "Tiffany 8"},
        {"months": {"SMARCH": {}}},
        {"months": {"JAN": {"passed": "yes"}}},
        {"months": {"JAN": {"deficiency_rate_percent": 7}}},
        {"months": {"JAN": {"sampled_deficient_items": [40]}}},
        {"vehicle": {"unit_number": ["T8"]}},
    ],
)
def test_record_from_dict_rejects_bad_payloads(payload: object) -> None:
    with pytest.raises(ValueError):
        record_from_dict(payload)


def test_unknown_month_key_rejected_by_record() -> None:
    with pytest.raises(ValueError):
        InspectionRecord(months={"SMARCH": None})


# Command line


def test_cli_writes_pdf_and_workbook(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(
        [
            "--unit",
            "Tiffany 8",
            "--anchor-date",
            "2025-01-15",
            "--output-dir",
            str(tmp_path),
            "--workbook",
            "--seed",
            "7",
        ]
    )
    pdfs = list(tmp_path.glob("CHP108A_Tiffany 8_*.pdf"))
    workbooks = list(tmp_path.glob("CHP108A_Tiffany 8_*.xlsx"))
    assert len(pdfs) == 1
    assert len(workbooks) == 1
    assert pdfs[0].read_bytes().startswith(b"%PDF")
    output = capsys.readouterr().out
    assert "Unit Tiffany 8: 0 signed month(s), 0 repair item(s)." in output
    assert str(pdfs[0]) in output


def test_cli_reads_record_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "record.json"
    source.write_text(
        json.dumps(
            {
                "vehicle": {"unit_number": "Tiffany 16", "has_air_brakes": True},
                "months": {"JAN": {"deficient": True, "inspection_date": "2025-01-15"}},
            }
        ),
        encoding="utf-8",
    )
    out_dir = tmp_path / "out"
    main([str(source), "--output-dir", str(out_dir), "--flat"])
    (pdf,) = out_dir.glob("*.pdf")
    assert len(PdfReader(str(pdf)).pages) == 3
    assert "40 repair item(s)" in capsys.readouterr().out


def test_cli_writes_unit_with_path_separator(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "record.json"
    source.write_text(json.dumps({"vehicle": {"unit_number": "Bus 4/B"}}), encoding="utf-8")
    out_dir = tmp_path / "out"
    main([str(source), "--output-dir", str(out_dir), "--workbook"])

    written = sorted(path.name for path in out_dir.iterdir())
    assert len(written) == 2
    assert all(name.startswith("CHP108A_Bus 4_B_") for name in written)
    assert {Path(name).suffix for name in written} == {".pdf", ".xlsx"}
    assert "Unit Bus 4/B:" in capsys.readouterr().out


def test_cli_log_level(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["--output-dir", str(tmp_path), "--log-level", "debug"])
    assert len(list(tmp_path.glob("*.pdf"))) == 1

    with pytest.raises(SystemExit) as excinfo:
        main(["--output-dir", str(tmp_path), "--log-level", "loud"])
    assert excinfo.value.code == 2
    assert "--log-level" in capsys.readouterr().err


def test_cli_rejects_bad_record(tmp_path: Path) -> None:
    source = tmp_path / "record.json"
    source.write_text(json.dumps({"months": {"SMARCH": {}}}), encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main([str(source), "--output-dir", str(tmp_path)])
    assert excinfo.value.code == 2

    with pytest.raises(SystemExit):
        main(["--unit", "Tiffany 99", "--output-dir", str(tmp_path)])

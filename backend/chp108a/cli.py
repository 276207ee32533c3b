"""Command-line export of a filled CHP 108A form."""

from __future__ import annotations

import argparse
import json
import logging
import textwrap
from pathlib import Path
from typing import Optional, Sequence

from .app import InspectionFormApp
from .forms import record_from_dict
from .layout import collect_deficiencies
from .models import InspectionRecord, Month

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_record(app: InspectionFormApp, args: argparse.Namespace) -> InspectionRecord:
    if args.record:
        payload = json.loads(Path(args.record).read_text(encoding="utf-8"))
        record = record_from_dict(payload)
    else:
        record = app.new_record(args.unit)
    if args.anchor_date:
        app.inspections.set_inspection_date(record, Month.JAN, args.anchor_date)
    return record


def _summarize(record: InspectionRecord, written: Sequence[Path]) -> str:
    signed = sum(1 for _, entry in record.entries() if entry.is_signed)
    deficiencies = len(collect_deficiencies(record))
    files = "\n".join(f"  {path}" for path in written)
    return textwrap.dedent(
        f"""
        Unit {record.vehicle.unit_number or '-'}: {signed} signed month(s), {deficiencies} repair item(s).
        Wrote:
        """
    ).strip() + "\n" + files


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Export a CHP 108A inspection form as PDF.")
    parser.add_argument(
        "record",
        nargs="?",
        help="Path to an inspection record JSON file (default: empty record)",
    )
    parser.add_argument(
        "--unit",
        help="Prefill vehicle details from the fleet list when no record file is given",
    )
    parser.add_argument(
        "--anchor-date",
        help="First inspection date (YYYY-MM-DD); the remaining months are projected from it",
    )
    parser.add_argument(
        "--output-dir",
        default=".",
        help="Directory for the exported files (default: %(default)s)",
    )
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Draw marks as text instead of interactive form fields",
    )
    parser.add_argument(
        "--workbook",
        action="store_true",
        help="Also export the schedule and repair log as an .xlsx workbook",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed used for sampled deficiencies (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: %(default)s)",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    app = InspectionFormApp.create(seed=args.seed, interactive_fields=not args.flat)
    try:
        record = _load_record(app, args)
    except (OSError, ValueError, LookupError) as exc:
        parser.error(str(exc))

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    exports = [app.export_pdf]
    if args.workbook:
        exports.append(app.export_workbook)
    for export in exports:
        filename, payload = export(record)
        path = output_dir / filename
        path.write_bytes(payload)
        written.append(path)
    print(_summarize(record, written))


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()

"""JSON and XLSX renderings of a finalized RedirectReport."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .defaults import REPORT_FILENAME_SUFFIX_DEFAULT
from .diagnostics import DiagnosticKind, DiagnosticLog
from .report import RedirectReport

logger = logging.getLogger(__name__)

HEADER_ROW = 6
HEADER_COLUMNS = (
    ("#", 6),
    ("Checked URL", 50),
    ("Target URL", 50),
    ("URL Match", 20),
    ("Final URL", 50),
    ("Target Redirect Status", 30),
    ("Status Match", 20),
    ("Final Redirect Status", 25),
    ("Final Response Status", 25),
    ("Redirect Count", 20),
    ("Input URL", 50),
)
HOP_STATUS_WIDTH = 25
HOP_LOCATION_WIDTH = 40

_HEADER_FILL = PatternFill(fill_type="solid", fgColor="5595D0")
_HEADER_FONT = Font(color="FAFAFA", size=16, bold=True)
_ASIDE_FONT = Font(color="030308", size=16, bold=True)
_VALUE_FONT = Font(color="030308", size=12)
_WRAP = Alignment(wrap_text=True, vertical="top")


def generate_report_filename(extension: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d-%H%M%S")
    return f"{stamp}_{REPORT_FILENAME_SUFFIX_DEFAULT}.{extension}"


def resolve_report_path(extension: str, filename: Optional[str], out_dir: Optional[Path]) -> Path:
    name = f"{filename}.{extension}" if filename else generate_report_filename(extension)
    return (out_dir / name) if out_dir else Path(name)


def write_json_report(report: RedirectReport, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(report.to_dict(), ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
    return output_path


def _text(value) -> str:
    return "" if value is None else str(value)


def build_workbook(report: RedirectReport) -> Workbook:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sheet 1"

    for column, (title, width) in enumerate(HEADER_COLUMNS, start=1):
        cell = sheet.cell(row=HEADER_ROW, column=column, value=title)
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        sheet.column_dimensions[get_column_letter(column)].width = width

    aside = (
        (1, 2, "Checked URL Count:", str(len(report))),
        (2, 2, "Used Target URLs:", str(report.used_target_urls).lower()),
        (3, 2, "Used Target Codes:", str(report.used_target_codes).lower()),
        (1, 4, "Used Auth:", str(bool(report.auth_used)).lower()),
        (2, 4, "Prefix:", report.prefix or ""),
        (3, 4, "Protocol:", report.protocol or ""),
    )
    for row, column, label, value in aside:
        label_cell = sheet.cell(row=row, column=column, value=label)
        label_cell.font = _ASIDE_FONT
        label_cell.alignment = Alignment(horizontal="right")
        sheet.cell(row=row, column=column + 1, value=value).font = _VALUE_FONT

    base_columns = len(HEADER_COLUMNS)
    for offset, entry in enumerate(report.entries, start=1):
        row = HEADER_ROW + offset
        sheet.row_dimensions[row].height = 60
        values = (
            str(entry.input_index + 1),
            entry.url,
            _text(entry.target_url),
            _text(entry.target_url_matched).lower(),
            _text(entry.final_url),
            _text(entry.target_redirect_status_code),
            _text(entry.target_status_matched).lower(),
            _text(entry.final_redirect_status_code),
            _text(entry.final_status_code),
            _text(entry.redirect_count),
            entry.input_url,
        )
        for column, value in enumerate(values, start=1):
            cell = sheet.cell(row=row, column=column, value=value)
            cell.font = _VALUE_FONT
            cell.alignment = _WRAP

        for hop, record in enumerate(entry.responses, start=1):
            status_column = base_columns - 1 + hop * 2
            location_column = status_column + 1
            sheet.column_dimensions[get_column_letter(status_column)].width = HOP_STATUS_WIDTH
            sheet.column_dimensions[get_column_letter(location_column)].width = HOP_LOCATION_WIDTH
            for column, title in (
                (status_column, f"Response {hop} Status"),
                (location_column, f"Response {hop} Location"),
            ):
                header = sheet.cell(row=HEADER_ROW, column=column, value=title)
                header.fill = _HEADER_FILL
                header.font = _HEADER_FONT
            status_value = _text(record.status_code) if record.status_code is not None else _text(record.error_type)
            sheet.cell(row=row, column=status_column, value=status_value).font = _VALUE_FONT
            location_cell = sheet.cell(row=row, column=location_column, value=record.location or "")
            location_cell.font = _VALUE_FONT
            location_cell.alignment = _WRAP
    return workbook


def write_xlsx_report(report: RedirectReport, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    build_workbook(report).save(output_path)
    return output_path


def write_reports(
    report: RedirectReport,
    diagnostics: DiagnosticLog,
    *,
    json_out: bool,
    xlsx_out: bool,
    filename: Optional[str] = None,
    out_dir: Optional[Path] = None,
) -> Tuple[List[Path], List[Path]]:
    """Write the requested report formats; failures become diagnostics."""
    json_paths: List[Path] = []
    xlsx_paths: List[Path] = []
    if json_out:
        path = resolve_report_path("json", filename, out_dir)
        try:
            json_paths.append(write_json_report(report, path))
        except OSError as exc:
            diagnostics.emit(DiagnosticKind.REPORT_WRITE_ERROR, format="json", path=str(path), error=str(exc))
    if xlsx_out:
        path = resolve_report_path("xlsx", filename, out_dir)
        try:
            xlsx_paths.append(write_xlsx_report(report, path))
        except OSError as exc:
            diagnostics.emit(DiagnosticKind.REPORT_WRITE_ERROR, format="xlsx", path=str(path), error=str(exc))
    logger.debug("wrote %d json and %d xlsx reports", len(json_paths), len(xlsx_paths))
    return json_paths, xlsx_paths

import json
import re
from datetime import datetime

from openpyxl import load_workbook

from redirect_tester.workflows.diagnostics import DiagnosticKind, DiagnosticLog
from redirect_tester.workflows.report import RedirectReport, ResponseRecord, TrackedURL
from redirect_tester.workflows.report_writers import (
    HEADER_ROW,
    generate_report_filename,
    resolve_report_path,
    write_reports,
)


def _report():
    report = RedirectReport(used_target_urls=True)
    entry = TrackedURL(
        id="id-a",
        input_index=0,
        input_url="a.test",
        url="https://a.test",
        target_url="https://c.test",
    )
    entry.responses = [
        ResponseRecord(id="id-a", url="https://a.test", status_code=301, location="https://c.test"),
        ResponseRecord(id="id-a", url="https://c.test", status_code=200, round=1),
    ]
    report.add(entry)
    broken = TrackedURL(id="id-b", input_index=1, input_url="down.test", url="https://down.test")
    broken.responses = [
        ResponseRecord(id="id-b", url="https://down.test", error="refused", error_type="ClientConnectorError"),
    ]
    report.add(broken)
    report.finalize(DiagnosticLog())
    return report


def test_generated_filename_format():
    name = generate_report_filename("json", now=datetime(2026, 1, 2, 15, 30, 45))
    assert name == "2026-01-02-153045_redirects.json"
    assert re.match(r"^\d{4}-\d{2}-\d{2}-\d{6}_redirects\.xlsx$", generate_report_filename("xlsx"))


def test_explicit_filename_and_directory(tmp_path):
    assert resolve_report_path("json", "nightly", tmp_path) == tmp_path / "nightly.json"


def test_json_report_contents(tmp_path):
    diagnostics = DiagnosticLog()
    json_paths, xlsx_paths = write_reports(
        _report(), diagnostics, json_out=True, xlsx_out=False, filename="out", out_dir=tmp_path
    )

    assert xlsx_paths == []
    payload = json.loads(json_paths[0].read_text(encoding="utf-8"))
    first, second = payload["report"]
    assert first["final_url"] == "https://c.test"
    assert first["final_redirect_status_code"] == 301
    assert first["target_url_matched"] is True
    assert second["responses"][0]["error_type"] == "ClientConnectorError"
    assert second["final_redirect_status_code"] == ""
    assert len(diagnostics) == 0


def test_xlsx_layout(tmp_path):
    _, xlsx_paths = write_reports(
        _report(), DiagnosticLog(), json_out=False, xlsx_out=True, filename="out", out_dir=tmp_path
    )

    sheet = load_workbook(xlsx_paths[0]).active
    assert sheet.title == "Sheet 1"
    assert sheet.cell(row=1, column=2).value == "Checked URL Count:"
    assert sheet.cell(row=1, column=3).value == "2"
    assert sheet.cell(row=2, column=3).value == "true"
    assert sheet.cell(row=HEADER_ROW, column=2).value == "Checked URL"
    assert sheet.cell(row=HEADER_ROW, column=12).value == "Response 1 Status"
    assert sheet.cell(row=HEADER_ROW, column=15).value == "Response 2 Location"

    first_row = HEADER_ROW + 1
    assert sheet.cell(row=first_row, column=1).value == "1"
    assert sheet.cell(row=first_row, column=5).value == "https://c.test"
    assert sheet.cell(row=first_row, column=12).value == "301"
    assert sheet.cell(row=first_row, column=13).value == "https://c.test"
    assert sheet.cell(row=first_row + 1, column=12).value == "ClientConnectorError"


def test_write_failure_becomes_diagnostic(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    diagnostics = DiagnosticLog()

    json_paths, xlsx_paths = write_reports(
        _report(), diagnostics, json_out=True, xlsx_out=True, out_dir=blocker / "reports"
    )

    assert json_paths == [] and xlsx_paths == []
    events = diagnostics.of_kind(DiagnosticKind.REPORT_WRITE_ERROR)
    assert [e.payload["format"] for e in events] == ["json", "xlsx"]
    assert diagnostics.degraded

import pytest

from redirect_tester.workflows.diagnostics import DiagnosticKind, DiagnosticLog
from redirect_tester.workflows.report import (
    RedirectReport,
    ResponseRecord,
    TrackedURL,
    is_redirect_status,
    merge_round,
)


def _entry(entry_id="id-a", index=0, url="https://a.test", **kwargs):
    return TrackedURL(id=entry_id, input_index=index, input_url=url, url=url, **kwargs)


def test_is_redirect_status_range():
    assert is_redirect_status(300)
    assert is_redirect_status(399)
    assert not is_redirect_status(200)
    assert not is_redirect_status(400)
    assert not is_redirect_status(None)


def test_record_without_location_is_not_followed():
    assert ResponseRecord(id="x", url="u", status_code=301, location="https://b.test").is_redirect
    assert not ResponseRecord(id="x", url="u", status_code=301).is_redirect
    assert not ResponseRecord(id="x", url="u", status_code=200, location="https://b.test").is_redirect


def test_duplicate_id_rejected():
    report = RedirectReport()
    report.add(_entry())
    with pytest.raises(ValueError):
        report.add(_entry(url="https://other.test"))


def test_entries_follow_input_order():
    report = RedirectReport()
    report.extend([_entry("id-c", 2), _entry("id-a", 0), _entry("id-b", 1)])
    assert [e.id for e in report.entries] == ["id-a", "id-b", "id-c"]
    assert len(report) == 3


def test_merge_unknown_id_is_reported_and_skipped():
    diagnostics = DiagnosticLog()
    report = RedirectReport()
    report.add(_entry())

    merged = merge_round(
        report,
        [
            ResponseRecord(id="id-a", url="https://a.test", status_code=200),
            ResponseRecord(id="ghost", url="https://ghost.test", status_code=200),
        ],
        diagnostics,
    )

    assert merged == 1
    assert len(report.get("id-a").responses) == 1
    events = diagnostics.of_kind(DiagnosticKind.MERGE_INVARIANT_VIOLATION)
    assert [e.payload["id"] for e in events] == ["ghost"]
    assert diagnostics.degraded


def test_merge_flags_exhausted_auth_retry_as_warning():
    diagnostics = DiagnosticLog()
    report = RedirectReport()
    report.add(_entry())

    merge_round(
        report,
        [ResponseRecord(id="id-a", url="https://a.test", status_code=401, auth_retried=True)],
        diagnostics,
    )

    assert len(diagnostics.of_kind(DiagnosticKind.UNAUTHORIZED_RETRY_EXHAUSTED)) == 1
    assert not diagnostics.degraded


def test_finalize_derives_summary_fields():
    entry = _entry(target_url="https://c.test", target_redirect_status_code=301)
    entry.responses = [
        ResponseRecord(id="id-a", url="https://a.test", status_code=302, location="https://b.test"),
        ResponseRecord(id="id-a", url="https://b.test", status_code=301, location="https://c.test", round=1),
        ResponseRecord(id="id-a", url="https://c.test", status_code=200, round=2),
    ]

    assert entry.finalize() is True
    assert entry.redirect_count == 2
    assert entry.final_url == "https://c.test"
    assert entry.final_status_code == 200
    assert entry.final_redirect_status_code == 301
    assert entry.target_url_matched is True
    assert entry.target_status_matched is True


def test_finalize_error_hop_has_no_status():
    entry = _entry()
    entry.responses = [
        ResponseRecord(id="id-a", url="https://a.test", error="boom", error_type="ClientConnectionError"),
    ]

    entry.finalize()

    assert entry.redirect_count == 0
    assert entry.final_status_code is None
    assert entry.final_url == "https://a.test"
    assert entry.final_redirect_status_code is None


def test_report_finalize_flags_empty_chains():
    diagnostics = DiagnosticLog()
    report = RedirectReport()
    report.add(_entry())

    report.finalize(diagnostics)

    entry = report.get("id-a")
    assert entry.redirect_count is None
    assert entry.resolution_error == "not_fetched"
    assert len(diagnostics.of_kind(DiagnosticKind.UNFETCHED_ENTRY)) == 1
    assert report.finalized


def test_to_dict_shape():
    report = RedirectReport(prefix="www.", auth_used=True)
    entry = _entry()
    entry.responses = [ResponseRecord(id="id-a", url="https://a.test", status_code=200)]
    report.add(entry)
    report.finalize(DiagnosticLog())

    payload = report.to_dict()

    assert payload["prefix"] == "www."
    assert payload["protocol"] == ""
    assert payload["auth"] is True
    item = payload["report"][0]
    assert item["final_redirect_status_code"] == ""
    assert item["redirect_count"] == 0
    assert item["responses"] == [
        {"id": "id-a", "url": "https://a.test", "status_code": 200, "location": None, "round": 0}
    ]
    assert "target_url_matched" not in item

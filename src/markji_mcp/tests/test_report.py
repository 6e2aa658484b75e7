"""Tests for Outcome and BatchReport aggregation."""

from __future__ import annotations

from markji_mcp.foundation.errors import Err, ErrorCode, ErrorTrace, Ok, RemoteError, trace_from_exc
from markji_mcp.runtime.batch import BatchReport, Outcome, build_report


def sample() -> BatchReport[str]:
    return build_report([
        Outcome(2, "c", Ok("C"), attempts=1),
        Outcome(0, "a", Ok("A"), attempts=1),
        Outcome(1, "b", Err(ErrorTrace(message="Card not found", error_code="NOT_FOUND")), attempts=1),
    ])


def test_build_report_orders_by_index() -> None:
    assert [o.key for o in sample()] == ["a", "b", "c"]


def test_summary_and_flags() -> None:
    report = sample()

    assert report.summary == "2 succeeded, 1 failed"
    assert report.succeeded_count == 2
    assert report.failed_count == 1
    assert report.is_error
    assert not report.all_ok
    assert len(report) == 3


def test_all_ok_report() -> None:
    report = build_report([Outcome(0, "a", Ok(1))])

    assert report.summary == "1 succeeded, 0 failed"
    assert not report.is_error
    assert report.failed == []


def test_failed_outcomes_carry_error_trace() -> None:
    (failed,) = sample().failed
    assert failed.error == ErrorTrace(message="Card not found", error_code="NOT_FOUND")


def test_render_default_header() -> None:
    text = sample().render(lambda o: f"ok {o.value}", lambda o: f"err {o.key}: {o.message}")

    assert text.splitlines() == [
        "Batch operation summary: 2 succeeded, 1 failed.",
        "ok A",
        "err b: Card not found",
        "ok C",
    ]


def test_render_custom_header() -> None:
    report = sample()
    text = report.render(str, str, header=f"Delete operation completed: {report.summary}.")
    assert text.splitlines()[0] == "Delete operation completed: 2 succeeded, 1 failed."


def test_to_dict() -> None:
    payload = sample().to_dict()

    assert payload["summary"] == "2 succeeded, 1 failed"
    assert payload["isError"] is True
    assert payload["failedKeys"] == ["b"]
    assert payload["outcomes"][1]["error"] == {"message": "Card not found", "code": "NOT_FOUND", "status": None}
    assert "error" not in payload["outcomes"][0]


def test_outcome_accessors() -> None:
    ok = Outcome(0, "a", Ok("A"))
    err = Outcome(1, "b", Err(ErrorTrace(message="boom")))

    assert ok.is_ok and ok.value == "A" and ok.message == ""
    assert err.is_err and err.value is None and err.message == "boom"


def test_trace_from_exc_keeps_remote_message() -> None:
    exc = RemoteError("Card not found", ErrorCode.NOT_FOUND, status_code=404, kind="response")

    err = trace_from_exc(exc, operation="getCards:1")

    assert (err.message, err.error_code, err.status_code) == ("Card not found", "NOT_FOUND", 404)
    assert not err.recoverable
    assert err.details is None
    assert str(err) == "Card not found [NOT_FOUND] (in getCards:1)"


def test_trace_from_exc_classifies_foreign_exceptions() -> None:
    err = trace_from_exc(TimeoutError("read timeout"), include_details=True)

    assert err.error_code == "TIMEOUT"
    assert err.operation == ""
    assert "TimeoutError" in (err.details or "")

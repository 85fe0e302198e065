"""試行結果分類器のテスト。"""

from __future__ import annotations

import json

import httpx
import pytest

from mapsclient import (
    MapsHttpStatusError,
    MapsResponseMalformedError,
    MapsServiceRejectedError,
    MapsTransportError,
    RawResponse,
    RetryableFailure,
    ServiceStatus,
    Success,
    TerminalFailure,
    TransportFault,
)
from mapsclient.classify import classify_transport, json_classifier, status_classifier
from mapsclient.errors_catalog import StatusCatalog, describe_status

URL = "https://example.invalid/maps/api/timezone/json"


def _raw(
    payload: object,
    *,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> RawResponse:
    content = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return RawResponse(status_code=status_code, content=content, headers=headers or {}, url=URL)


def test_ok_status_is_success_with_body() -> None:
    outcome = status_classifier()(_raw({"status": "OK", "timeZoneId": "Asia/Tokyo"}))

    assert isinstance(outcome, Success)
    assert outcome.value["timeZoneId"] == "Asia/Tokyo"


def test_ok_status_applies_parse() -> None:
    classify = status_classifier(lambda body: body["results"][0]["place_id"])

    outcome = classify(_raw({"status": "OK", "results": [{"place_id": "abc"}]}))

    assert outcome == Success("abc")


def test_unknown_error_status_is_retryable() -> None:
    outcome = status_classifier()(_raw({"status": "UNKNOWN_ERROR"}))

    assert isinstance(outcome, RetryableFailure)
    assert isinstance(outcome.error, MapsServiceRejectedError)
    assert outcome.error.status == "UNKNOWN_ERROR"
    assert outcome.error.error_message is None
    assert describe_status(ServiceStatus.UNKNOWN_ERROR) in str(outcome.error)


@pytest.mark.parametrize(
    "status",
    ["INVALID_REQUEST", "OVER_QUERY_LIMIT", "OVER_DAILY_LIMIT", "REQUEST_DENIED", "ZERO_RESULTS", "NOT_FOUND"],
)
def test_other_statuses_are_terminal(status: str) -> None:
    outcome = status_classifier()(_raw({"status": status, "error_message": "nope"}))

    assert isinstance(outcome, TerminalFailure)
    assert isinstance(outcome.error, MapsServiceRejectedError)
    assert outcome.error.status == status
    assert outcome.error.error_message == "nope"
    assert outcome.error.context.request_url == URL


def test_zero_results_can_be_declared_success() -> None:
    classify = status_classifier(success_statuses={ServiceStatus.OK, ServiceStatus.ZERO_RESULTS})

    outcome = classify(_raw({"status": "ZERO_RESULTS", "results": []}))

    assert isinstance(outcome, Success)


def test_overlapping_status_sets_are_rejected() -> None:
    with pytest.raises(ValueError):
        status_classifier(retryable_statuses={ServiceStatus.OK})


@pytest.mark.parametrize(
    "payload",
    [
        b"<html><body>Bad Gateway</body></html>",
        b"\xff\xfe\x00garbage",
        ["not", "an", "object"],
        {"no_status": True},
        {"status": "SOMETHING_NEW"},
    ],
)
def test_malformed_bodies_are_terminal(payload: object) -> None:
    outcome = status_classifier()(_raw(payload))

    assert isinstance(outcome, TerminalFailure)
    assert isinstance(outcome.error, MapsResponseMalformedError)


def test_parse_failure_is_malformed_and_chained() -> None:
    classify = status_classifier(lambda body: body["missing"])

    outcome = classify(_raw({"status": "OK"}))

    assert isinstance(outcome, TerminalFailure)
    assert isinstance(outcome.error, MapsResponseMalformedError)
    assert isinstance(outcome.error.__cause__, KeyError)


@pytest.mark.parametrize("status_code", [500, 502, 503, 429])
def test_server_errors_and_too_many_requests_are_retryable(status_code: int) -> None:
    outcome = status_classifier()(_raw(b"oops", status_code=status_code))

    assert isinstance(outcome, RetryableFailure)
    assert isinstance(outcome.error, MapsHttpStatusError)
    assert outcome.error.status_code == status_code


def test_retry_after_header_is_parsed() -> None:
    outcome = classify_transport(_raw(b"", status_code=429, headers={"retry-after": "7"}))

    assert isinstance(outcome, RetryableFailure)
    assert outcome.retry_after == 7.0


@pytest.mark.parametrize("status_code", [400, 401, 403, 404])
def test_client_errors_are_terminal(status_code: int) -> None:
    outcome = status_classifier()(_raw(b"denied", status_code=status_code))

    assert isinstance(outcome, TerminalFailure)
    assert isinstance(outcome.error, MapsHttpStatusError)
    assert outcome.error.context.raw_response_excerpt == "denied"


def test_network_faults_are_retryable() -> None:
    request = httpx.Request("GET", URL)
    for exc in (
        httpx.ConnectError("refused", request=request),
        httpx.ReadTimeout("slow", request=request),
        httpx.RemoteProtocolError("eof", request=request),
    ):
        outcome = classify_transport(TransportFault(error=exc, url=URL))
        assert isinstance(outcome, RetryableFailure)
        assert isinstance(outcome.error, MapsTransportError)
        assert outcome.error.__cause__ is exc


def test_non_network_transport_fault_is_terminal() -> None:
    exc = httpx.UnsupportedProtocol("ftp is not supported")

    outcome = classify_transport(TransportFault(error=exc, url="ftp://example.invalid"))

    assert isinstance(outcome, TerminalFailure)
    assert isinstance(outcome.error, MapsTransportError)


def test_json_classifier_ignores_status_field() -> None:
    classify = json_classifier(lambda body: body["value"])

    assert classify(_raw({"status": "UNKNOWN_ERROR", "value": 3})) == Success(3)
    assert isinstance(classify(_raw(b"not json")), TerminalFailure)


def test_classifiers_pass_transport_faults_through_before_reading_body() -> None:
    request = httpx.Request("GET", URL)
    fault = TransportFault(error=httpx.ConnectError("refused", request=request), url=URL)

    for classify in (status_classifier(), json_classifier()):
        outcome = classify(fault)
        assert isinstance(outcome, RetryableFailure)
        assert isinstance(outcome.error, MapsTransportError)
        http_outcome = classify(_raw({"status": "OK"}, status_code=503))
        assert isinstance(http_outcome, RetryableFailure)
        assert isinstance(http_outcome.error, MapsHttpStatusError)


def test_status_catalog_categories() -> None:
    catalog = StatusCatalog()

    assert catalog.classify("over_query_limit").category == "quota"
    assert catalog.classify(ServiceStatus.UNKNOWN_ERROR).category == "transient"
    assert catalog.classify("OK").catalog_version == catalog.catalog_version
    with pytest.raises(ValueError):
        catalog.classify("NOPE")

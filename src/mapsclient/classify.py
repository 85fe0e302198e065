"""試行結果の分類器。

分類器は1回分の試行結果を Success / RetryableFailure / TerminalFailure の
いずれかへ写像する。再試行ループは分類結果だけを見て動作する。
"""

from __future__ import annotations

import json
from collections.abc import Callable, Collection, Mapping
from typing import Any, TypeVar, cast

from mapsclient.enums import ServiceStatus
from mapsclient.errors import (
    MapsHttpStatusError,
    MapsResponseMalformedError,
    MapsServiceRejectedError,
    MapsTransportError,
)
from mapsclient.errors_catalog import describe_status, parse_status
from mapsclient.http import parse_retry_after, should_retry_http_status, should_retry_transport_error
from mapsclient.types import (
    AttemptResult,
    Classifier,
    RawResponse,
    RetryableFailure,
    Success,
    TerminalFailure,
    TransportFault,
)

T = TypeVar("T")

DEFAULT_SUCCESS_STATUSES = frozenset({ServiceStatus.OK})
DEFAULT_RETRYABLE_STATUSES = frozenset({ServiceStatus.UNKNOWN_ERROR})


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def classify_transport(result: AttemptResult) -> RetryableFailure | TerminalFailure | None:
    """通信層・HTTPステータスを分類する。

    Args:
        result: 試行結果。

    Returns:
        失敗の分類。2xx応答なら None（本文の分類へ進む）。
    """

    if isinstance(result, TransportFault):
        error = MapsTransportError(
            f"通信に失敗しました: {type(result.error).__name__}: {result.error}",
            request_url=result.url,
        )
        error.__cause__ = result.error
        if should_retry_transport_error(result.error):
            return RetryableFailure(error)
        return TerminalFailure(error)

    if 200 <= result.status_code < 300:
        return None
    http_error = MapsHttpStatusError(
        f"HTTPステータス {result.status_code} を受信しました。",
        status_code=result.status_code,
        request_url=result.url,
        raw_response_excerpt=result.excerpt(),
    )
    if should_retry_http_status(result.status_code):
        retry_after = parse_retry_after(_header(result.headers, "Retry-After"))
        return RetryableFailure(http_error, retry_after=retry_after)
    return TerminalFailure(http_error)


def load_json_object(result: RawResponse) -> dict[str, Any]:
    """本文をJSONオブジェクトとして読み込む。

    Raises:
        MapsResponseMalformedError: JSONでない、またはオブジェクトでない。
    """

    try:
        body = json.loads(result.content)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MapsResponseMalformedError(
            f"レスポンス本文をJSONとして解析できませんでした: {exc}",
            request_url=result.url,
            raw_response_excerpt=result.excerpt(),
        ) from exc
    if not isinstance(body, dict):
        raise MapsResponseMalformedError(
            f"レスポンス本文がJSONオブジェクトではありません: {type(body).__name__}",
            request_url=result.url,
            raw_response_excerpt=result.excerpt(),
        )
    return body


def _apply_parse(
    parse: Callable[[dict[str, Any]], T] | None,
    body: dict[str, Any],
    result: RawResponse,
) -> Success[Any] | TerminalFailure:
    if parse is None:
        return Success(body)
    try:
        return Success(parse(body))
    except Exception as exc:  # noqa: BLE001
        error = MapsResponseMalformedError(
            f"レスポンス本文を期待する形へ変換できませんでした: {type(exc).__name__}: {exc}",
            request_url=result.url,
            raw_response_excerpt=result.excerpt(),
        )
        error.__cause__ = exc
        return TerminalFailure(error)


def json_classifier(parse: Callable[[dict[str, Any]], T] | None = None) -> Classifier[T]:
    """status フィールドを持たないJSON API向けの分類器を返す。"""

    def classify(result: AttemptResult) -> Success[T] | RetryableFailure | TerminalFailure:
        failure = classify_transport(result)
        if failure is not None:
            return failure
        result = cast(RawResponse, result)
        try:
            body = load_json_object(result)
        except MapsResponseMalformedError as exc:
            return TerminalFailure(exc)
        return _apply_parse(parse, body, result)

    return classify


def status_classifier(
    parse: Callable[[dict[str, Any]], T] | None = None,
    *,
    success_statuses: Collection[ServiceStatus] = DEFAULT_SUCCESS_STATUSES,
    retryable_statuses: Collection[ServiceStatus] = DEFAULT_RETRYABLE_STATUSES,
    status_key: str = "status",
    message_key: str = "error_message",
) -> Classifier[T]:
    """本文の status で成否を判定する分類器を返す。

    UNKNOWN_ERROR のみを一時的な失敗とし、それ以外の非成功statusは
    再試行しても解消しない失敗として扱う。

    Args:
        parse: 成功時に本文を変換する関数。None なら dict をそのまま返す。
        success_statuses: 成功とみなすstatus。
        retryable_statuses: 再試行対象とするstatus。
        status_key: status のキー名。
        message_key: エラーメッセージのキー名。

    Returns:
        分類器。
    """

    overlap = set(success_statuses) & set(retryable_statuses)
    if overlap:
        raise ValueError(f"成功と再試行の両方に指定されたstatusがあります: {sorted(overlap)}")

    def classify(result: AttemptResult) -> Success[T] | RetryableFailure | TerminalFailure:
        failure = classify_transport(result)
        if failure is not None:
            return failure
        result = cast(RawResponse, result)
        try:
            body = load_json_object(result)
        except MapsResponseMalformedError as exc:
            return TerminalFailure(exc)

        raw_status = body.get(status_key)
        status = parse_status(raw_status)
        if status is None:
            return TerminalFailure(
                MapsResponseMalformedError(
                    f"{status_key} フィールドを解釈できませんでした: {raw_status!r}",
                    request_url=result.url,
                    raw_response_excerpt=result.excerpt(),
                )
            )
        if status in success_statuses:
            return _apply_parse(parse, body, result)

        error_message = body.get(message_key)
        if not isinstance(error_message, str) or not error_message:
            error_message = None
        error = MapsServiceRejectedError(
            f"{status.value}: {error_message or describe_status(status)}",
            status=status.value,
            error_message=error_message,
            request_url=result.url,
            raw_response_excerpt=result.excerpt(),
        )
        if status in retryable_statuses:
            return RetryableFailure(error)
        return TerminalFailure(error)

    return classify

"""HTTP実行補助。"""

from __future__ import annotations

import time
from collections.abc import Mapping
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from mapsclient.types import AttemptResult, RawResponse, RequestDescriptor, TransportFault


def parse_retry_after(value: str | None) -> float | None:
    """Retry-Afterヘッダを秒へ変換する。"""

    if not value:
        return None
    text = value.strip()
    if text.isdigit():
        return float(text)
    try:
        dt = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    return max(0.0, dt.timestamp() - time.time())


def should_retry_http_status(status_code: int) -> bool:
    """HTTPステータスから再試行可否を判定する。

    5xx と 429 のみ再試行対象とする。
    """

    return status_code >= 500 or status_code == 429


def should_retry_transport_error(exc: Exception) -> bool:
    """通信例外の再試行可否を判定する。"""

    retryable = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    return isinstance(exc, retryable)


def build_request_headers(user_agent: str, extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """標準ヘッダを構築する。"""

    headers = {
        "Accept-Encoding": "gzip",
        "User-Agent": user_agent,
    }
    if extra:
        headers.update(extra)
    return headers


def _to_raw_response(response: httpx.Response) -> RawResponse:
    return RawResponse(
        status_code=int(response.status_code),
        content=response.content,
        headers=dict(response.headers),
        url=str(response.request.url),
    )


def _request_timeout(timeout: float | None) -> Any:
    if timeout is None:
        return httpx.USE_CLIENT_DEFAULT
    return httpx.Timeout(timeout)


class HttpxTransport:
    """httpx.Client を用いる同期トランスポート。"""

    def __init__(self, client: httpx.Client, *, user_agent: str) -> None:
        self._client = client
        self._user_agent = user_agent

    def send(self, request: RequestDescriptor, *, timeout: float | None = None) -> AttemptResult:
        """1回分の要求を送信する。

        通信例外は送出せず TransportFault として返す。
        """

        http_request = self._client.build_request(
            request.method,
            request.path,
            params=dict(request.params),
            headers=build_request_headers(self._user_agent, request.headers),
            timeout=_request_timeout(timeout),
        )
        try:
            response = self._client.send(http_request)
        except httpx.HTTPError as exc:
            return TransportFault(error=exc, url=str(http_request.url))
        return _to_raw_response(response)


class AsyncHttpxTransport:
    """httpx.AsyncClient を用いる非同期トランスポート。"""

    def __init__(self, client: httpx.AsyncClient, *, user_agent: str) -> None:
        self._client = client
        self._user_agent = user_agent

    async def send(
        self,
        request: RequestDescriptor,
        *,
        timeout: float | None = None,
    ) -> AttemptResult:
        """1回分の要求を送信する。"""

        http_request = self._client.build_request(
            request.method,
            request.path,
            params=dict(request.params),
            headers=build_request_headers(self._user_agent, request.headers),
            timeout=_request_timeout(timeout),
        )
        try:
            response = await self._client.send(http_request)
        except httpx.HTTPError as exc:
            return TransportFault(error=exc, url=str(http_request.url))
        return _to_raw_response(response)

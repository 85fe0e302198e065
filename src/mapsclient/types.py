"""公開型と内部共通データ構造。"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Generic, Protocol, TypeAlias, TypeVar

from mapsclient.enums import ApiCategory
from mapsclient.errors import MapsError

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """送信準備済みのリクエスト。

    クエリ文字列の組み立てはエンドポイント側の責務で、ここでは完成品を受け取る。

    Attributes:
        api: API区分。
        path: base_url からの相対パス。
        params: クエリパラメータ。
        method: HTTPメソッド。
        headers: 追加ヘッダ。
    """

    api: ApiCategory
    path: str
    params: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True, slots=True)
class RawResponse:
    """トランスポートが返した生レスポンス。

    Attributes:
        status_code: HTTPステータス。
        content: 本文バイト列。
        headers: レスポンスヘッダ。
        url: 実際に送信したURL。
    """

    status_code: int
    content: bytes
    headers: Mapping[str, str]
    url: str

    @property
    def text(self) -> str:
        """本文をUTF-8として復号する。"""

        return self.content.decode("utf-8", errors="replace")

    def excerpt(self, limit: int = 2048) -> str:
        """本文の抜粋を返す。"""

        return self.text[:limit]


@dataclass(frozen=True, slots=True)
class TransportFault:
    """レスポンスを得られなかった通信失敗。

    Attributes:
        error: 元の例外。
        url: 送信先URL。
    """

    error: Exception
    url: str


AttemptResult: TypeAlias = RawResponse | TransportFault


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """試行成功。"""

    value: T


@dataclass(frozen=True, slots=True)
class RetryableFailure:
    """一時的な失敗。再試行の対象。

    Attributes:
        error: 観測したエラー。
        retry_after: サーバが指示した待機秒。
    """

    error: MapsError
    retry_after: float | None = None


@dataclass(frozen=True, slots=True)
class TerminalFailure:
    """再試行しても解消しない失敗。"""

    error: MapsError


AttemptOutcome: TypeAlias = Success[Any] | RetryableFailure | TerminalFailure

Classifier: TypeAlias = Callable[[AttemptResult], Success[T] | RetryableFailure | TerminalFailure]


class Transport(Protocol):
    """同期トランスポート。"""

    def send(self, request: RequestDescriptor, *, timeout: float | None = None) -> AttemptResult:
        ...


class AsyncTransport(Protocol):
    """非同期トランスポート。"""

    def send(
        self,
        request: RequestDescriptor,
        *,
        timeout: float | None = None,
    ) -> Awaitable[AttemptResult]:
        ...


Sleeper: TypeAlias = Callable[[float], None]
AsyncSleeper: TypeAlias = Callable[[float], Awaitable[None]]

"""例外定義。"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class MapsErrorContext:
    """例外に付随する共通コンテキスト。

    Attributes:
        request_url: リクエストURL。
        raw_response_excerpt: レスポンス抜粋。
    """

    request_url: str | None = None
    raw_response_excerpt: str | None = None


class MapsError(Exception):
    """ライブラリ例外の基底クラス。

    Attributes:
        origin: 例外発生元。
        context: 追加コンテキスト。
    """

    def __init__(
        self,
        message: str,
        *,
        origin: str,
        context: MapsErrorContext | None = None,
    ) -> None:
        super().__init__(message)
        self.origin = origin
        self.context = context or MapsErrorContext()
        self.message = message


class MapsCancelledError(MapsError):
    """呼び出しコンテキストの取消または期限切れ。

    Attributes:
        stage: 取消を検知した待機点（admission / backoff / transport）。
    """

    def __init__(self, message: str = "呼び出しが取り消されました。", *, stage: str) -> None:
        super().__init__(message, origin="client")
        self.stage = stage


class MapsTransportError(MapsError):
    """HTTP通信層の例外。"""

    def __init__(self, message: str, *, request_url: str | None = None) -> None:
        super().__init__(
            message,
            origin="transport",
            context=MapsErrorContext(request_url=request_url),
        )


class MapsHttpStatusError(MapsTransportError):
    """2xx以外のHTTPステータス。"""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        request_url: str | None = None,
        raw_response_excerpt: str | None = None,
    ) -> None:
        super().__init__(message, request_url=request_url)
        self.status_code = status_code
        self.context.raw_response_excerpt = raw_response_excerpt


class MapsServiceRejectedError(MapsError):
    """レスポンス本文の status による拒否。"""

    def __init__(
        self,
        message: str,
        *,
        status: str,
        error_message: str | None = None,
        request_url: str | None = None,
        raw_response_excerpt: str | None = None,
    ) -> None:
        super().__init__(
            message,
            origin="server_response",
            context=MapsErrorContext(
                request_url=request_url,
                raw_response_excerpt=raw_response_excerpt,
            ),
        )
        self.status = status
        self.error_message = error_message


class MapsResponseMalformedError(MapsError):
    """レスポンス本文を期待する形へ解析できない。"""

    def __init__(
        self,
        message: str,
        *,
        request_url: str | None = None,
        raw_response_excerpt: str | None = None,
    ) -> None:
        super().__init__(
            message,
            origin="server_response",
            context=MapsErrorContext(
                request_url=request_url,
                raw_response_excerpt=raw_response_excerpt,
            ),
        )


class MapsRetriesExhaustedError(MapsError):
    """再試行上限に到達した。

    Attributes:
        last_error: 最後に観測した再試行可能エラー。
        attempts: 実行した試行回数。
    """

    def __init__(self, *, last_error: MapsError, attempts: int, reason: str) -> None:
        super().__init__(
            f"再試行上限に到達しました（{reason}, attempts={attempts}）: {last_error}",
            origin="client",
            context=last_error.context,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.reason = reason

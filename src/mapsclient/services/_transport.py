"""サービス層向けトランスポート共通処理。

1回の論理呼び出しにつき送信許可を1回だけ取得し、その後の送信と分類を
再試行ループへ委ねる。再試行は送信許可を再取得しない。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from mapsclient.config import RetryPolicy
from mapsclient.context import AsyncCallContext, CallContext
from mapsclient.enums import ApiCategory
from mapsclient.ratelimit import AsyncRateLimiter, SyncRateLimiter
from mapsclient.retry import execute_with_retry, execute_with_retry_async
from mapsclient.types import (
    AsyncSleeper,
    AsyncTransport,
    Classifier,
    RequestDescriptor,
    RetryableFailure,
    Sleeper,
    Success,
    TerminalFailure,
    Transport,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def admission_categories(request: RequestDescriptor) -> tuple[ApiCategory, ...]:
    """課金対象のAPI区分（個別区分と ALL）を返す。"""

    if request.api == ApiCategory.ALL:
        return (ApiCategory.ALL,)
    return (request.api, ApiCategory.ALL)


def _log_terminal(
    request: RequestDescriptor,
    outcome: Success[T] | RetryableFailure | TerminalFailure,
) -> None:
    if isinstance(outcome, TerminalFailure):
        logger.error("%s %s failed (%s): %s", request.method, request.path, request.api, outcome.error)


class SyncDispatcher:
    """同期リクエストディスパッチャ。

    レート制御は参照として保持し、同じクライアントの全呼び出しで共有する。
    """

    def __init__(
        self,
        *,
        transport: Transport,
        limiter: SyncRateLimiter,
        policy: RetryPolicy,
        sleep: Sleeper | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._limiter = limiter
        self._policy = policy
        self._sleep = sleep
        self._clock = clock

    @property
    def limiter(self) -> SyncRateLimiter:
        return self._limiter

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def dispatch(
        self,
        request: RequestDescriptor,
        classifier: Classifier[T],
        *,
        context: CallContext | None = None,
    ) -> T:
        """送信許可を得てから再試行つきで要求を実行する。

        Args:
            request: 送信準備済みリクエスト。
            classifier: 試行結果の分類器。
            context: 取消コンテキスト。

        Returns:
            分類器が返した成功値。
        """

        self._limiter.admit(admission_categories(request), context=context)
        logger.debug("%s %s (%s)", request.method, request.path, request.api)

        def attempt() -> Success[T] | RetryableFailure | TerminalFailure:
            timeout = context.remaining() if context is not None else None
            result = self._transport.send(request, timeout=timeout)
            if context is not None:
                context.check("transport")
            outcome = classifier(result)
            _log_terminal(request, outcome)
            return outcome

        return execute_with_retry(
            attempt,
            policy=self._policy,
            context=context,
            sleep=self._sleep,
            clock=self._clock,
        )


class AsyncDispatcher:
    """非同期リクエストディスパッチャ。"""

    def __init__(
        self,
        *,
        transport: AsyncTransport,
        limiter: AsyncRateLimiter,
        policy: RetryPolicy,
        sleep: AsyncSleeper | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._limiter = limiter
        self._policy = policy
        self._sleep = sleep
        self._clock = clock

    @property
    def limiter(self) -> AsyncRateLimiter:
        return self._limiter

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def dispatch(
        self,
        request: RequestDescriptor,
        classifier: Classifier[T],
        *,
        context: AsyncCallContext | None = None,
    ) -> T:
        """送信許可を得てから再試行つきで要求を非同期実行する。"""

        await self._limiter.admit(admission_categories(request), context=context)
        logger.debug("%s %s (%s)", request.method, request.path, request.api)

        async def attempt() -> Success[T] | RetryableFailure | TerminalFailure:
            if context is None:
                result = await self._transport.send(request)
            else:
                result = await context.run(
                    self._transport.send(request, timeout=context.remaining()),
                    stage="transport",
                )
                context.check("transport")
            outcome = classifier(result)
            _log_terminal(request, outcome)
            return outcome

        return await execute_with_retry_async(
            attempt,
            policy=self._policy,
            context=context,
            sleep=self._sleep,
            clock=self._clock,
        )

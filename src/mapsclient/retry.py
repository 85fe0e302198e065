"""指数バックオフ再試行ループ。

再試行可否は分類器の結果だけで決まり、ここでは待機時間の計算と
上限判定のみを行う。
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

from mapsclient.config import RetryPolicy
from mapsclient.context import AsyncCallContext, CallContext
from mapsclient.errors import MapsRetriesExhaustedError
from mapsclient.types import AsyncSleeper, RetryableFailure, Sleeper, Success, TerminalFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

Outcome = Success[T] | RetryableFailure | TerminalFailure


def next_delay(delay: float, policy: RetryPolicy) -> float:
    """次回の待機秒を返す。"""

    return min(delay * policy.multiplier, policy.max_delay)


def backoff_schedule(policy: RetryPolicy) -> Iterator[float]:
    """上限に達するまでの待機秒列を返す。

    max_retries が None のときは無限列になる。max_elapsed_time は考慮しない。
    """

    delay = policy.initial_delay
    count = 0
    while policy.max_retries is None or count < policy.max_retries:
        yield delay
        delay = next_delay(delay, policy)
        count += 1


@dataclass(slots=True)
class RetrySession:
    """1回の論理呼び出しに対する再試行状態。

    Attributes:
        policy: 再試行設定。
        started_at: 初回試行時刻（clock基準）。
        delay: 次回の基準待機秒。
        attempts: 実行済み試行回数。
        retries: 再試行可能な失敗の回数。
    """

    policy: RetryPolicy
    started_at: float
    delay: float
    attempts: int = 0
    retries: int = 0

    @classmethod
    def start(cls, policy: RetryPolicy, now: float) -> RetrySession:
        return cls(policy=policy, started_at=now, delay=policy.initial_delay)

    def plan_wait(self, outcome: RetryableFailure, now: float) -> float:
        """再試行前の待機秒を決める。

        Raises:
            MapsRetriesExhaustedError: 回数または経過時間の上限に達した。
        """

        self.retries += 1
        policy = self.policy
        if policy.max_retries is not None and self.retries > policy.max_retries:
            raise MapsRetriesExhaustedError(
                last_error=outcome.error,
                attempts=self.attempts,
                reason="max_retries",
            ) from outcome.error
        wait = self.delay
        if outcome.retry_after is not None:
            wait = max(wait, min(outcome.retry_after, policy.max_delay))
        elapsed = now - self.started_at
        if policy.max_elapsed_time is not None and elapsed + wait > policy.max_elapsed_time:
            raise MapsRetriesExhaustedError(
                last_error=outcome.error,
                attempts=self.attempts,
                reason="max_elapsed_time",
            ) from outcome.error
        return wait

    def advance(self, waited: float) -> None:
        """待機を終えた後に基準待機秒を進める。

        Retry-After で基準より長く待った場合はその秒数を新しい基準にする。
        """

        self.delay = next_delay(max(self.delay, waited), self.policy)


def _check_outcome(session: RetrySession, outcome: Outcome[T]) -> RetryableFailure | None:
    """成功なら None、終端なら例外送出、再試行可能ならその結果を返す。"""

    session.attempts += 1
    if isinstance(outcome, Success):
        return None
    if isinstance(outcome, TerminalFailure):
        logger.debug("terminal failure after %d attempt(s): %s", session.attempts, outcome.error)
        raise outcome.error
    if not isinstance(outcome, RetryableFailure):
        raise TypeError(f"分類器が未知の結果を返しました: {outcome!r}")
    return outcome


def execute_with_retry(
    attempt: Callable[[], Outcome[T]],
    *,
    policy: RetryPolicy,
    context: CallContext | None = None,
    sleep: Sleeper | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """試行を再試行つきで実行する。

    Args:
        attempt: 1回分の「送信→分類」を行う関数。
        policy: 再試行設定。
        context: 取消コンテキスト。
        sleep: 待機関数。省略時は context または time.sleep を使う。
        clock: 経過時間計測用の時計。

    Returns:
        成功値。

    Raises:
        MapsError: 分類器が返した終端エラー。
        MapsRetriesExhaustedError: 再試行上限に到達した。
        MapsCancelledError: 取消・期限切れ。
    """

    session = RetrySession.start(policy, clock())
    while True:
        if context is not None:
            context.check("transport")
        outcome = attempt()
        failure = _check_outcome(session, outcome)
        if failure is None:
            return outcome.value  # type: ignore[union-attr]
        if context is not None:
            context.check("backoff")
        wait = session.plan_wait(failure, clock())
        logger.warning(
            "retryable failure on attempt %d, retrying in %.3fs: %s",
            session.attempts,
            wait,
            failure.error,
        )
        if sleep is not None:
            sleep(wait)
            if context is not None:
                context.check("backoff")
        elif context is not None:
            context.wait(wait, stage="backoff")
        else:
            time.sleep(wait)
        session.advance(wait)


async def execute_with_retry_async(
    attempt: Callable[[], Awaitable[Outcome[T]]],
    *,
    policy: RetryPolicy,
    context: AsyncCallContext | None = None,
    sleep: AsyncSleeper | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """試行を再試行つきで非同期実行する。"""

    session = RetrySession.start(policy, clock())
    while True:
        if context is not None:
            context.check("transport")
        outcome = await attempt()
        failure = _check_outcome(session, outcome)
        if failure is None:
            return outcome.value  # type: ignore[union-attr]
        if context is not None:
            context.check("backoff")
        wait = session.plan_wait(failure, clock())
        logger.warning(
            "retryable failure on attempt %d, retrying in %.3fs: %s",
            session.attempts,
            wait,
            failure.error,
        )
        if sleep is not None:
            await sleep(wait)
            if context is not None:
                context.check("backoff")
        elif context is not None:
            await context.wait(wait, stage="backoff")
        else:
            await asyncio.sleep(wait)
        session.advance(wait)

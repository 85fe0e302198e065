"""呼び出しコンテキスト（取消・期限）。"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from mapsclient.errors import MapsCancelledError

T = TypeVar("T")


class _ContextBase:
    """期限計算の共通部分。"""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout は0以上を指定してください。")
        self._clock = clock
        self._deadline = None if timeout is None else clock() + timeout

    @property
    def cancelled(self) -> bool:
        raise NotImplementedError

    @property
    def expired(self) -> bool:
        """期限を過ぎたかどうか。"""

        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def done(self) -> bool:
        """取消済みまたは期限切れかどうか。"""

        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """期限までの残り秒。期限なしなら None。"""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def check(self, stage: str) -> None:
        """取消済みなら MapsCancelledError を送出する。"""

        if self.done:
            raise self._cancelled(stage)

    def _cancelled(self, stage: str) -> MapsCancelledError:
        if self.cancelled:
            return MapsCancelledError("呼び出しが取り消されました。", stage=stage)
        return MapsCancelledError("呼び出し期限を超過しました。", stage=stage)


class CallContext(_ContextBase):
    """同期呼び出し用の取消コンテキスト。

    cancel() は任意のスレッドから呼び出せる。
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(timeout=timeout, clock=clock)
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        """cancel() 済みかどうか。"""

        return self._event.is_set()

    def cancel(self) -> None:
        """取消を通知する。"""

        self._event.set()

    def wait(self, seconds: float, *, stage: str) -> None:
        """取消可能な待機。

        Args:
            seconds: 待機秒。
            stage: 待機点の名前。

        Raises:
            MapsCancelledError: 待機中に取消・期限切れとなった。
        """

        self.check(stage)
        if seconds <= 0:
            return
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            raise self._cancelled(stage)
        if self._event.wait(seconds):
            raise self._cancelled(stage)


class AsyncCallContext(_ContextBase):
    """非同期呼び出し用の取消コンテキスト。

    cancel() はイベントループのスレッドから呼び出すこと。
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(timeout=timeout, clock=clock)
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """cancel() 済みかどうか。"""

        return self._event.is_set()

    def cancel(self) -> None:
        """取消を通知する。"""

        self._event.set()

    async def wait(self, seconds: float, *, stage: str) -> None:
        """取消可能な非同期待機。"""

        self.check(stage)
        if seconds <= 0:
            return
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            if remaining is not None and remaining <= seconds:
                raise self._cancelled(stage) from None
            return
        raise self._cancelled(stage)

    async def run(self, awaitable: Awaitable[T], *, stage: str = "transport") -> T:
        """awaitable を取消・期限と競合させて実行する。

        取消が先に起きた場合は実行中のタスクをキャンセルしてから
        MapsCancelledError を送出する。
        """

        if self.done:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self._cancelled(stage)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done:
            return task.result()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise self._cancelled(stage)

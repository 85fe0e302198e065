"""API区分ごとのレート制御。

各区分の直近の許可時刻（未来の予約を含む）を昇順に保持し、
任意の半開区間 [t, t + per_interval) に max_calls 件を超えて許可しない。
判定と記録は区分ごとのロック下で一括して行い、待機はロック外で行う。
"""

from __future__ import annotations

import asyncio
import bisect
import contextlib
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field

from mapsclient.config import RateBudget
from mapsclient.context import AsyncCallContext, CallContext
from mapsclient.enums import ApiCategory
from mapsclient.errors import MapsCancelledError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _BudgetWindow:
    """1区分分の許可履歴。

    granted は未来の予約を含めて昇順に保つ。連続する max_calls + 1 件の
    幅がすべて per_interval 以上であれば、どの半開区間にも上限を超える
    許可は入らない。
    """

    api: ApiCategory
    budget: RateBudget
    lock: threading.Lock = field(default_factory=threading.Lock)
    granted: list[float] = field(default_factory=list)

    def prune(self, now: float) -> None:
        interval = self.budget.per_interval
        stale = 0
        while stale < len(self.granted) and self.granted[stale] + interval <= now:
            stale += 1
        del self.granted[:stale]

    def candidates(self, now: float) -> list[float]:
        """許可時刻になり得る now 以降の時刻を返す。"""

        interval = self.budget.per_interval
        points = [now]
        points.extend(at for at in self.granted if at > now)
        points.extend(at + interval for at in self.granted if at + interval > now)
        return points

    def admits(self, at: float) -> bool:
        """at に1件加えても上限を守れるかどうか。"""

        limit = self.budget.max_calls
        position = bisect.bisect_right(self.granted, at)
        nearby = (
            self.granted[max(0, position - limit):position]
            + [at]
            + self.granted[position:position + limit]
        )
        return all(
            nearby[index + limit] - nearby[index] >= self.budget.per_interval
            for index in range(len(nearby) - limit)
        )

    def record(self, at: float) -> None:
        bisect.insort(self.granted, at)

    def discard(self, at: float) -> None:
        if at in self.granted:
            self.granted.remove(at)


@dataclass(frozen=True, slots=True)
class Admission:
    """予約済みの送信許可。

    Attributes:
        at: 送信を許可する時刻（clock基準）。
        categories: 課金したAPI区分。
    """

    at: float
    categories: tuple[ApiCategory, ...]


class RateLimiter:
    """区分別レート制御の共通部分。

    クライアントが1つだけ所有し、リクエスト側は参照のみを保持する。
    """

    def __init__(
        self,
        budgets: Mapping[ApiCategory, RateBudget],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._budgets = dict(budgets)
        self._clock = clock
        self._windows = {
            api: _BudgetWindow(api=api, budget=budget)
            for api, budget in budgets.items()
            if not budget.unlimited
        }

    def budget(self, api: ApiCategory) -> RateBudget | None:
        """区分に設定されたレートを返す。"""

        return self._budgets.get(api)

    def reserve(self, categories: Iterable[ApiCategory]) -> Admission:
        """送信許可を予約する。

        関係する全区分のロックを固定順で取得し、全区分の上限を同時に満たす
        最も早い時刻を各区分へ記録する。既存の予約の手前に空きがあれば
        そこを使う。

        Args:
            categories: 課金するAPI区分。

        Returns:
            予約結果。
        """

        windows = [self._windows[api] for api in sorted(set(categories)) if api in self._windows]
        if not windows:
            return Admission(at=self._clock(), categories=())
        with contextlib.ExitStack() as stack:
            for window in windows:
                stack.enter_context(window.lock)
            now = self._clock()
            for window in windows:
                window.prune(now)
            points = sorted({point for window in windows for point in window.candidates(now)})
            at = next(point for point in points if all(window.admits(point) for window in windows))
            for window in windows:
                window.record(at)
        return Admission(at=at, categories=tuple(window.api for window in windows))

    def release(self, admission: Admission) -> None:
        """使われなかった予約を取り消す。"""

        for api in admission.categories:
            window = self._windows[api]
            with window.lock:
                window.discard(admission.at)

    def _wait_seconds(self, admission: Admission) -> float:
        return max(0.0, admission.at - self._clock())


class SyncRateLimiter(RateLimiter):
    """同期用の区分別レート制御。"""

    def __init__(
        self,
        budgets: Mapping[ApiCategory, RateBudget],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(budgets, clock=clock)
        self._sleep = sleep

    def admit(
        self,
        categories: Iterable[ApiCategory],
        *,
        context: CallContext | None = None,
    ) -> float:
        """送信許可まで待機する。

        Args:
            categories: 課金するAPI区分。
            context: 取消コンテキスト。

        Returns:
            待機した秒数。

        Raises:
            MapsCancelledError: 待機中に取消・期限切れとなった。
        """

        if context is not None:
            context.check("admission")
        admission = self.reserve(categories)
        wait = self._wait_seconds(admission)
        if wait <= 0:
            return 0.0
        logger.debug("admission delayed %.3fs for %s", wait, ",".join(admission.categories))
        if context is None:
            self._sleep(wait)
            return wait
        try:
            context.wait(wait, stage="admission")
        except MapsCancelledError:
            self.release(admission)
            raise
        return wait


class AsyncRateLimiter(RateLimiter):
    """非同期用の区分別レート制御。"""

    def __init__(
        self,
        budgets: Mapping[ApiCategory, RateBudget],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__(budgets, clock=clock)
        self._sleep = sleep

    async def admit(
        self,
        categories: Iterable[ApiCategory],
        *,
        context: AsyncCallContext | None = None,
    ) -> float:
        """送信許可まで待機する。"""

        if context is not None:
            context.check("admission")
        admission = self.reserve(categories)
        wait = self._wait_seconds(admission)
        if wait <= 0:
            return 0.0
        logger.debug("admission delayed %.3fs for %s", wait, ",".join(admission.categories))
        try:
            if context is None:
                await self._sleep(wait)
            else:
                await context.wait(wait, stage="admission")
        except (MapsCancelledError, asyncio.CancelledError):
            self.release(admission)
            raise
        return wait

"""設定値定義。"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from mapsclient.enums import ApiCategory, normalize_api

DEFAULT_BASE_URL = "https://maps.googleapis.com/maps/api"
DEFAULT_USER_AGENT = "mapsclient/0.1.0"


@dataclass(frozen=True, slots=True)
class RateBudget:
    """API区分ごとの許容呼び出し頻度。

    max_calls または per_interval が0のときは無制限として扱う。

    Attributes:
        max_calls: 区間内の最大呼び出し回数。
        per_interval: 区間長（秒）。
    """

    max_calls: int
    per_interval: float

    def __post_init__(self) -> None:
        if self.max_calls < 0:
            raise ValueError("max_calls は0以上を指定してください。")
        if self.per_interval < 0:
            raise ValueError("per_interval は0以上を指定してください。")

    @property
    def unlimited(self) -> bool:
        """無制限かどうか。"""

        return self.max_calls == 0 or self.per_interval == 0


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """指数バックオフ再試行設定。

    Attributes:
        initial_delay: 初回待機秒。
        max_delay: 待機上限秒。
        multiplier: 待機倍率（1より大きい値）。
        max_elapsed_time: 初回試行からの経過上限秒。None は無制限。
        max_retries: 最大再試行回数。None は無制限。
    """

    initial_delay: float = 0.5
    max_delay: float = 60.0
    multiplier: float = 1.5
    max_elapsed_time: float | None = 900.0
    max_retries: int | None = 20

    def __post_init__(self) -> None:
        if self.initial_delay < 0:
            raise ValueError("initial_delay は0以上を指定してください。")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay は initial_delay 以上を指定してください。")
        if self.multiplier <= 1.0:
            raise ValueError("multiplier は1より大きい値を指定してください。")
        if self.max_elapsed_time is not None and self.max_elapsed_time < 0:
            raise ValueError("max_elapsed_time は0以上を指定してください。")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries は0以上を指定してください。")


RateLimitsInput = Mapping[ApiCategory | str, RateBudget | tuple[int, float]]


def normalize_rate_limits(
    rate_limits: RateLimitsInput | None,
) -> Mapping[ApiCategory, RateBudget]:
    """レート設定を API区分 -> RateBudget の読み取り専用マップへ正規化する。

    Args:
        rate_limits: RateBudget または (max_calls, per_interval) の組。

    Returns:
        読み取り専用マップ。
    """

    normalized: dict[ApiCategory, RateBudget] = {}
    for key, value in (rate_limits or {}).items():
        api = normalize_api(key)
        if isinstance(value, RateBudget):
            normalized[api] = value
        else:
            max_calls, per_interval = value
            normalized[api] = RateBudget(max_calls=int(max_calls), per_interval=float(per_interval))
    return MappingProxyType(normalized)


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """クライアント共通設定。

    Attributes:
        base_url: APIベースURL。
        timeout: タイムアウト秒。
        user_agent: User-Agent。
        rate_limits: API区分ごとのレート設定。
        retry: 再試行設定。
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    rate_limits: Mapping[ApiCategory, RateBudget] = field(
        default_factory=lambda: MappingProxyType({})
    )
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def with_rate(
        self,
        api: ApiCategory | str,
        max_calls: int,
        per_interval: float,
    ) -> ClientConfig:
        """レート設定を1区分だけ差し替えた新しい設定を返す。"""

        merged = dict(self.rate_limits)
        merged[normalize_api(api)] = RateBudget(max_calls=max_calls, per_interval=per_interval)
        return replace(self, rate_limits=MappingProxyType(merged))

    def with_retry(self, **changes: float | int | None) -> ClientConfig:
        """再試行設定を部分的に差し替えた新しい設定を返す。"""

        return replace(self, retry=replace(self.retry, **changes))

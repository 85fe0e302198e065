"""公開クライアント実装。"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from mapsclient.classify import status_classifier
from mapsclient.config import (
    DEFAULT_BASE_URL,
    DEFAULT_USER_AGENT,
    ClientConfig,
    RateLimitsInput,
    RetryPolicy,
    normalize_rate_limits,
)
from mapsclient.context import AsyncCallContext, CallContext
from mapsclient.enums import ApiCategory, normalize_api
from mapsclient.errors_catalog import StatusCatalog
from mapsclient.http import AsyncHttpxTransport, HttpxTransport
from mapsclient.ratelimit import AsyncRateLimiter, SyncRateLimiter
from mapsclient.services import AsyncDispatcher, AsyncEndpointService, EndpointService, SyncDispatcher
from mapsclient.types import AsyncTransport, Classifier, Transport


def _build_config(
    *,
    timeout: float,
    base_url: str,
    user_agent: str,
    rate_limits: RateLimitsInput | None,
    retry_initial_delay: float,
    retry_max_delay: float,
    retry_multiplier: float,
    retry_max_elapsed_time: float | None,
    retry_max_retries: int | None,
) -> ClientConfig:
    if timeout <= 0:
        raise ValueError("timeout は0より大きい値を指定してください。")
    retry = RetryPolicy(
        initial_delay=retry_initial_delay,
        max_delay=retry_max_delay,
        multiplier=retry_multiplier,
        max_elapsed_time=retry_max_elapsed_time,
        max_retries=retry_max_retries,
    )
    return ClientConfig(
        base_url=base_url,
        timeout=timeout,
        user_agent=user_agent,
        rate_limits=normalize_rate_limits(rate_limits),
        retry=retry,
    )


def _http_client_kwargs(
    config: ClientConfig,
    *,
    http2: bool,
    proxy: str | None,
    limits: httpx.Limits | None,
) -> dict[str, Any]:
    client_kwargs: dict[str, Any] = {
        "base_url": config.base_url,
        "timeout": config.timeout,
        "http2": http2,
    }
    if proxy is not None:
        client_kwargs["proxy"] = proxy
    if limits is not None:
        client_kwargs["limits"] = limits
    return client_kwargs


class MapsClient:
    """地図データAPIの同期クライアント。"""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        rate_limits: RateLimitsInput | None = None,
        retry_initial_delay: float = 0.5,
        retry_max_delay: float = 60.0,
        retry_multiplier: float = 1.5,
        retry_max_elapsed_time: float | None = 900.0,
        retry_max_retries: int | None = 20,
        http_client: httpx.Client | None = None,
        http2: bool = False,
        proxy: str | None = None,
        limits: httpx.Limits | None = None,
        transport: Transport | None = None,
    ) -> None:
        """クライアントを初期化する。

        Args:
            timeout: HTTPタイムアウト秒。
            base_url: APIベースURL。
            user_agent: User-Agent。
            rate_limits: API区分ごとのレート設定。RateBudget または
                (max_calls, per_interval) の組。ALL は全呼び出しに適用される。
            retry_initial_delay: 初回待機秒。
            retry_max_delay: 待機上限秒。
            retry_multiplier: 待機倍率。
            retry_max_elapsed_time: 経過時間上限秒。None は無制限。
            retry_max_retries: 最大再試行回数。None は無制限。
            http_client: 外部httpx.Client。
            http2: HTTP/2有効化。
            proxy: プロキシ。
            limits: httpx接続制御。
            transport: httpx以外のトランスポート。指定時は http_client を使わない。
        """

        config = _build_config(
            timeout=timeout,
            base_url=base_url,
            user_agent=user_agent,
            rate_limits=rate_limits,
            retry_initial_delay=retry_initial_delay,
            retry_max_delay=retry_max_delay,
            retry_multiplier=retry_multiplier,
            retry_max_elapsed_time=retry_max_elapsed_time,
            retry_max_retries=retry_max_retries,
        )
        self._setup(config, http_client=http_client, http2=http2, proxy=proxy, limits=limits, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        http_client: httpx.Client | None = None,
        transport: Transport | None = None,
    ) -> MapsClient:
        """構築済みの設定からクライアントを作る。"""

        client = cls.__new__(cls)
        client._setup(config, http_client=http_client, http2=False, proxy=None, limits=None, transport=transport)
        return client

    def _setup(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.Client | None,
        http2: bool,
        proxy: str | None,
        limits: httpx.Limits | None,
        transport: Transport | None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None and transport is None
        self._http_client: httpx.Client | None = None
        if transport is None:
            if http_client is None:
                http_client = httpx.Client(**_http_client_kwargs(config, http2=http2, proxy=proxy, limits=limits))
            self._http_client = http_client
            transport = HttpxTransport(http_client, user_agent=config.user_agent)

        self._limiter = SyncRateLimiter(config.rate_limits)
        self._dispatcher = SyncDispatcher(
            transport=transport,
            limiter=self._limiter,
            policy=config.retry,
        )
        self.statuses = StatusCatalog()

    @property
    def config(self) -> ClientConfig:
        """確定済み設定。"""

        return self._config

    @property
    def limiter(self) -> SyncRateLimiter:
        return self._limiter

    @property
    def dispatcher(self) -> SyncDispatcher:
        return self._dispatcher

    def endpoint(
        self,
        api: ApiCategory | str,
        path: str,
        classifier: Classifier[Any] | None = None,
    ) -> EndpointService[Any]:
        """エンドポイント呼び出し口を作る。

        Args:
            api: API区分。
            path: base_url からの相対パス。
            classifier: 分類器。省略時は status フィールドで判定する。
        """

        return EndpointService(
            dispatcher=self._dispatcher,
            api=normalize_api(api),
            path=path,
            classifier=classifier or status_classifier(),
        )

    def request(
        self,
        api: ApiCategory | str,
        path: str,
        params: Mapping[str, object] | None = None,
        *,
        classifier: Classifier[Any] | None = None,
        headers: Mapping[str, str] | None = None,
        context: CallContext | None = None,
    ) -> Any:
        """1回の論理呼び出しを実行する。"""

        return self.endpoint(api, path, classifier).get(params, headers=headers, context=context)

    def close(self) -> None:
        """内部Clientをクローズする。"""

        if self._owns_client and self._http_client is not None:
            self._http_client.close()

    def __enter__(self) -> "MapsClient":
        """コンテキスト開始。"""

        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """コンテキスト終了。"""

        self.close()


class AsyncMapsClient:
    """地図データAPIの非同期クライアント。"""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        rate_limits: RateLimitsInput | None = None,
        retry_initial_delay: float = 0.5,
        retry_max_delay: float = 60.0,
        retry_multiplier: float = 1.5,
        retry_max_elapsed_time: float | None = 900.0,
        retry_max_retries: int | None = 20,
        http_client: httpx.AsyncClient | None = None,
        http2: bool = False,
        proxy: str | None = None,
        limits: httpx.Limits | None = None,
        transport: AsyncTransport | None = None,
    ) -> None:
        """非同期クライアントを初期化する。"""

        config = _build_config(
            timeout=timeout,
            base_url=base_url,
            user_agent=user_agent,
            rate_limits=rate_limits,
            retry_initial_delay=retry_initial_delay,
            retry_max_delay=retry_max_delay,
            retry_multiplier=retry_multiplier,
            retry_max_elapsed_time=retry_max_elapsed_time,
            retry_max_retries=retry_max_retries,
        )
        self._setup(config, http_client=http_client, http2=http2, proxy=proxy, limits=limits, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: AsyncTransport | None = None,
    ) -> AsyncMapsClient:
        """構築済みの設定からクライアントを作る。"""

        client = cls.__new__(cls)
        client._setup(config, http_client=http_client, http2=False, proxy=None, limits=None, transport=transport)
        return client

    def _setup(
        self,
        config: ClientConfig,
        *,
        http_client: httpx.AsyncClient | None,
        http2: bool,
        proxy: str | None,
        limits: httpx.Limits | None,
        transport: AsyncTransport | None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None and transport is None
        self._http_client: httpx.AsyncClient | None = None
        if transport is None:
            if http_client is None:
                http_client = httpx.AsyncClient(
                    **_http_client_kwargs(config, http2=http2, proxy=proxy, limits=limits)
                )
            self._http_client = http_client
            transport = AsyncHttpxTransport(http_client, user_agent=config.user_agent)

        self._limiter = AsyncRateLimiter(config.rate_limits)
        self._dispatcher = AsyncDispatcher(
            transport=transport,
            limiter=self._limiter,
            policy=config.retry,
        )
        self.statuses = StatusCatalog()

    @property
    def config(self) -> ClientConfig:
        """確定済み設定。"""

        return self._config

    @property
    def limiter(self) -> AsyncRateLimiter:
        return self._limiter

    @property
    def dispatcher(self) -> AsyncDispatcher:
        return self._dispatcher

    def endpoint(
        self,
        api: ApiCategory | str,
        path: str,
        classifier: Classifier[Any] | None = None,
    ) -> AsyncEndpointService[Any]:
        """エンドポイント呼び出し口を作る。"""

        return AsyncEndpointService(
            dispatcher=self._dispatcher,
            api=normalize_api(api),
            path=path,
            classifier=classifier or status_classifier(),
        )

    async def request(
        self,
        api: ApiCategory | str,
        path: str,
        params: Mapping[str, object] | None = None,
        *,
        classifier: Classifier[Any] | None = None,
        headers: Mapping[str, str] | None = None,
        context: AsyncCallContext | None = None,
    ) -> Any:
        """1回の論理呼び出しを非同期実行する。"""

        return await self.endpoint(api, path, classifier).get(params, headers=headers, context=context)

    async def aclose(self) -> None:
        """内部Clientをクローズする。"""

        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()

    async def __aenter__(self) -> "AsyncMapsClient":
        """非同期コンテキスト開始。"""

        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """非同期コンテキスト終了。"""

        await self.aclose()

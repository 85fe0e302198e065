"""エンドポイント単位の呼び出し口。"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Generic, TypeVar

from mapsclient.context import AsyncCallContext, CallContext
from mapsclient.enums import ApiCategory
from mapsclient.services._transport import AsyncDispatcher, SyncDispatcher
from mapsclient.types import Classifier, RequestDescriptor

T = TypeVar("T")


def build_descriptor(
    *,
    api: ApiCategory,
    path: str,
    params: Mapping[str, object] | None,
    headers: Mapping[str, str] | None,
) -> RequestDescriptor:
    """クエリ値を文字列化してリクエストを組み立てる。

    None の値は送信しない。
    """

    cleaned = {key: str(value) for key, value in (params or {}).items() if value is not None}
    return RequestDescriptor(
        api=api,
        path=path,
        params=MappingProxyType(cleaned),
        headers=MappingProxyType(dict(headers or {})),
    )


class EndpointService(Generic[T]):
    """同期エンドポイント。

    ディスパッチャ（とその先のレート制御）は参照のみを保持する。
    """

    def __init__(
        self,
        *,
        dispatcher: SyncDispatcher,
        api: ApiCategory,
        path: str,
        classifier: Classifier[T],
    ) -> None:
        self._dispatcher = dispatcher
        self.api = api
        self.path = path
        self._classifier = classifier

    def get(
        self,
        params: Mapping[str, object] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        context: CallContext | None = None,
    ) -> T:
        """エンドポイントへGET要求を送る。"""

        request = build_descriptor(api=self.api, path=self.path, params=params, headers=headers)
        return self._dispatcher.dispatch(request, self._classifier, context=context)


class AsyncEndpointService(Generic[T]):
    """非同期エンドポイント。"""

    def __init__(
        self,
        *,
        dispatcher: AsyncDispatcher,
        api: ApiCategory,
        path: str,
        classifier: Classifier[T],
    ) -> None:
        self._dispatcher = dispatcher
        self.api = api
        self.path = path
        self._classifier = classifier

    async def get(
        self,
        params: Mapping[str, object] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        context: AsyncCallContext | None = None,
    ) -> T:
        """エンドポイントへGET要求を送る。"""

        request = build_descriptor(api=self.api, path=self.path, params=params, headers=headers)
        return await self._dispatcher.dispatch(request, self._classifier, context=context)

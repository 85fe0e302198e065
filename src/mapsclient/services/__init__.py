"""サービス層モジュール。"""

from mapsclient.services._transport import AsyncDispatcher, SyncDispatcher
from mapsclient.services.endpoint import AsyncEndpointService, EndpointService

__all__ = [
    "AsyncDispatcher",
    "AsyncEndpointService",
    "EndpointService",
    "SyncDispatcher",
]

"""mapsclient 公開API。"""

from mapsclient.classify import classify_transport, json_classifier, status_classifier
from mapsclient.client import AsyncMapsClient, MapsClient
from mapsclient.config import ClientConfig, RateBudget, RetryPolicy
from mapsclient.context import AsyncCallContext, CallContext
from mapsclient.enums import ApiCategory, ServiceStatus
from mapsclient.errors import (
    MapsCancelledError,
    MapsError,
    MapsHttpStatusError,
    MapsResponseMalformedError,
    MapsRetriesExhaustedError,
    MapsServiceRejectedError,
    MapsTransportError,
)
from mapsclient.types import (
    RawResponse,
    RequestDescriptor,
    RetryableFailure,
    Success,
    TerminalFailure,
    TransportFault,
)

__all__ = [
    "ApiCategory",
    "AsyncCallContext",
    "AsyncMapsClient",
    "CallContext",
    "ClientConfig",
    "MapsCancelledError",
    "MapsClient",
    "MapsError",
    "MapsHttpStatusError",
    "MapsResponseMalformedError",
    "MapsRetriesExhaustedError",
    "MapsServiceRejectedError",
    "MapsTransportError",
    "RateBudget",
    "RawResponse",
    "RequestDescriptor",
    "RetryPolicy",
    "RetryableFailure",
    "ServiceStatus",
    "Success",
    "TerminalFailure",
    "TransportFault",
    "classify_transport",
    "json_classifier",
    "status_classifier",
]

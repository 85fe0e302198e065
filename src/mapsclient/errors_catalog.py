"""status分類カタログ。"""

from __future__ import annotations

from dataclasses import dataclass

from mapsclient.enums import ServiceStatus

STATUS_CATALOG_VERSION = "2026.10"

_CATEGORY_MAP = {
    ServiceStatus.OK: "ok",
    ServiceStatus.ZERO_RESULTS: "no_results",
    ServiceStatus.NOT_FOUND: "no_results",
    ServiceStatus.INVALID_REQUEST: "invalid_request",
    ServiceStatus.OVER_DAILY_LIMIT: "quota",
    ServiceStatus.OVER_QUERY_LIMIT: "quota",
    ServiceStatus.REQUEST_DENIED: "denied",
    ServiceStatus.UNKNOWN_ERROR: "transient",
    ServiceStatus.MAX_WAYPOINTS_EXCEEDED: "limits",
    ServiceStatus.MAX_ROUTE_LENGTH_EXCEEDED: "limits",
    ServiceStatus.MAX_ELEMENTS_EXCEEDED: "limits",
    ServiceStatus.MAX_DIMENSIONS_EXCEEDED: "limits",
    ServiceStatus.DATA_NOT_AVAILABLE: "no_results",
}

_DEFAULT_MESSAGES = {
    ServiceStatus.OK: "Ok. The request was successful.",
    ServiceStatus.ZERO_RESULTS: "Zero results. The request was valid but returned no results.",
    ServiceStatus.NOT_FOUND: "Not found. A referenced location or place could not be found.",
    ServiceStatus.INVALID_REQUEST: "Invalid request. The request was malformed.",
    ServiceStatus.OVER_DAILY_LIMIT: (
        "Over daily limit. The API key is missing or invalid, billing is not enabled, "
        "or a self-imposed usage cap has been exceeded."
    ),
    ServiceStatus.OVER_QUERY_LIMIT: "Over query limit. Requestor has exceeded quota.",
    ServiceStatus.REQUEST_DENIED: "Request denied. Service did not complete the request.",
    ServiceStatus.UNKNOWN_ERROR: "Unknown error. The request may succeed if tried again.",
    ServiceStatus.MAX_WAYPOINTS_EXCEEDED: "Too many waypoints were provided in the request.",
    ServiceStatus.MAX_ROUTE_LENGTH_EXCEEDED: "The requested route is too long to be processed.",
    ServiceStatus.MAX_ELEMENTS_EXCEEDED: "The product of origins and destinations exceeds the per-query limit.",
    ServiceStatus.MAX_DIMENSIONS_EXCEEDED: "The number of origins or destinations exceeds the per-query limit.",
    ServiceStatus.DATA_NOT_AVAILABLE: "No data is available for the requested location.",
}


def parse_status(value: object) -> ServiceStatus | None:
    """status値を列挙へ変換する。未知値は None。"""

    if not isinstance(value, str):
        return None
    try:
        return ServiceStatus(value.strip().upper())
    except ValueError:
        return None


def describe_status(status: ServiceStatus) -> str:
    """error_message が無いときの既定メッセージを返す。"""

    return _DEFAULT_MESSAGES[status]


@dataclass(frozen=True, slots=True)
class StatusClassification:
    """status分類結果。

    Attributes:
        status: status値。
        category: 意味カテゴリ。
        catalog_version: カタログ版。
    """

    status: ServiceStatus
    category: str
    catalog_version: str


@dataclass(slots=True)
class StatusCatalog:
    """status分類器。"""

    catalog_version: str = STATUS_CATALOG_VERSION

    def classify(self, status: ServiceStatus | str) -> StatusClassification:
        """statusから意味カテゴリを返す。

        Args:
            status: status値。

        Returns:
            分類結果。

        Raises:
            ValueError: 未知のstatus。
        """

        parsed = parse_status(status)
        if parsed is None:
            raise ValueError(f"未知のstatusです: {status!r}")
        return StatusClassification(
            status=parsed,
            category=_CATEGORY_MAP.get(parsed, "unknown"),
            catalog_version=self.catalog_version,
        )

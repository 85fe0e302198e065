"""列挙型定義。"""

from __future__ import annotations

from enum import StrEnum


class ApiCategory(StrEnum):
    """レート制御の単位となるAPI区分。

    ALL は全呼び出しに一致するワイルドカード区分。

    Attributes:
        ALL: 全API共通。
        DIRECTIONS: 経路探索。
        DISTANCE_MATRIX: 距離行列。
        ELEVATION: 標高。
        GEOCODING: ジオコーディング。
        PLACES: プレイス検索。
        ROADS: 道路。
        TIME_ZONE: タイムゾーン。
    """

    ALL = "all"
    DIRECTIONS = "directions"
    DISTANCE_MATRIX = "distance_matrix"
    ELEVATION = "elevation"
    GEOCODING = "geocoding"
    PLACES = "places"
    ROADS = "roads"
    TIME_ZONE = "time_zone"


class ServiceStatus(StrEnum):
    """レスポンス本文の status フィールド値。

    各地図APIで共通に使われる語彙をまとめたもの。
    """

    OK = "OK"
    ZERO_RESULTS = "ZERO_RESULTS"
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    OVER_DAILY_LIMIT = "OVER_DAILY_LIMIT"
    OVER_QUERY_LIMIT = "OVER_QUERY_LIMIT"
    REQUEST_DENIED = "REQUEST_DENIED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    MAX_WAYPOINTS_EXCEEDED = "MAX_WAYPOINTS_EXCEEDED"
    MAX_ROUTE_LENGTH_EXCEEDED = "MAX_ROUTE_LENGTH_EXCEEDED"
    MAX_ELEMENTS_EXCEEDED = "MAX_ELEMENTS_EXCEEDED"
    MAX_DIMENSIONS_EXCEEDED = "MAX_DIMENSIONS_EXCEEDED"
    DATA_NOT_AVAILABLE = "DATA_NOT_AVAILABLE"


def normalize_api(value: ApiCategory | str) -> ApiCategory:
    """API区分を正規化する。

    Args:
        value: 列挙値または文字列（大文字小文字・ハイフンを許容）。

    Returns:
        正規化済みAPI区分。

    Raises:
        ValueError: 未知の区分。
    """

    if isinstance(value, ApiCategory):
        return value
    text = str(value).strip().lower().replace("-", "_")
    try:
        return ApiCategory(text)
    except ValueError as exc:
        choices = ", ".join(item.value for item in ApiCategory)
        raise ValueError(f"未知のAPI区分です: {value!r}（{choices}）") from exc

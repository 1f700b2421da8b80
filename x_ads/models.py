"""
Pydantic models for X Ads API responses used by x_ads.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from x_ads.rate_limit import RateLimitInfo


def _to_mapping(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, Mapping):
        return payload
    if hasattr(payload, "body") and isinstance(payload.body, Mapping):
        return payload.body
    if hasattr(payload, "__dict__"):
        return _to_mapping(vars(payload))
    raise TypeError(f"Cannot convert payload of type {type(payload)!r} to mapping.")


class ApiErrorDetail(BaseModel):
    """One entry of an ``errors`` array."""

    code: int | str | None = None
    message: str | None = None
    parameter: str | None = None

    model_config = ConfigDict(extra="allow")


class ApiResult(BaseModel):
    """Decoded response of one API call plus its HTTP status."""

    status: int
    body: dict[str, Any] = Field(default_factory=dict)
    data: Any = None
    next_cursor: str | None = None
    total_count: int | None = None
    errors: list[ApiErrorDetail] = Field(default_factory=list)
    rate_limit: RateLimitInfo | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_payload(
        cls,
        status: int,
        payload: Mapping[str, Any] | None,
        *,
        rate_limit: RateLimitInfo | None = None,
    ) -> "ApiResult":
        body = dict(payload or {})
        return cls(
            status=status,
            body=body,
            data=body.get("data"),
            next_cursor=body.get("next_cursor") or None,
            total_count=body.get("total_count"),
            errors=parse_errors(body),
            rate_limit=rate_limit,
        )

    def items(self) -> list[Any]:
        """``data`` as a list: lists as-is, a single object wrapped, ``None`` empty."""

        if self.data is None:
            return []
        if isinstance(self.data, list):
            return list(self.data)
        return [self.data]


def parse_errors(body: Mapping[str, Any]) -> list[ApiErrorDetail]:
    raw = body.get("errors")
    if not raw:
        return []
    if isinstance(raw, Mapping):
        raw = [raw]
    errors: list[ApiErrorDetail] = []
    for item in raw:
        if isinstance(item, Mapping):
            errors.append(ApiErrorDetail.model_validate(item))
        else:
            errors.append(ApiErrorDetail(message=str(item)))
    return errors


class Tweet(BaseModel):
    """Normalized representation of a created tweet."""

    id: str
    text: str | None = None

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_api(cls, payload: Any) -> "Tweet":
        mapping = _to_mapping(payload)
        if isinstance(mapping.get("data"), Mapping):
            mapping = mapping["data"]
        return cls.model_validate(mapping)


class MediaProcessingError(BaseModel):
    code: int | None = None
    name: str | None = None
    message: str | None = None


class MediaProcessingInfo(BaseModel):
    state: str
    check_after_secs: int | None = None
    progress_percent: int | None = None
    error: MediaProcessingError | None = None

    model_config = ConfigDict(extra="allow")


class MediaUploadResult(BaseModel):
    """Normalized response from the media upload endpoints."""

    media_id: str
    media_id_string: str | None = None
    media_key: str | None = None
    size: int | None = None
    expires_after_secs: int | None = None
    processing_info: MediaProcessingInfo | None = None

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_api(cls, payload: Any) -> "MediaUploadResult":
        return cls.model_validate(_to_mapping(payload))

    @field_validator("media_id", mode="before")
    @classmethod
    def coerce_media_id(cls, value: Any) -> str:
        if isinstance(value, (int, float)):
            return str(int(value))
        if isinstance(value, str):
            return value
        raise TypeError("media_id must be serializable to str.")


class StatsMetrics(BaseModel):
    """
    Metric series of one entity segment.

    The stats endpoint returns each metric as ``null``, a scalar or an array
    (one element per period, elements may be ``null``). Every value is
    normalized to a list of numbers with missing entries set to zero.
    """

    values: dict[str, list[float]] = Field(default_factory=dict)

    @field_validator("values", mode="before")
    @classmethod
    def normalize(cls, raw: Any) -> dict[str, list[float]]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise TypeError("metrics must be a mapping")
        return {str(name): _metric_series(value) for name, value in raw.items()}

    def series(self, name: str) -> list[float]:
        return list(self.values.get(name, []))

    def value(self, name: str, index: int = 0) -> float:
        series = self.values.get(name)
        if not series or index >= len(series):
            return 0.0
        return series[index]

    def total(self, name: str) -> float:
        return sum(self.values.get(name, []))

    def period_count(self) -> int:
        return max((len(series) for series in self.values.values()), default=0)


class EntityStats(BaseModel):
    """Stats for one entity id, one metrics block per segment."""

    id: str
    segments: list[StatsMetrics] = Field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "EntityStats":
        id_data = payload.get("id_data") or []
        return cls(
            id=str(payload.get("id")),
            segments=[
                StatsMetrics(values=(segment or {}).get("metrics"))
                for segment in id_data
            ],
        )

    def total(self, name: str) -> float:
        return sum(segment.total(name) for segment in self.segments)


def _metric_series(value: Any) -> list[float]:
    if value is None:
        return []
    if isinstance(value, list):
        return [_to_number(item) for item in value]
    return [_to_number(value)]


def _to_number(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0

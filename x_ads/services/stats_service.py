"""
Analytics retrieval for campaigns, line items and promoted tweets.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Iterator, Protocol, Sequence

from x_ads.cancellation import CancellationToken
from x_ads.models import ApiResult, EntityStats
from x_ads.pagination import Paginator

ENTITY_TYPES = ("CAMPAIGN", "LINE_ITEM", "PROMOTED_TWEET")
ENTITY_LIST_PATHS = {
    "CAMPAIGN": "campaigns",
    "LINE_ITEM": "line_items",
    "PROMOTED_TWEET": "promoted_tweets",
}
GRANULARITIES = ("TOTAL", "DAY", "HOUR")
DEFAULT_METRIC_GROUPS = ("ENGAGEMENT", "BILLING")
MAX_ENTITY_IDS_PER_REQUEST = 20

DATE_RANGE_PRESETS = ("today", "yesterday", "last_7d", "last_14d", "last_30d", "this_month", "last_month")
DEFAULT_DATE_RANGE = "last_7d"
_TRAILING_DAYS = {"last_7d": 7, "last_14d": 14, "last_30d": 30}


class StatsClient(Protocol):
    def execute(self, method: str, path: str, query: Any = None, body: Any = None, **kwargs: Any) -> ApiResult:
        ...


def parse_date_range(value: str, *, now: datetime | None = None) -> tuple[str, str]:
    """
    Turn a preset or ``YYYY-MM-DD..YYYY-MM-DD`` into UTC ``(start_time, end_time)``.

    Days are whole: the start is ``00:00:00Z`` of the first day and the end is
    ``23:59:59Z`` of the last one. Trailing presets such as ``last_7d`` end
    today and start that many days earlier.

    Raises:
        ValueError: for an unknown preset, a malformed date or a reversed range.
    """

    today = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).date()

    if ".." in value:
        first_text, _, last_text = value.partition("..")
        try:
            first = date.fromisoformat(first_text.strip())
            last = date.fromisoformat(last_text.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid date range {value!r}. Use YYYY-MM-DD..YYYY-MM-DD.") from exc
    elif value == "today":
        first = last = today
    elif value == "yesterday":
        first = last = today - timedelta(days=1)
    elif value in _TRAILING_DAYS:
        first, last = today - timedelta(days=_TRAILING_DAYS[value]), today
    elif value == "this_month":
        first, last = today.replace(day=1), today
    elif value == "last_month":
        last = today.replace(day=1) - timedelta(days=1)
        first = last.replace(day=1)
    else:
        raise ValueError(
            f"Unknown date range preset {value!r}. "
            f"Use one of {', '.join(DATE_RANGE_PRESETS)} or YYYY-MM-DD..YYYY-MM-DD."
        )

    if first > last:
        raise ValueError(f"Date range {value!r} ends before it starts.")
    return f"{first.isoformat()}T00:00:00Z", f"{last.isoformat()}T23:59:59Z"


@dataclass(slots=True)
class StatsService:
    client: StatsClient
    batch_size: int = MAX_ENTITY_IDS_PER_REQUEST

    def list_entity_ids(
        self,
        account_id: str,
        entity: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> list[str]:
        """Ids of every non-deleted entity of ``entity`` type in the account."""

        path = f"accounts/{account_id}/{ENTITY_LIST_PATHS[_entity_type(entity)]}"
        items = Paginator(self.client).fetch_all("GET", path, {"with_deleted": "false"}, cancel=cancel)
        return [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]

    def fetch(
        self,
        account_id: str,
        *,
        entity: str,
        entity_ids: Iterable[str] | None = None,
        start_time: str,
        end_time: str,
        granularity: str = "TOTAL",
        metric_groups: Sequence[str] = DEFAULT_METRIC_GROUPS,
        cancel: CancellationToken | None = None,
    ) -> list[EntityStats]:
        """
        Fetch synchronous stats, issuing one request per batch of entity ids.

        Without ``entity_ids`` every entity of the type in the account is
        listed first. Results keep the order of the batches and of the
        entries within each response.
        """

        entity = _entity_type(entity)
        granularity = granularity.upper()
        if granularity not in GRANULARITIES:
            raise ValueError(f"Unknown granularity '{granularity}'.")

        if entity_ids is None:
            ids = self.list_entity_ids(account_id, entity, cancel=cancel)
        else:
            ids = list(entity_ids)

        stats: list[EntityStats] = []
        for batch in _batched(ids, self.batch_size):
            response = self.client.execute(
                "GET",
                f"stats/accounts/{account_id}",
                {
                    "entity": entity,
                    "entity_ids": ",".join(batch),
                    "start_time": start_time,
                    "end_time": end_time,
                    "granularity": granularity,
                    "metric_groups": ",".join(metric_groups),
                },
                cancel=cancel,
            )
            stats.extend(EntityStats.from_api(item) for item in response.items())
        return stats


def _entity_type(entity: str) -> str:
    entity = entity.upper()
    if entity not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type '{entity}'.")
    return entity


def _batched(items: list[str], size: int) -> Iterator[list[str]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]

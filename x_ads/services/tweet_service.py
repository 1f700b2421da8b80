"""
Tweet creation on the companion public API, used to build promotable posts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol
from urllib.parse import urljoin

from x_ads.config import PUBLIC_API_BASE_URL
from x_ads.models import ApiResult, Tweet

CARD_URI_PREFIX = "card://"


class TweetClient(Protocol):
    """Protocol subset consumed by the service."""

    def execute(self, method: str, path: str, query: Any = None, body: Any = None, **kwargs: Any) -> ApiResult:
        ...


@dataclass(slots=True)
class TweetService:
    """Creates tweets that can afterwards be promoted to a line item."""

    client: TweetClient
    base_url: str = PUBLIC_API_BASE_URL

    def create_tweet(
        self,
        text: str,
        *,
        card: str | None = None,
        media_ids: Iterable[str] | None = None,
        **extra: Any,
    ) -> Tweet:
        payload: dict[str, Any] = {"text": text}
        if card:
            payload["card_uri"] = card if card.startswith(CARD_URI_PREFIX) else f"{CARD_URI_PREFIX}{card}"
        ids = [str(media_id) for media_id in media_ids or ()]
        if ids:
            payload["media"] = {"media_ids": ids}
        payload.update(extra)

        response = self.client.execute("POST", urljoin(self.base_url, "tweets"), json_body=payload)
        return Tweet.from_api(response)

"""
Cursor pagination over list endpoints of the X Ads API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Protocol

from x_ads.cancellation import CancellationToken, check_cancelled
from x_ads.exceptions import PaginationNonTermination
from x_ads.models import ApiResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 500
CURSOR_PARAM = "cursor"


class PageClient(Protocol):
    """Protocol subset of :class:`~x_ads.clients.api_client.ApiClient` used here."""

    def execute(
        self,
        method: str,
        path: str,
        query: Any = None,
        body: Any = None,
        **kwargs: Any,
    ) -> ApiResult:
        ...


@dataclass(slots=True)
class Paginator:
    """Follows ``next_cursor`` until the server stops returning one."""

    client: PageClient
    max_pages: int = DEFAULT_MAX_PAGES

    def fetch_all(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> list[Any]:
        """
        Aggregate every page into one list, preserving server order.

        Raises:
            PaginationNonTermination: when more than ``max_pages`` pages are
                requested.
        """

        return list(self.iter_items(method, path, params, cancel=cancel))

    def iter_items(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Iterator[Any]:
        for page in self.iter_pages(method, path, params, cancel=cancel):
            yield from page.items()

    def iter_pages(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Iterator[ApiResult]:
        query = dict(params or {})
        pages = 0
        while True:
            if pages >= self.max_pages:
                raise PaginationNonTermination(
                    f"{path} still returned a cursor after {pages} pages.",
                    pages=pages,
                    path=path,
                )
            check_cancelled(cancel, f"pagination of {path}")

            page = self.client.execute(method, path, dict(query), cancel=cancel)
            pages += 1
            yield page

            cursor = page.next_cursor
            if not cursor:
                logger.debug("Fetched %d page(s) from %s", pages, path)
                return
            query[CURSOR_PARAM] = cursor

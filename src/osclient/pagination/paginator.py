"""
Marker-based pagination over list calls.

A Paginator turns one list Request into a lazy async sequence of items. Each
page's continuation marker is merged into the query of the next request;
iteration ends on a page without a marker or without items.

Markers must strictly advance. A marker the paginator has already sent is a
server-side pagination bug and raises PaginationError instead of looping.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlsplit

from osclient.errors.exceptions import NotFound, PaginationError, TooManyItems
from osclient.http.executor import RequestExecutor
from osclient.http.models import Request, Response

logger = logging.getLogger(__name__)

DEFAULT_MARKER_PARAM = "marker"
DEFAULT_LIMIT_PARAM = "limit"


@dataclass
class Page:
    """Ordered items plus an optional continuation marker (None = last page)."""

    items: list[Any] = field(default_factory=list)
    marker: str | None = None


PageParser = Callable[[Response], Page]


# =============================================================================
# Page parsers
# =============================================================================


def _body(response: Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise PaginationError(f"List response is not valid JSON: {e}") from e


def _items(body: Any, items_key: str) -> list[Any]:
    if not isinstance(body, dict):
        raise PaginationError(f"List response is not a JSON object (expected '{items_key}')")
    items = body.get(items_key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise PaginationError(f"List response field '{items_key}' is not an array")
    return items


def marker_from_href(href: str, marker_param: str = DEFAULT_MARKER_PARAM) -> str | None:
    """Extract the marker query parameter from a next-page link."""
    values = parse_qs(urlsplit(href).query).get(marker_param)
    return values[0] if values else None


def links_page_parser(
    items_key: str,
    links_key: str | None = None,
    marker_param: str = DEFAULT_MARKER_PARAM,
) -> PageParser:
    """
    Parser for bodies with a ``rel: next`` link.

    Looks for ``"<items_key>_links"`` (compute style) and then ``"links"``
    (image/network style), or only ``links_key`` when given. The marker is
    read from the next link's query string.
    """
    candidates = [links_key] if links_key else [f"{items_key}_links", "links"]

    def parse(response: Response) -> Page:
        body = _body(response)
        items = _items(body, items_key)
        marker = None
        for key in candidates:
            links = body.get(key)
            if isinstance(links, dict):
                # {"next": "/v2/images?marker=..."}
                href = links.get("next")
                if href:
                    marker = marker_from_href(href, marker_param)
                    break
            elif isinstance(links, list):
                if not all(isinstance(link, dict) for link in links):
                    raise PaginationError(
                        f"List response field '{key}' holds a non-object link"
                    )
                href = next(
                    (link.get("href") for link in links if link.get("rel") == "next"),
                    None,
                )
                if href:
                    marker = marker_from_href(href, marker_param)
                    break
        return Page(items=items, marker=marker)

    return parse


def marker_page_parser(items_key: str, marker_key: str = "next_marker") -> PageParser:
    """Parser for bodies carrying the next marker in a plain field."""

    def parse(response: Response) -> Page:
        body = _body(response)
        items = _items(body, items_key)
        marker = body.get(marker_key)
        return Page(items=items, marker=str(marker) if marker not in (None, "") else None)

    return parse


def last_item_page_parser(items_key: str, limit: int, id_key: str = "id") -> PageParser:
    """
    Parser for APIs without next links.

    A full page (``len(items) >= limit``) may have a successor, so the id of
    its last item becomes the marker; a short page ends the sequence.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    def parse(response: Response) -> Page:
        items = _items(_body(response), items_key)
        if len(items) < limit:
            return Page(items=items)
        last = items[-1]
        marker = last.get(id_key) if isinstance(last, dict) else getattr(last, id_key, None)
        return Page(items=items, marker=str(marker) if marker is not None else None)

    return parse


# =============================================================================
# Paginator
# =============================================================================


class Paginator:
    """
    Lazy, restartable sequence of items across pages.

    Every ``async for`` re-issues the original request from the first page;
    there is no mid-stream resume after an error. One iteration owns one
    cursor and must not be consumed by several tasks at once.

    Usage:
        paginator = Paginator(
            executor,
            Request("GET", "/servers", service_type="compute"),
            links_page_parser("servers"),
            limit=100,
        )
        async for server in paginator:
            print(server["id"])
    """

    def __init__(
        self,
        executor: RequestExecutor,
        request: Request,
        parse_page: PageParser,
        limit: int | None = None,
        marker_param: str = DEFAULT_MARKER_PARAM,
        limit_param: str = DEFAULT_LIMIT_PARAM,
        transform: Callable[[Any], Any] | None = None,
    ):
        """
        Initialize the paginator.

        Args:
            executor: Executor sending each page request
            request: The initial list request
            parse_page: Extracts items and marker from one response
            limit: Page size sent as ``limit_param`` (None = server default)
            marker_param: Query parameter carrying the marker
            limit_param: Query parameter carrying the page size
            transform: Optional per-item conversion applied before yielding
        """
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.executor = executor
        self.request = request
        self.parse_page = parse_page
        self.limit = limit
        self.marker_param = marker_param
        self.limit_param = limit_param
        self.transform = transform

    def _first_request(self, limit: int | None) -> Request:
        if limit is None:
            return self.request
        return self.request.with_params(**{self.limit_param: limit})

    async def pages(self, limit: int | None = None) -> AsyncIterator[Page]:
        """
        Yield whole pages, enforcing the advancing-marker rule.

        Raises:
            PaginationError: If a marker repeats
        """
        first = self._first_request(limit if limit is not None else self.limit)
        request = first
        seen: set[str] = set()
        page_number = 0

        while True:
            response = await self.executor.execute(request)
            page = self.parse_page(response)
            page_number += 1

            logger.debug(
                "Fetched page %d",
                page_number,
                extra={"page": page_number, "items": len(page.items), "marker": page.marker},
            )
            yield page

            if not page.items or page.marker is None:
                return

            if page.marker in seen:
                logger.error(
                    "Pagination marker did not advance",
                    extra={"marker": page.marker, "page": page_number},
                )
                raise PaginationError(
                    f"Marker '{page.marker}' was returned twice; "
                    f"refusing to loop after {page_number} pages",
                    marker=page.marker,
                    pages=page_number,
                )
            seen.add(page.marker)
            request = first.with_params(**{self.marker_param: page.marker})

    async def _iterate(self, limit: int | None = None) -> AsyncIterator[Any]:
        async for page in self.pages(limit):
            for item in page.items:
                yield self.transform(item) if self.transform else item

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def all(self) -> list[Any]:
        """Collect every item of every page."""
        return [item async for item in self]

    async def one(self) -> Any:
        """
        Return exactly one item.

        Fetches at most two items so a second match can be detected.

        Raises:
            NotFound: If the query produced no items
            TooManyItems: If the query produced more than one item
        """
        found: list[Any] = []
        async with aclosing(self._iterate(limit=2)) as items:
            async for item in items:
                found.append(item)
                if len(found) > 1:
                    raise TooManyItems(
                        f"Query {self.request.method} {self.request.url} returned more than one item",
                        context={"params": self.request.params},
                    )
        if not found:
            raise NotFound(
                f"Query {self.request.method} {self.request.url} returned no items",
                status_code=None,
            )
        return found[0]


__all__ = [
    "Page",
    "PageParser",
    "Paginator",
    "links_page_parser",
    "marker_page_parser",
    "last_item_page_parser",
    "marker_from_href",
    "DEFAULT_MARKER_PARAM",
    "DEFAULT_LIMIT_PARAM",
]

"""
Marker-based pagination.

Usage:
    from osclient.pagination import Paginator, links_page_parser

    async for server in Paginator(executor, request, links_page_parser("servers")):
        ...
"""

from osclient.pagination.paginator import (
    DEFAULT_LIMIT_PARAM,
    DEFAULT_MARKER_PARAM,
    Page,
    PageParser,
    Paginator,
    last_item_page_parser,
    links_page_parser,
    marker_from_href,
    marker_page_parser,
)

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

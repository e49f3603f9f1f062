"""
Query construction helpers for the ConnectWise Manage API.

ConnectWise filters collections with a small query language passed in
the ``conditions``, ``childconditions`` and ``customfieldconditions``
parameters, e.g. ``status/name="Open" and board/id=1``.  The helpers in
this module encode those expressions, assemble query strings and search
bodies, and parse the ``Link`` header used by forward-only pagination.

.. code-block:: python

    from cwm_api_client.query import QueryParams, build_url

    params = QueryParams(conditions='company/identifier="ACME"', order_by="id desc")
    build_url("https://na.myconnectwise.net/v4_6_release/apis/3.0/", "service/tickets", params)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import requests

from .exceptions import UsageError

MAX_PAGE_SIZE = 1000
FORWARD_ONLY_PAGE_SIZE = 999

OrderBy = Union[str, Tuple[str, str]]

# (attribute, wire name) in the order they appear in the query string
_QUERY_FIELDS = (
    ("conditions", "conditions"),
    ("child_conditions", "childconditions"),
    ("custom_field_conditions", "customfieldconditions"),
    ("order_by", "orderBy"),
    ("fields", "fields"),
    ("columns", "columns"),
    ("page", "page"),
    ("page_size", "pageSize"),
)

_SEARCH_FIELDS = (
    ("conditions", "conditions"),
    ("order_by", "orderBy"),
    ("child_conditions", "childconditions"),
    ("custom_field_conditions", "customfieldconditions"),
)


def encode_value(value: Any) -> str:
    """Percent-encode a query value, reserving no characters."""
    return quote(str(value), safe="")


def format_order_by(order_by: OrderBy) -> str:
    """Normalise an ordering clause to ``"<field>"`` or ``"<field> asc|desc"``.

    Accepts either a string such as ``"id desc"`` or a ``(field,
    direction)`` tuple.  The direction must be exactly ``asc`` or
    ``desc``.
    """
    if isinstance(order_by, (tuple, list)):
        if len(order_by) != 2:
            raise UsageError(f"order_by tuple must be (field, direction), got {order_by!r}")
        field_name, direction = order_by
    else:
        parts = str(order_by).split()
        if not parts or len(parts) > 2:
            raise UsageError(f"order_by must be '<field>' or '<field> asc|desc', got {order_by!r}")
        field_name = parts[0]
        direction = parts[1] if len(parts) == 2 else None

    if not field_name:
        raise UsageError("order_by field must not be empty")
    if direction is None:
        return field_name
    if direction not in ("asc", "desc"):
        raise UsageError(f"order_by direction must be 'asc' or 'desc', got {direction!r}")
    return f"{field_name} {direction}"


def _join_list(value: Union[str, Sequence[str]]) -> str:
    if isinstance(value, str):
        return value
    return ",".join(str(v) for v in value)


@dataclass(frozen=True)
class QueryParams:
    """Filter, ordering and paging options for a collection request."""

    conditions: Optional[str] = None
    child_conditions: Optional[str] = None
    custom_field_conditions: Optional[str] = None
    order_by: Optional[OrderBy] = None
    fields: Optional[Union[str, Sequence[str]]] = None
    columns: Optional[Union[str, Sequence[str]]] = None
    page: Optional[int] = None
    page_size: Optional[int] = None

    def validate(self) -> "QueryParams":
        """Return a normalised copy, raising :class:`UsageError` on bad input."""
        order_by = format_order_by(self.order_by) if self.order_by is not None else None
        if self.page is not None and int(self.page) < 1:
            raise UsageError(f"page must be 1 or greater, got {self.page!r}")
        if self.page_size is not None and not 1 <= int(self.page_size) <= MAX_PAGE_SIZE:
            raise UsageError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {self.page_size!r}"
            )
        return replace(
            self,
            order_by=order_by,
            fields=_join_list(self.fields) if self.fields is not None else None,
            columns=_join_list(self.columns) if self.columns is not None else None,
        )

    def paging_only(self) -> "QueryParams":
        return QueryParams(page=self.page, page_size=self.page_size)


def build_query_string(params: Optional[QueryParams]) -> str:
    """Return ``"?name=value&..."`` for the supplied parameters, or ``""``."""
    if params is None:
        return ""
    params = params.validate()
    pairs = []
    for attr, wire_name in _QUERY_FIELDS:
        value = getattr(params, attr)
        if value is None or value == "":
            continue
        pairs.append(f"{wire_name}={encode_value(value)}")
    if not pairs:
        return ""
    return "?" + "&".join(pairs)


def build_search_body(params: Optional[QueryParams]) -> Dict[str, str]:
    """Return the JSON filter body used by POST-based search endpoints.

    Only supplied keys are included.  Paging is not part of the body;
    it goes on the URL.
    """
    if params is None:
        return {}
    params = params.validate()
    body = {}
    for attr, wire_name in _SEARCH_FIELDS:
        value = getattr(params, attr)
        if value is None or value == "":
            continue
        body[wire_name] = value
    return body


def normalize_url(url: str) -> str:
    """Turn a leading ``&`` into ``?`` when no ``?`` precedes it.

    ``https://host/endpoint&foo=1`` becomes ``https://host/endpoint?foo=1``.
    Well-formed URLs are returned unchanged.
    """
    amp = url.find("&")
    if amp == -1:
        return url
    question = url.find("?")
    if question == -1 or amp < question:
        return url[:amp] + "?" + url[amp + 1:]
    return url


def build_url(base_url: str, path: str, params: Optional[QueryParams] = None) -> str:
    """Join ``path`` onto ``base_url`` and append the query string.

    Absolute ``http(s)://`` paths are used as-is.  If the path already
    carries a query, parameters are appended with ``&``.
    """
    if path.startswith("http://") or path.startswith("https://"):
        url = path
    else:
        url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    url = normalize_url(url)
    query = build_query_string(params)
    if query and "?" in url:
        query = "&" + query[1:]
    return url + query


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Extract the ``rel="next"`` URL from a ``Link`` header value."""
    if not link_header:
        return None
    for link in requests.utils.parse_header_links(link_header):
        if link.get("rel") == "next" and link.get("url"):
            return link["url"]
    return None


def condition_date(dt: datetime, local_zone: Optional[tzinfo] = None) -> str:
    """Render a datetime as a condition literal, e.g. ``[2024-05-01T13:00:00Z]``.

    ConnectWise compares dates in UTC.  Naive datetimes are assumed to
    be in ``local_zone`` (UTC when not given).
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=local_zone or timezone.utc)
    return dt.astimezone(timezone.utc).strftime("[%Y-%m-%dT%H:%M:%SZ]")

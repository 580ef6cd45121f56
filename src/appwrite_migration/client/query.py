"""Appwrite query string builders.

Appwrite list endpoints take repeated ``queries[]`` parameters, each a JSON
object with a method, an optional attribute and a list of values.
"""

import json
from typing import Any


def _query(method: str, attribute: str | None = None, values: list[Any] | None = None) -> str:
    payload: dict[str, Any] = {"method": method}
    if attribute is not None:
        payload["attribute"] = attribute
    if values is not None:
        payload["values"] = values
    return json.dumps(payload, separators=(",", ":"))


def limit(count: int) -> str:
    """Return at most ``count`` results."""
    return _query("limit", values=[count])


def cursor_after(document_id: str) -> str:
    """Return results after the item with ``document_id`` (cursor pagination)."""
    return _query("cursorAfter", values=[document_id])


def order_desc(attribute: str) -> str:
    """Sort results by ``attribute``, newest/largest first."""
    return _query("orderDesc", attribute=attribute)


def order_asc(attribute: str) -> str:
    """Sort results by ``attribute``, oldest/smallest first."""
    return _query("orderAsc", attribute=attribute)


def as_params(*queries: str) -> dict[str, list[str]]:
    """Build the httpx params mapping for a set of queries."""
    return {"queries[]": list(queries)} if queries else {}

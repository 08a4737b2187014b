"""The Base API's ``data``/``items`` envelope.

Every request body is sent as ``{"data": <resource>}``. Responses come
back either as ``{"data": <resource>}`` for a single resource, as
``{"items": [...]}`` for a collection, or as a bare object.
"""

from __future__ import annotations

from typing import Any


def wrap_envelope(body: Any) -> dict[str, Any]:
    """Wrap an outbound resource in the request envelope."""
    return {"data": body}


def unwrap_envelope(body: Any) -> Any:
    """Extract the payload from a decoded response body.

    Returns ``body["data"]`` when the key is present (even if its value is
    ``None``), otherwise a list of the ``body["items"]`` elements in their
    original order, otherwise *body* itself. Non-object bodies are
    returned as-is.

    A ``null`` ``items`` value counts as absent. An object under ``items``
    yields its values; any other scalar is wrapped in a one-element list.
    """
    if not isinstance(body, dict):
        return body
    if "data" in body:
        return body["data"]
    items = body.get("items")
    if items is None:
        return body
    if isinstance(items, dict):
        return list(items.values())
    if isinstance(items, (list, tuple)):
        return list(items)
    return [items]

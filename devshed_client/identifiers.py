"""Identifier helpers for documents returned by the DevShed API.

The API is backed by a document store, so ids arrive either as plain strings
or as wrapped object ids such as ``{"$oid": "66a1..."}``.
"""

from __future__ import annotations

from typing import Any, Mapping

WRAPPED_ID_KEY = "$oid"


def normalize_id(raw: Any) -> str | None:
    """Return the string form of ``raw``, or None when there is no id.

    Empty values (None, "", {}) have no id. Never raises.
    """
    try:
        if not raw:
            return None
    except Exception:
        return _safe_str(raw)

    if isinstance(raw, str):
        return raw

    if isinstance(raw, Mapping):
        wrapped = raw.get(WRAPPED_ID_KEY)
        if wrapped:
            return wrapped if isinstance(wrapped, str) else _safe_str(wrapped)

    return _safe_str(raw)


def entity_id(entity: Any) -> str | None:
    if not isinstance(entity, Mapping):
        return None
    return normalize_id(entity.get("_id")) or normalize_id(entity.get("id"))


def key_for(entity: Any, index: int, kind_prefix: str = "item") -> str:
    """Stable key for the ``index``-th item of a rendered collection.

    The index is always part of the key, so two items carrying the same id
    (or none at all) still get distinct keys.
    """
    ident = entity_id(entity)
    if ident is None:
        return f"{kind_prefix}-{index}"
    return f"{kind_prefix}-{index}-{ident}"


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return object.__repr__(value)

"""Locate the real collection or entity inside a DevShed API payload.

The server is inconsistent about envelopes: a list endpoint may answer with a
bare array, with ``{"projects": [...]}``, with ``{"data": [...]}`` or with a
single object, and read endpoints sometimes nest the entity in ``data`` twice
(``{"success": true, "data": {...}}`` inside the HTTP body). Each payload is
classified once by :func:`classify_payload`; callers never duck-type it.

Candidate keys are tried strictly in the order given, never in the payload's
own key order. The entity-specific key comes before the generic ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)

PROJECT_COLLECTION_KEYS: tuple[str, ...] = ("projects", "data", "items", "results")
TASK_COLLECTION_KEYS: tuple[str, ...] = ("tasks", "data", "items", "results")


class ShapeError(ValueError):
    pass


class ShapeKind(Enum):
    SEQUENCE = "sequence"
    WRAPPED = "wrapped"
    ENTITY = "entity"
    INVALID = "invalid"


@dataclass(frozen=True)
class ResponseShape:
    kind: ShapeKind
    items: list[Any]
    wrapper_key: str | None = None


def classify_payload(payload: Any, candidate_keys: Sequence[str]) -> ResponseShape:
    if isinstance(payload, (list, tuple)):
        return ResponseShape(kind=ShapeKind.SEQUENCE, items=list(payload))

    if isinstance(payload, Mapping):
        for key in candidate_keys:
            value = payload.get(key)
            if isinstance(value, (list, tuple)):
                return ResponseShape(kind=ShapeKind.WRAPPED, items=list(value), wrapper_key=key)
        return ResponseShape(kind=ShapeKind.ENTITY, items=[payload])

    return ResponseShape(kind=ShapeKind.INVALID, items=[])


def extract_collection(payload: Any, candidate_keys: Sequence[str]) -> list[Any]:
    shape = classify_payload(payload, candidate_keys)
    if shape.kind is ShapeKind.INVALID:
        raise ShapeError(
            f"Invalid response shape: expected a list or an object, got {type(payload).__name__}"
        )
    if shape.kind is ShapeKind.WRAPPED:
        logger.debug("Collection found under %r", shape.wrapper_key)
    return shape.items


def extract_entity(payload: Any) -> Any:
    """Unwrap one level of ``data`` nesting. Deeper nesting is left alone."""
    if isinstance(payload, Mapping):
        nested = payload.get("data")
        if isinstance(nested, Mapping):
            return nested
    return payload

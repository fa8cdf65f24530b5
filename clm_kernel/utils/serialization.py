"""
Snapshot serialization and deterministic hashing.

Audit entries store before/after snapshots as plain JSON maps.  ``to_primitive``
turns any domain snapshot (frozen dataclasses, typed ids, Money, enums,
datetimes) into JSON-safe values; ``hash_payload`` fingerprints the result.
"""

import dataclasses
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from clm_kernel.domain.identifiers import EntityID
from clm_kernel.domain.values import Money


def to_primitive(obj: Any) -> Any:
    """Recursively convert a domain value into JSON-safe primitives."""
    if isinstance(obj, Enum):
        return obj.value
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, EntityID):
        return str(obj)
    if isinstance(obj, Money):
        return {"amount": str(obj.amount), "currency": obj.currency}
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: to_primitive(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, dict):
        return {str(k): to_primitive(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_primitive(v) for v in obj]
    raise TypeError(f"Object of type {type(obj).__name__} is not serializable")


def canonicalize_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(
        to_primitive(data),
        sort_keys=True,
        separators=(",", ":"),
    )


def hash_payload(payload: Any) -> str:
    """Hex SHA-256 of the canonical JSON form of ``payload``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()

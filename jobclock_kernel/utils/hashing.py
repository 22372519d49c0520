"""SHA-256 hashing over canonical JSON, used by the job audit chain."""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # Normalize so 4.00 and 4 hash identically
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """Sorted keys, no whitespace, normalized Decimals."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_job_log(
    job_id: UUID | str,
    seq: int,
    action: str,
    actor_id: UUID | str,
    description: str,
    field: str | None,
    old_value: str | None,
    new_value: str | None,
    prev_hash: str | None,
) -> str:
    """
    Compute the chained hash of one job log entry.

    The hash covers every recorded field plus the previous entry's hash, so
    editing or removing any entry breaks every later link.
    """
    payload_hash = hash_payload(
        {
            "actor_id": str(actor_id),
            "description": description,
            "field": field,
            "old_value": old_value,
            "new_value": new_value,
        }
    )
    components = [
        str(job_id),
        str(seq),
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()

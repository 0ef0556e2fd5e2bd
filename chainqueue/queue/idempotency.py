"""
Idempotency key derivation.

Two submissions with the same kind and structurally equal payloads derive the
same key regardless of dict ordering.
"""

import hashlib
import json
from typing import Any

from chainqueue.constants import IDEMPOTENCY_KEY_PREFIX


def canonical_payload(kind: str, payload: dict[str, Any]) -> str:
    """Encode kind and payload as sorted, whitespace-free JSON."""
    return json.dumps(
        {"kind": str(kind), "payload": payload},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def derive_idempotency_key(kind: str, payload: dict[str, Any]) -> str:
    """
    Derive an idempotency key from the job content.

    Uses the first 128 bits of a SHA-256 digest of the canonical encoding.

    Args:
        kind: The job kind.
        payload: The job payload.

    Returns:
        A key of the form ``idem_<32 hex chars>``.
    """
    digest = hashlib.sha256(canonical_payload(kind, payload).encode("utf-8"))
    return f"{IDEMPOTENCY_KEY_PREFIX}{digest.hexdigest()[:32]}"

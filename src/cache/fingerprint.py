# src/cache/fingerprint.py — v3
"""Deterministic configuration fingerprinting.

The fingerprint is the cache key: SHA-256 over a canonical JSON
serialization of the request payload. Key order never affects the result.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping


def canonical_json(config: Mapping[str, Any]) -> str:
    """Serialize a configuration with stable key ordering and separators."""
    return json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_encode_fallback,
    )


def compute_fingerprint(config: Mapping[str, Any]) -> str:
    """Return the SHA-256 hex digest of the canonical configuration."""
    return hashlib.sha256(canonical_json(config).encode("utf-8")).hexdigest()


def _encode_fallback(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    # Paths and other scalars.
    return str(value)

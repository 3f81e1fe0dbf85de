"""
Canonical serialization for state hashing.

Two equal states always produce the same bytes, regardless of dict
insertion order, so hashes can be compared across runs.
"""

import hashlib
import json
from typing import Any


def canonicalize(obj: Any) -> Any:
    """
    Convert arbitrary nested dict/list to canonical form.

    Rules:
    - dict keys sorted (by their string form, so mixed key types still sort)
    - tuples converted to lists, sets and frozensets to sorted lists
    - recursive normalization
    """
    if isinstance(obj, dict):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj.keys(), key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted((canonicalize(x) for x in obj), key=repr)
    return obj


def canonical_json_bytes(obj: Any) -> bytes:
    """
    Deterministic JSON bytes for hashing.

    Values json cannot encode fall back to their repr.
    """
    canon = canonicalize(obj)
    s = json.dumps(canon, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=repr)
    return s.encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    return canonical_json_bytes(obj).decode("utf-8")


def state_hash(value: Any) -> str:
    """
    SHA-256 of the canonical form of a state value.

    Returns:
        Hex string (64 characters)
    """
    return hashlib.sha256(canonical_json_bytes(value)).hexdigest()

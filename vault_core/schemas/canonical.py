"""
Schemas - Canonical JSON
File: canonical.py

Purpose: One byte-exact JSON form for tree artifacts, so that two
operators who publish the same distribution produce identical files and
identical fingerprints.

Rules:
- object keys sorted, no insignificant whitespace, UTF-8 kept as is
- Pubkey -> base58 string, bytes -> 0x-prefixed hex, Enum -> its value
- pydantic models dumped in JSON mode without None fields
- None-valued object entries dropped
- floats rejected (amounts and timestamps are integers)
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel
from solders.pubkey import Pubkey

from .errors import CanonicalizationException

CANONICAL_JSON_SEPARATORS: tuple[str, str] = (",", ":")

# bool is an int subclass; both pass through unchanged
_SCALARS = (str, int)


def canonicalize_value(value: Any, path: str = "") -> Any:
    """
    Convert `value` into plain JSON types following the canonical rules.

    `path` locates the value inside the enclosing document and is
    reported when a value is rejected.

    Raises:
        CanonicalizationException: On floats and unsupported types
    """
    if value is None or isinstance(value, _SCALARS):
        return value
    if isinstance(value, float):
        raise CanonicalizationException(
            message=f"Non-integer number at {path or '<root>'}: {value}",
            details={"path": path, "value": str(value)},
        )
    if isinstance(value, Pubkey):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Enum):
        return canonicalize_value(value.value, path)
    if isinstance(value, BaseModel):
        return canonicalize_value(value.model_dump(mode="json", exclude_none=True), path)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if v is None:
                continue
            name = str(k)
            out[name] = canonicalize_value(v, f"{path}.{name}" if path else name)
        return out
    if isinstance(value, (list, tuple)):
        return [canonicalize_value(item, f"{path}[{i}]") for i, item in enumerate(value)]

    raise CanonicalizationException(
        message=f"Unsupported type {type(value).__name__} at {path or '<root>'}",
        details={"path": path, "type": type(value).__name__},
    )


def dumps_canonical(obj: Any) -> str:
    """
    Canonical JSON text of `obj`.

    Example:
        >>> dumps_canonical({"b": 2, "a": b"\\x01"})
        '{"a":"0x01","b":2}'
    """
    plain = canonicalize_value(obj)
    try:
        return json.dumps(
            plain,
            sort_keys=True,
            separators=CANONICAL_JSON_SEPARATORS,
            ensure_ascii=False,
        )
    except (TypeError, ValueError) as e:
        raise CanonicalizationException(
            message=f"Cannot encode canonical JSON: {e}",
            details={"type": type(obj).__name__, "error": str(e)},
        ) from e


def loads_canonical(text: str) -> Any:
    return json.loads(text)


def canonical_equals(a: Any, b: Any) -> bool:
    """True when both values have the same canonical form; False if either has none."""
    try:
        return dumps_canonical(a) == dumps_canonical(b)
    except CanonicalizationException:
        return False


__all__ = [
    "CANONICAL_JSON_SEPARATORS",
    "canonicalize_value",
    "dumps_canonical",
    "loads_canonical",
    "canonical_equals",
]

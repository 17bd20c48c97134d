"""
Deterministic encoding for vault snapshots and state roots.

Snapshot payloads are JSON trees of ints, bools, strings, lists and
str-keyed objects. The same logical vault state always encodes to the same
bytes: keys sorted, no whitespace, UTF-8, and no floats anywhere.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

DOMAIN_PREFIX = b"zdte:"


def _check_tree(value: Any, where: str = "$") -> None:
    if isinstance(value, float):
        raise TypeError(f"{where}: floats cannot be encoded canonically")
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{where}: object keys must be str, got {type(key).__name__}")
            _check_tree(item, f"{where}.{key}")
    elif isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            _check_tree(item, f"{where}[{idx}]")


def canonical_json_bytes(value: Any) -> bytes:
    """Encode `value` as sorted, compact UTF-8 JSON (raises `TypeError` on floats)."""
    _check_tree(value)
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """`zdte:<label>:v<version>` followed by NUL, prefixed to every hashed payload."""
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label or not label.isascii():
        raise ValueError(f"label must be NUL-free ASCII: {label!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError(f"version must be a positive int: {version!r}")
    return DOMAIN_PREFIX + f"{label}:v{version}".encode("ascii") + b"\x00"

# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Packs a flat card record into the single text attribute the object store
keeps per object, and recovers it again.

Wire format: ``key=value`` pairs joined by ``|``, each value percent-encoded
with the same safe set as JavaScript's ``encodeURIComponent`` so neither
separator can appear inside a value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Union
from urllib.parse import quote, unquote

PAIR_SEPARATOR = "|"
KEY_VALUE_SEPARATOR = "="
ENTRY_KEY = "entry"

# Characters encodeURIComponent leaves untouched besides ASCII alphanumerics.
_SAFE_CHARS = "-_.!~*'()"

# Wrapper paths under which providers have been seen to nest the payload.
NESTED_ENTRY_PATHS = (
    ("custom", ENTRY_KEY),
    ("Metadata", ENTRY_KEY),
    (ENTRY_KEY,),
)

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class RawString:
    payload: str


@dataclass(frozen=True)
class NestedEntry:
    payload: str
    path: tuple[str, ...]


@dataclass(frozen=True)
class FlatRecord:
    record: Mapping[str, Any]


@dataclass(frozen=True)
class Empty:
    pass


ContextShape = Union[RawString, NestedEntry, FlatRecord, Empty]


def encode_context(record: Mapping[str, Any]) -> str:
    """Serializes ``record`` into a single pipe-delimited string."""
    pairs = []
    for key, value in record.items():
        text = "" if value is None else str(value)
        pairs.append(f"{key}{KEY_VALUE_SEPARATOR}{quote(text, safe=_SAFE_CHARS)}")
    return PAIR_SEPARATOR.join(pairs)


def _lookup_path(value: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    current: Any = value
    for part in path:
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def classify_context(raw: Any) -> ContextShape:
    """
    Determines which of the known storage shapes ``raw`` is.

    A mapping is treated as a wrapper only when one of the known paths leads
    to a string; any other mapping is assumed to be an already-decoded record.
    """
    if isinstance(raw, str):
        return RawString(raw) if raw else Empty()
    if isinstance(raw, Mapping):
        if not raw:
            return Empty()
        for path in NESTED_ENTRY_PATHS:
            payload = _lookup_path(raw, path)
            if isinstance(payload, str):
                return NestedEntry(payload=payload, path=path)
        # A provider wrapper without an entry carries no record.
        if any(
            len(path) > 1 and isinstance(raw.get(path[0]), Mapping)
            for path in NESTED_ENTRY_PATHS
        ):
            return Empty()
        return FlatRecord(raw)
    return Empty()


def _decode_value(value: str) -> str:
    if _MALFORMED_ESCAPE.search(value):
        return ""
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return ""


def _decode_payload(payload: str) -> dict[str, str]:
    record: dict[str, str] = {}
    for segment in payload.split(PAIR_SEPARATOR):
        if not segment:
            continue
        # Only the first "=" separates; anything after belongs to the value.
        key, _, value = segment.partition(KEY_VALUE_SEPARATOR)
        if not key:
            continue
        record[key] = _decode_value(value)
    return record


def decode_context(raw: Any) -> dict[str, str]:
    """
    Recovers a record from any known storage shape.

    Never raises: unrecognised input yields an empty dict and a malformed
    segment only blanks its own value.
    """
    shape = classify_context(raw)
    if isinstance(shape, (RawString, NestedEntry)):
        return _decode_payload(shape.payload)
    if isinstance(shape, FlatRecord):
        return {
            str(key): "" if value is None else str(value)
            for key, value in shape.record.items()
        }
    return {}


def parse_download_count(value: Any) -> int:
    try:
        count = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(count, 0)

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

from typing import List

DEFAULT_LINE_CHARS = 32

# Order matters: "&" must be replaced before the entities that contain it.
_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def wrap_text(text: str | None, max_chars: int = DEFAULT_LINE_CHARS) -> List[str]:
    """
    Greedily wraps free text into lines of at most `max_chars` characters.

    Words are never split: a word longer than `max_chars` is placed alone on
    its own line.

    Args:
        text (str): The text to wrap. Runs of whitespace count as one break.
        max_chars (int): The maximum line width in characters.

    Returns:
        List[str]: The wrapped lines, empty for blank input.
    """
    lines: List[str] = []
    line = ""
    for word in (text or "").split():
        if not line:
            line = word
        elif len(line) + 1 + len(word) <= max_chars:
            line = f"{line} {word}"
        else:
            lines.append(line)
            line = word
    if line:
        lines.append(line)
    return lines


def escape_xml(value: str | None) -> str:
    """
    Escapes the five XML special characters.

    Not idempotent: escaping an already escaped string escapes its "&" again.
    """
    escaped = value or ""
    for char, entity in _XML_ESCAPES:
        escaped = escaped.replace(char, entity)
    return escaped

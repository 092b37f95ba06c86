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

from dataclasses import asdict, dataclass
from typing import Mapping

from qsl_shared.context_codec import parse_download_count

# Field names used inside the encoded context, in upload-form order.
RECORD_FIELDS = ("indicatif", "date", "time", "band", "mode", "report", "note")
DOWNLOADS_FIELD = "downloads"


def normalize_callsign(value: str | None) -> str:
    """Collapses whitespace and uppercases a callsign."""
    return " ".join((value or "").split()).upper()


def build_record(fields: Mapping[str, str | None]) -> dict[str, str]:
    """Builds a fresh context record from upload form fields."""
    record = {name: (fields.get(name) or "").strip() for name in RECORD_FIELDS}
    record["indicatif"] = normalize_callsign(record["indicatif"])
    record[DOWNLOADS_FIELD] = "0"
    return record


@dataclass
class Card:
    """A stored QSL card with its decoded metadata."""

    public_id: str
    url: str
    thumb: str
    callsign: str = ""
    date: str = ""
    time: str = ""
    band: str = ""
    mode: str = ""
    report: str = ""
    note: str = ""
    downloads: int = 0
    created_at: float = 0.0

    @classmethod
    def from_record(
        cls,
        *,
        public_id: str,
        url: str,
        thumb: str,
        record: Mapping[str, str],
        created_at: float = 0.0,
    ) -> "Card":
        return cls(
            public_id=public_id,
            url=url,
            thumb=thumb,
            # Older entries used "callsign" instead of "indicatif".
            callsign=record.get("indicatif") or record.get("callsign", ""),
            date=record.get("date", ""),
            time=record.get("time", ""),
            band=record.get("band", ""),
            mode=record.get("mode", ""),
            report=record.get("report", ""),
            note=record.get("note", ""),
            downloads=parse_download_count(record.get(DOWNLOADS_FIELD, 0)),
            created_at=created_at,
        )

    def as_dict(self) -> dict:
        return asdict(self)

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

"""Script for composing a QSL card locally

Running this script renders a card from a local photo with the same layout
the service uses and writes the JPEG next to it (or to --output), without
touching object storage. Useful to check panel layout and fonts.
"""

import argparse
import time
from pathlib import Path

from card_pipeline.composer import CardLayout, compose_card
from qsl_shared.context_codec import encode_context
from qsl_shared.types import build_record


if __name__ == "__main__":
    start_time = time.time()

    parser = argparse.ArgumentParser(description="Compose a QSL card locally.")
    parser.add_argument("photo", type=Path, help="Path to the source photo.")
    parser.add_argument("indicatif", type=str, help="Callsign shown on the card.")
    parser.add_argument("--date", default="")
    parser.add_argument("--time", default="")
    parser.add_argument("--band", default="")
    parser.add_argument("--mode", default="")
    parser.add_argument("--report", default="")
    parser.add_argument("--note", default="")
    parser.add_argument(
        "--output",
        type=Path,
        help="Where to write the card. Defaults to <photo>_qsl.jpg.",
    )
    parser.add_argument(
        "--quality", type=int, default=90, help="JPEG quality of the card."
    )
    args = parser.parse_args()

    record = build_record(vars(args))
    output_path = args.output or args.photo.with_name(f"{args.photo.stem}_qsl.jpg")

    print("📮 Composing card for", record["indicatif"])
    card_bytes = compose_card(
        args.photo.read_bytes(), record, CardLayout(jpeg_quality=args.quality)
    )
    output_path.write_bytes(card_bytes)

    print(f"  > stored context would be: {encode_context(record)}")
    print(f"📮 Wrote {len(card_bytes)} bytes to {output_path}")
    print(f"📮 Total time: {time.time() - start_time:.2f}s")

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

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Mapping, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from card_pipeline.text_utils import escape_xml, wrap_text

logger = logging.getLogger(__name__)

# Label shown in the panel for each record field, in display order.
PANEL_FIELDS = (
    ("date", "Date"),
    ("time", "UTC"),
    ("band", "Band"),
    ("mode", "Mode"),
    ("report", "RST"),
)


class CompositionError(Exception):
    """Raised when a card image cannot be produced."""


@dataclass(frozen=True)
class CardLayout:
    max_width: int = 1400
    max_height: int = 900
    panel_width: int = 350
    jpeg_quality: int = 90
    note_chars: int = 32
    padding: int = 24
    title_size: int = 40
    field_size: int = 22
    note_size: int = 18
    line_gap: int = 12
    panel_color: str = "#10233f"
    text_color: str = "#ffffff"
    accent_color: str = "#f5b942"
    font_family: str = "DejaVu Sans, Arial, sans-serif"


def fit_within(
    width: int, height: int, max_width: int, max_height: int
) -> Tuple[int, int]:
    """
    Returns the size that fits (width, height) inside the bounding box.

    The aspect ratio is preserved and the size is never enlarged.
    """
    if width <= 0 or height <= 0:
        raise CompositionError(f"Invalid image size {width}x{height}")
    scale = min(max_width / width, max_height / height, 1.0)
    return max(1, round(width * scale)), max(1, round(height * scale))


def build_panel_svg(
    record: Mapping[str, str], height: int, layout: CardLayout | None = None
) -> str:
    """
    Builds the SVG markup for the text panel.

    Every record value is escaped before it is placed in the markup. The note
    is wrapped to `layout.note_chars` and each line gets its own offset.
    """
    layout = layout or CardLayout()
    x = layout.padding
    y = layout.padding + layout.title_size
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{layout.panel_width}" '
        f'height="{height}" viewBox="0 0 {layout.panel_width} {height}">',
        f'<rect width="100%" height="100%" fill="{layout.panel_color}"/>',
        f'<g font-family="{layout.font_family}" fill="{layout.text_color}">',
        f'<text x="{x}" y="{y}" font-size="{layout.title_size}" '
        f'font-weight="bold" fill="{layout.accent_color}">'
        f'{escape_xml(record.get("indicatif", ""))}</text>',
    ]
    y += layout.line_gap * 2
    for key, label in PANEL_FIELDS:
        y += layout.field_size + layout.line_gap
        parts.append(
            f'<text x="{x}" y="{y}" font-size="{layout.field_size}">'
            f"{escape_xml(label)}: {escape_xml(record.get(key, ''))}</text>"
        )

    note_lines = wrap_text(record.get("note", ""), layout.note_chars)
    if note_lines:
        y += layout.line_gap * 2
    for line in note_lines:
        y += layout.note_size + layout.line_gap // 2
        parts.append(
            f'<text x="{x}" y="{y}" font-size="{layout.note_size}" '
            f'font-style="italic">{escape_xml(line)}</text>'
        )
    parts.append("</g></svg>")
    return "".join(parts)


def render_panel(svg: str, width: int, height: int) -> Image.Image:
    """Rasterizes the panel SVG into an RGB image of the given size."""
    import cairosvg

    png_bytes = cairosvg.svg2png(
        bytestring=svg.encode("utf-8"), output_width=width, output_height=height
    )
    with Image.open(io.BytesIO(png_bytes)) as panel:
        return panel.convert("RGB")


def compose_card(
    image_bytes: bytes, record: Mapping[str, str], layout: CardLayout | None = None
) -> bytes:
    """
    Produces the final QSL card: resized photo with the text panel on its right.

    Args:
        image_bytes (bytes): The uploaded photo, any format Pillow can read.
        record (Mapping[str, str]): The card metadata record.
        layout (CardLayout): Size and style settings.

    Returns:
        bytes: The composite card encoded as JPEG.

    Raises:
        CompositionError: If the photo is missing or any rendering step fails.
    """
    if not image_bytes:
        raise CompositionError("No image provided")
    layout = layout or CardLayout()

    try:
        with Image.open(io.BytesIO(image_bytes)) as source:
            photo = ImageOps.exif_transpose(source).convert("RGB")
        size = fit_within(photo.width, photo.height, layout.max_width, layout.max_height)
        if size != photo.size:
            photo = photo.resize(size, Image.Resampling.LANCZOS)

        svg = build_panel_svg(record, photo.height, layout)
        panel = render_panel(svg, layout.panel_width, photo.height)

        canvas = Image.new(
            "RGB", (photo.width + layout.panel_width, photo.height), layout.panel_color
        )
        canvas.paste(photo, (0, 0))
        canvas.paste(panel, (photo.width, 0))

        output = io.BytesIO()
        canvas.save(output, format="JPEG", quality=layout.jpeg_quality)
    except CompositionError:
        raise
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise CompositionError(f"Could not compose card: {e}") from e
    except Exception as e:
        logger.exception("Unexpected failure while composing card")
        raise CompositionError(f"Could not compose card: {e}") from e

    logger.info(
        "Composed card %s (%dx%d)",
        record.get("indicatif", ""),
        canvas.width,
        canvas.height,
    )
    return output.getvalue()

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

import io
import unittest
import xml.etree.ElementTree as ET
from unittest.mock import patch

from PIL import Image

from card_pipeline import composer
from card_pipeline.composer import (
    CardLayout,
    CompositionError,
    build_panel_svg,
    compose_card,
    fit_within,
)

SVG_NS = "{http://www.w3.org/2000/svg}"


def make_photo(width: int, height: int, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (30, 120, 200)).save(buffer, format=fmt)
    return buffer.getvalue()


def fake_render_panel(svg: str, width: int, height: int) -> Image.Image:
    return Image.new("RGB", (width, height), (16, 35, 63))


class FitWithinTest(unittest.TestCase):

    def test_downscales_preserving_aspect(self):
        self.assertEqual(fit_within(2000, 1000, 1400, 900), (1400, 700))
        self.assertEqual(fit_within(1000, 2000, 1400, 900), (450, 900))

    def test_never_upscales(self):
        self.assertEqual(fit_within(640, 480, 1400, 900), (640, 480))

    def test_rejects_empty_size(self):
        with self.assertRaises(CompositionError):
            fit_within(0, 10, 1400, 900)


class BuildPanelSvgTest(unittest.TestCase):

    def test_escapes_every_field(self):
        record = {
            "indicatif": "F4<ABC>",
            "date": "2025 & co",
            "band": '20m"',
            "mode": "SSB'",
            "report": "59",
            "note": "</text><script>alert(1)</script>",
        }
        svg = build_panel_svg(record, 600)
        self.assertNotIn("<script>", svg)
        # The markup must stay well-formed whatever the user typed.
        root = ET.fromstring(svg)
        texts = [el.text for el in root.iter(f"{SVG_NS}text")]
        self.assertIn("F4<ABC>", texts)
        self.assertIn("Date: 2025 & co", texts)
        self.assertIn('Band: 20m"', texts)

    def test_note_lines_have_increasing_offsets(self):
        layout = CardLayout(note_chars=10)
        record = {"indicatif": "F4ABC", "note": "one two three four five six"}
        root = ET.fromstring(build_panel_svg(record, 600, layout))
        italic = [
            el for el in root.iter(f"{SVG_NS}text") if el.get("font-style") == "italic"
        ]
        self.assertEqual(
            [el.text for el in italic], ["one two", "three four", "five six"]
        )
        offsets = [int(el.get("y")) for el in italic]
        self.assertEqual(offsets, sorted(set(offsets)))

    def test_panel_size(self):
        root = ET.fromstring(build_panel_svg({}, 480))
        self.assertEqual(root.get("width"), "350")
        self.assertEqual(root.get("height"), "480")


class ComposeCardTest(unittest.TestCase):

    def test_missing_image_rejected_before_processing(self):
        with patch("card_pipeline.composer.Image.open") as mock_open:
            with self.assertRaises(CompositionError):
                compose_card(b"", {"indicatif": "F4ABC"})
            mock_open.assert_not_called()

    def test_invalid_image_raises_composition_error(self):
        with self.assertRaises(CompositionError):
            compose_card(b"not an image", {"indicatif": "F4ABC"})

    @patch("card_pipeline.composer.render_panel", side_effect=fake_render_panel)
    def test_large_photo_is_fitted(self, _mock_render):
        result = compose_card(make_photo(2000, 1000), {"indicatif": "F4ABC"})
        with Image.open(io.BytesIO(result)) as card:
            self.assertEqual(card.format, "JPEG")
            self.assertEqual(card.size, (1400 + 350, 700))

    @patch("card_pipeline.composer.render_panel", side_effect=fake_render_panel)
    def test_small_photo_is_not_upscaled(self, _mock_render):
        result = compose_card(make_photo(400, 300, "JPEG"), {"indicatif": "F4ABC"})
        with Image.open(io.BytesIO(result)) as card:
            self.assertEqual(card.size, (400 + 350, 300))

    @patch("card_pipeline.composer.render_panel", side_effect=RuntimeError("boom"))
    def test_renderer_failure_propagates_as_composition_error(self, _mock_render):
        with self.assertRaises(CompositionError) as ctx:
            compose_card(make_photo(100, 100), {"indicatif": "F4ABC"})
        self.assertIn("boom", str(ctx.exception))

    def test_render_with_cairosvg(self):
        record = {"indicatif": "F4ABC", "band": "20m", "mode": "SSB", "note": "73!"}
        result = compose_card(make_photo(2000, 1000), record)
        with Image.open(io.BytesIO(result)) as card:
            self.assertLessEqual(card.width, 1400 + 350)
            self.assertLessEqual(card.height, 900)
            # Panel background is the configured dark colour, not the photo.
            r, g, b = card.convert("RGB").getpixel((card.width - 2, card.height - 2))
            self.assertLess(r, 60)


if __name__ == "__main__":
    unittest.main()

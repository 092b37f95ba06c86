import io
import os
import tempfile
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from PIL import Image

from eqsl_backend.app import create_app
from eqsl_backend.config import Settings
from eqsl_backend.storage import InMemoryStorageClient, StorageError


def make_photo(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 80, 40)).save(buffer, format="JPEG")
    return buffer.getvalue()


def fake_render_panel(svg, width, height):
    return Image.new("RGB", (width, height), (16, 35, 63))


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        render_patcher = patch(
            "card_pipeline.composer.render_panel", side_effect=fake_render_panel
        )
        render_patcher.start()
        self.addCleanup(render_patcher.stop)

        self.storage = InMemoryStorageClient()
        settings = Settings(
            use_in_memory_backends=True,
            static_dir=None,
            list_cache_ttl_seconds=30,
        )
        self.client = TestClient(create_app(settings=settings, storage=self.storage))

    def upload(self, photo: bytes | None = None, **fields):
        files = {"qsl": ("photo.jpg", photo or make_photo(640, 480), "image/jpeg")}
        return self.client.post("/upload", data=fields, files=files)

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True})

    def test_upload_composes_and_stores_card(self):
        response = self.upload(
            make_photo(2000, 1000),
            indicatif="f4abc",
            date="2025-03-01",
            band="20m",
            mode="SSB",
            report="59",
            note="Thanks for the contact",
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])
        card = payload["qsl"]
        self.assertEqual(card["callsign"], "F4ABC")
        self.assertEqual(card["band"], "20m")
        self.assertEqual(card["downloads"], 0)
        self.assertIn("imageMogr2/thumbnail/400x", card["thumb"])

        content = self.storage.get_bytes(card["public_id"])
        with Image.open(io.BytesIO(content)) as stored:
            self.assertLessEqual(stored.width, 1400 + 350)
            self.assertLessEqual(stored.height, 900)

    def test_upload_without_file_is_rejected(self):
        response = self.client.post("/upload", data={"indicatif": "F4ABC"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["success"], False)
        self.assertIn("No QSL image", response.json()["error"])
        self.assertEqual(self.storage.stored_objects, {})

    def test_upload_invalid_image_stores_nothing(self):
        response = self.upload(b"definitely not a photo", indicatif="F4ABC")
        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.json()["success"])
        self.assertEqual(self.storage.stored_objects, {})

    def test_upload_storage_failure_is_reported(self):
        with patch.object(
            self.storage, "upload_image", side_effect=StorageError("bucket offline")
        ):
            response = self.upload(indicatif="F4ABC")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "qsl": None, "error": "bucket offline"}
        )

    def test_list_newest_first(self):
        self.upload(indicatif="F4ABC")
        self.upload(indicatif="ON4XYZ")
        response = self.client.get("/qsl")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [card["callsign"] for card in response.json()], ["ON4XYZ", "F4ABC"]
        )

    def test_search_is_case_insensitive(self):
        self.upload(indicatif="F4ABC")
        self.upload(indicatif="ON4XYZ")
        by_path = self.client.get("/download/f4abc").json()
        by_query = self.client.get("/download", params={"call": " f4abc "}).json()
        self.assertEqual([card["callsign"] for card in by_path], ["F4ABC"])
        self.assertEqual(by_path, by_query)
        self.assertEqual(self.client.get("/download/K1ZZZ").json(), [])

    def test_file_download_sets_attachment_and_counts(self):
        card = self.upload(indicatif="F4ABC", date="2025/03/01").json()["qsl"]
        response = self.client.get(f"/file/{card['public_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "image/jpeg")
        self.assertEqual(
            response.headers["content-disposition"],
            'attachment; filename="F4ABC_2025_03_01.jpg"',
        )
        self.assertEqual(response.content, self.storage.get_bytes(card["public_id"]))

        response = self.client.get("/file", params={"pid": card["public_id"]})
        self.assertEqual(response.status_code, 200)
        listed = self.client.get("/qsl").json()
        self.assertEqual(listed[0]["downloads"], 2)

    def test_download_survives_counter_failure(self):
        card = self.upload(indicatif="F4ABC").json()["qsl"]
        with patch.object(
            self.storage, "replace_metadata", side_effect=StorageError("read-only")
        ):
            response = self.client.get(f"/file/{card['public_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/qsl").json()[0]["downloads"], 0)

    def test_unknown_file_is_404(self):
        response = self.client.get("/file/TW-eQSL/missing")
        self.assertEqual(response.status_code, 404)

    def test_debug_listing_shows_raw_entry(self):
        self.upload(indicatif="F4ABC", note="a|b")
        objects = self.client.get("/debug/qsl").json()
        self.assertEqual(len(objects), 1)
        self.assertIn("note=a%7Cb", objects[0]["metadata"]["entry"])


class ApiPrefixTests(unittest.TestCase):
    def test_routes_mounted_under_prefix(self):
        settings = Settings(
            use_in_memory_backends=True, static_dir=None, api_prefix="/api"
        )
        client = TestClient(create_app(settings=settings))
        self.assertEqual(client.get("/api/health").status_code, 200)
        self.assertEqual(client.get("/health").status_code, 404)


class StaticFilesTests(unittest.TestCase):
    def setUp(self):
        self.static_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.static_dir.cleanup)
        with open(os.path.join(self.static_dir.name, "index.html"), "w") as f:
            f.write("<html>gallery</html>")
        with open(os.path.join(self.static_dir.name, "script.js"), "w") as f:
            f.write("loadGallery();")
        settings = Settings(use_in_memory_backends=True, static_dir=self.static_dir.name)
        self.client = TestClient(create_app(settings=settings))

    def test_assets_and_index_are_served(self):
        self.assertEqual(self.client.get("/").text, "<html>gallery</html>")
        self.assertEqual(self.client.get("/script.js").text, "loadGallery();")

    def test_unknown_client_route_gets_index(self):
        response = self.client.get("/gallery/F4ABC")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "<html>gallery</html>")

    def test_missing_asset_is_404(self):
        self.assertEqual(self.client.get("/missing.css").status_code, 404)

    def test_api_routes_take_precedence(self):
        self.assertEqual(self.client.get("/health").json(), {"ok": True})
        self.assertEqual(self.client.get("/qsl").json(), [])


if __name__ == "__main__":
    unittest.main()

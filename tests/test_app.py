import tempfile
import unittest
from pathlib import Path
from typing import Optional

from catalog_meta.app import CatalogMetaApp
from catalog_meta.config import Settings, StorageSettings
from catalog_meta.errors import NotFoundError, ValidationError
from catalog_meta.models import EmbeddedRecord, MediaFile


class _StaticExtractor:
    def __init__(self, record: Optional[EmbeddedRecord]) -> None:
        self.record = record
        self.paths: list[Path] = []

    def extract(self, path: Path) -> Optional[EmbeddedRecord]:
        self.paths.append(path)
        return self.record


def _settings() -> Settings:
    return Settings(storage=StorageSettings(database_path=":memory:"))


class TestCatalogMetaApp(unittest.TestCase):
    def setUp(self) -> None:
        self.extractor = _StaticExtractor(EmbeddedRecord(title="Tagged", author="Tag Author"))
        self.app = CatalogMetaApp.create(_settings(), extractor=self.extractor)

    def tearDown(self) -> None:
        self.app.close()

    def test_register_scans_the_asset_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for name in ("Part 10.mp3", "Part 9.mp3", "cover.jpg"):
                (root / name).write_bytes(b"\x00")

            item = self.app.register_item("book-1", root)

        self.assertEqual([media.filename for media in item.media_files], ["Part 9.mp3", "Part 10.mp3"])
        self.assertEqual([listed.id for listed in self.app.list_items()], ["book-1"])

    def test_register_rejects_empty_and_duplicate_ids(self) -> None:
        self.app.register_item("book-1", Path("/library/dune"), [MediaFile("01.mp3")])
        with self.assertRaises(ValidationError):
            self.app.register_item("  ", Path("/library/dune"), [])
        with self.assertRaises(ValidationError):
            self.app.register_item("book-1", Path("/library/dune"), [])

    def test_resolved_and_layers_views(self) -> None:
        self.app.register_item("book-1", Path("/library/dune"), [])
        self.app.set_embedded("book-1", EmbeddedRecord(title="Tagged", genre="Sci-Fi"))
        self.app.overrides.edit("book-1", "author", "Frank Herbert")

        resolved = self.app.get_resolved("book-1")
        layers = self.app.get_layers("book-1")

        self.assertEqual(resolved.present(), {"title": "Tagged", "author": "Frank Herbert", "genres": "Sci-Fi"})
        self.assertIsNone(layers.agent)
        self.assertEqual(layers.embedded.genre, "Sci-Fi")
        self.assertEqual(layers.to_record()["custom"], {"author": {"value": "Frank Herbert", "locked": True}})

    def test_stored_lock_for_retired_field_does_not_break_reads(self) -> None:
        self.app.register_item("book-1", Path("/library/dune"), [])
        self.app.store.put_locked_field("book-1", "legacy_field", "x")
        self.app.overrides.edit("book-1", "title", "Mine")

        with self.assertLogs("catalog_meta.resolver", level="WARNING"):
            resolved = self.app.get_resolved("book-1")

        self.assertEqual(resolved.present(), {"title": "Mine"})

    def test_refresh_embedded_uses_the_extractor(self) -> None:
        self.app.register_item("book-1", Path("/library/dune"), [])

        record = self.app.refresh_embedded("book-1")

        self.assertEqual(self.extractor.paths, [Path("/library/dune")])
        self.assertEqual(record.title, "Tagged")
        self.assertEqual(self.app.get_resolved("book-1").author, "Tag Author")

    def test_refresh_without_result_keeps_previous_tags(self) -> None:
        self.app.register_item("book-1", Path("/library/dune"), [])
        self.app.refresh_embedded("book-1")
        self.extractor.record = None

        self.assertIsNone(self.app.refresh_embedded("book-1"))
        self.assertEqual(self.app.get_layers("book-1").embedded.title, "Tagged")

    def test_missing_item_operations(self) -> None:
        with self.assertRaises(NotFoundError):
            self.app.get_resolved("missing")
        with self.assertRaises(NotFoundError):
            self.app.set_embedded("missing", EmbeddedRecord(title="x"))
        with self.assertRaises(NotFoundError):
            self.app.delete_item("missing")

    def test_delete_item(self) -> None:
        self.app.register_item("book-1", Path("/library/dune"), [MediaFile("01.mp3")])
        self.app.overrides.edit("book-1", "title", "Mine")

        self.app.delete_item("book-1")

        self.assertEqual(self.app.list_items(), [])
        self.assertEqual(self.app.store.get_custom_fields("book-1"), {})


if __name__ == "__main__":
    unittest.main()

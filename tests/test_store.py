import sqlite3
import tempfile
import unittest
from pathlib import Path

from catalog_meta.errors import NotFoundError, StorageError
from catalog_meta.models import AgentRecord, EmbeddedRecord, MediaFile
from catalog_meta.store import CatalogStore


class TestCatalogStore(unittest.TestCase):
    def setUp(self) -> None:
        self.store = CatalogStore(":memory:")
        self.store.create_item("book-1", "/library/dune", [MediaFile("ch10.mp3"), MediaFile("ch2.mp3")])

    def tearDown(self) -> None:
        self.store.close()

    def test_media_files_come_back_in_natural_order(self) -> None:
        item = self.store.require_item("book-1")
        self.assertEqual([media.filename for media in item.media_files], ["ch2.mp3", "ch10.mp3"])
        self.assertTrue(all(media.item_id == "book-1" for media in item.media_files))
        self.assertFalse(item.linked)

    def test_item_with_non_ascii_digit_filenames_stays_readable(self) -> None:
        self.store.create_item("book-2", "/library/odd", [MediaFile("1²3.mp3"), MediaFile("1²2.mp3")])
        item = self.store.require_item("book-2")
        self.assertEqual([media.filename for media in item.media_files], ["1²2.mp3", "1²3.mp3"])
        self.assertIsNone(self.store.load_layers("book-2").agent)

    def test_missing_item_raises_not_found(self) -> None:
        self.assertIsNone(self.store.get_item("nope"))
        with self.assertRaises(NotFoundError):
            self.store.require_item("nope")
        with self.assertRaises(NotFoundError):
            self.store.set_item_agent("nope", None)
        with self.assertRaises(NotFoundError):
            self.store.load_layers("nope")

    def test_agent_upsert_is_keyed_by_source_and_external_id(self) -> None:
        first = self.store.upsert_agent(AgentRecord(source="shelf", external_id="B001", title="Dune"))
        second = self.store.upsert_agent(AgentRecord(source="shelf", external_id="B001", title="Dune (2nd ed.)"))
        other = self.store.upsert_agent(AgentRecord(source="other", external_id="B001", title="Dune"))

        self.assertEqual(first.id, second.id)
        self.assertNotEqual(first.id, other.id)
        self.assertEqual(self.store.get_agent(first.id).title, "Dune (2nd ed.)")
        self.assertIsNotNone(second.created_at)

    def test_agent_update_is_visible_to_every_linked_item(self) -> None:
        self.store.create_item("book-2", "/library/dune-copy")
        agent = self.store.upsert_agent(AgentRecord(source="shelf", external_id="B001", title="Dune"))
        self.store.set_item_agent("book-1", agent.id)
        self.store.set_item_agent("book-2", agent.id)

        self.store.upsert_agent(AgentRecord(source="shelf", external_id="B001", title="Dune Messiah"))

        self.assertEqual(self.store.items_for_agent(agent.id), ["book-1", "book-2"])
        for item_id in ("book-1", "book-2"):
            self.assertEqual(self.store.load_layers(item_id).agent.title, "Dune Messiah")

    def test_delete_item_cascades_but_keeps_shared_agent(self) -> None:
        agent = self.store.upsert_agent(AgentRecord(source="shelf", external_id="B001", title="Dune"))
        self.store.set_item_agent("book-1", agent.id)
        self.store.upsert_embedded("book-1", EmbeddedRecord(title="Dune"))
        self.store.put_locked_field("book-1", "title", "My Dune")

        self.assertTrue(self.store.delete_item("book-1"))

        self.assertIsNone(self.store.get_item("book-1"))
        self.assertIsNone(self.store.get_embedded("book-1"))
        self.assertEqual(self.store.get_custom_fields("book-1"), {})
        self.assertEqual(self.store.list_media_files("book-1"), [])
        self.assertIsNotNone(self.store.get_agent(agent.id))

    def test_embedded_upsert_replaces_the_record(self) -> None:
        self.store.upsert_embedded("book-1", EmbeddedRecord(title="Old", cover=b"\x89PNG", cover_mime_type="image/png"))
        self.store.upsert_embedded("book-1", EmbeddedRecord(title="New"))

        embedded = self.store.get_embedded("book-1")
        self.assertEqual(embedded.item_id, "book-1")
        self.assertEqual(embedded.title, "New")
        self.assertIsNone(embedded.cover)
        self.assertIsNotNone(embedded.extracted_at)
        self.assertTrue(self.store.delete_embedded("book-1"))
        self.assertIsNone(self.store.get_embedded("book-1"))

    def test_custom_fields_round_trip(self) -> None:
        self.store.put_locked_field("book-1", "title", "Mine", updated_by="alice")
        self.store.put_locked_field("book-1", "title", "Mine again", updated_by="bob")

        entry = self.store.get_custom_fields("book-1")["title"]
        self.assertEqual(entry.value, "Mine again")
        self.assertTrue(entry.locked)
        self.assertEqual(entry.updated_by, "bob")
        self.assertTrue(self.store.delete_custom_field("book-1", "title"))
        self.assertFalse(self.store.delete_custom_field("book-1", "title"))

    def test_failed_transaction_rolls_back_every_write(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                self.store.put_locked_field("book-1", "title", "A")
                self.store.put_locked_field("book-1", "author", "B")
                raise RuntimeError("boom")
        self.assertEqual(self.store.get_custom_fields("book-1"), {})

    def test_sqlite_failure_inside_transaction_is_storage_error(self) -> None:
        with self.assertRaises(StorageError) as ctx:
            with self.store.transaction():
                self.store.put_locked_field("book-1", "title", "A")
                self.store.put_locked_field("missing", "title", "B")
        self.assertIsInstance(ctx.exception.cause, sqlite3.IntegrityError)
        self.assertEqual(self.store.get_custom_fields("book-1"), {})

    def test_sqlite_failure_outside_transaction_is_storage_error(self) -> None:
        with self.assertRaises(StorageError):
            self.store.put_locked_field("missing", "title", "B")

    def test_nested_transactions_join_the_outer_one(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                with self.store.transaction():
                    self.store.put_locked_field("book-1", "title", "A")
                raise RuntimeError("boom")
        self.assertEqual(self.store.get_custom_fields("book-1"), {})

    def test_data_persists_across_connections(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "catalog.sqlite3"
            store = CatalogStore(path)
            try:
                store.create_item("book-1", "/library/dune", [MediaFile("01.mp3", duration_sec=12.5)])
                store.put_locked_field("book-1", "narrator", "Scott Brick")
            finally:
                store.close()

            reopened = CatalogStore(path)
            try:
                item = reopened.require_item("book-1")
                self.assertEqual(item.total_duration_sec, 12.5)
                self.assertEqual(reopened.get_custom_fields("book-1")["narrator"].value, "Scott Brick")
            finally:
                reopened.close()


if __name__ == "__main__":
    unittest.main()

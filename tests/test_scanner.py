import tempfile
import unittest
from pathlib import Path

from catalog_meta.config import LibrarySettings
from catalog_meta.scanner import MediaScanner, mime_type_for


class TestMediaScanner(unittest.TestCase):
    def test_collects_audio_files_in_natural_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for name in ("ch10.mp3", "ch2.mp3", "ch1.MP3", "notes.txt", "cover.jpg"):
                (root / name).write_bytes(b"\x00")
            (root / "extras").mkdir()
            (root / "extras" / "bonus.mp3").write_bytes(b"\x00")

            files = MediaScanner(LibrarySettings()).collect(root)

            self.assertEqual([media.filename for media in files], ["ch1.MP3", "ch2.mp3", "ch10.mp3"])
            self.assertEqual(files[1].mime_type, "audio/mpeg")

    def test_exclude_patterns(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for name in ("01.m4b", "sample.m4b"):
                (root / name).write_bytes(b"\x00")

            scanner = MediaScanner(LibrarySettings(exclude_patterns=["*sample*"]))

            self.assertEqual([media.filename for media in scanner.collect(root)], ["01.m4b"])

    def test_single_file_and_missing_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            book = root / "book.m4b"
            book.write_bytes(b"\x00")
            scanner = MediaScanner(LibrarySettings())

            self.assertEqual([media.filename for media in scanner.collect(book)], ["book.m4b"])
            self.assertEqual(scanner.collect(root / "missing"), [])

    def test_mime_type_fallback(self) -> None:
        self.assertEqual(mime_type_for(Path("README")), "application/octet-stream")


if __name__ == "__main__":
    unittest.main()

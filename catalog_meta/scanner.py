from __future__ import annotations

import fnmatch
import mimetypes
from pathlib import Path
from typing import List

from .config import LibrarySettings
from .models import MediaFile
from .natural_sort import natural_sorted


class MediaScanner:
    """Lists the audio files that make up one catalog item directory."""

    def __init__(self, settings: LibrarySettings) -> None:
        self.settings = settings
        self._exts = {ext.lower() for ext in self.settings.include_extensions}

    def collect(self, asset_path: Path) -> List[MediaFile]:
        if asset_path.is_file():
            candidates = [asset_path] if self._should_include(asset_path) else []
        elif asset_path.is_dir():
            candidates = [path for path in asset_path.iterdir() if path.is_file() and self._should_include(path)]
        else:
            return []
        files = [MediaFile(filename=path.name, mime_type=mime_type_for(path)) for path in candidates]
        return natural_sorted(files, key=lambda media: media.filename)

    def _should_include(self, path: Path) -> bool:
        if path.suffix.lower() not in self._exts:
            return False
        rel = str(path)
        for pattern in self.settings.exclude_patterns:
            if fnmatch.fnmatch(rel, pattern):
                return False
        return True


def mime_type_for(path: Path) -> str:
    if not path.suffix:
        return "application/octet-stream"
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"

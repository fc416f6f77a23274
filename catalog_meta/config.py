from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class StorageSettings(BaseModel):
    database_path: Path = Path("./cache/catalog.sqlite3")

    @field_validator("database_path", mode="before")
    @classmethod
    def _expand_database(cls, value: str | Path) -> Path:
        if str(value) == ":memory:":
            return Path(":memory:")
        return Path(value).expanduser().resolve()


class LibrarySettings(BaseModel):
    include_extensions: List[str] = Field(
        default_factory=lambda: [".mp3", ".m4b", ".m4a", ".flac", ".ogg", ".wav", ".aac"]
    )
    exclude_patterns: List[str] = Field(default_factory=list)


class ProviderSettings(BaseModel):
    default: Optional[str] = None
    fixtures: Dict[str, Path] = Field(default_factory=dict)

    @field_validator("fixtures", mode="before")
    @classmethod
    def _expand_fixtures(cls, values: Optional[Dict[str, str | Path]]) -> Dict[str, Path]:
        if not values:
            return {}
        return {name: Path(path).expanduser().resolve() for name, path in values.items()}

    @model_validator(mode="after")
    def _default_is_known(self) -> "ProviderSettings":
        if self.default and self.fixtures and self.default not in self.fixtures:
            raise ValueError(f"default provider '{self.default}' has no fixture configured")
        return self


class Settings(BaseModel):
    storage: StorageSettings = StorageSettings()
    library: LibrarySettings = LibrarySettings()
    providers: ProviderSettings = ProviderSettings()

    @classmethod
    def load(cls, path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        return cls.model_validate(raw or {})


def find_config(explicit_path: Optional[Path]) -> Optional[Path]:
    if explicit_path:
        return explicit_path
    cwd = Path.cwd()
    for candidate in (cwd / "config.yaml", cwd / "config.yml"):
        if candidate.exists():
            return candidate
    return None

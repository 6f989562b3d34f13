"""Accumulate portraits and read/write the portrait library JSON."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone

from portrait_compositor.selection import PortraitSelection


@dataclass
class PortraitConfig:
    name: str                               # Unique within a library
    config: PortraitSelection | None        # None for uploaded images
    thumbnail: str                          # PNG data URL
    full_size_image: str = ""               # PNG data URL
    uploaded: bool = False

    @property
    def editable(self) -> bool:
        """Uploaded portraits have no selection to re-render from."""
        return not self.uploaded and self.config is not None

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "config": self.config.to_dict() if self.config is not None else None,
            "thumbnail": self.thumbnail,
        }
        if self.full_size_image:
            data["fullSizeImage"] = self.full_size_image
        if self.uploaded:
            data["uploaded"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PortraitConfig":
        config = data.get("config")
        return cls(
            name=data["name"],
            config=PortraitSelection.from_dict(config) if config else None,
            thumbnail=data.get("thumbnail", ""),
            full_size_image=data.get("fullSizeImage", ""),
            uploaded=bool(data.get("uploaded", False)),
        )


class PortraitLibrary:
    def __init__(self):
        self.portraits: dict[str, PortraitConfig] = {}
        self.failed: list[dict] = []

    def __len__(self) -> int:
        return len(self.portraits)

    def __contains__(self, name: str) -> bool:
        return name in self.portraits

    def add_or_update(self, portrait: PortraitConfig):
        """Insert a portrait, replacing any existing one with the same name."""
        self.portraits[portrait.name] = portrait

    def add_many(self, portraits):
        for portrait in portraits:
            self.add_or_update(portrait)

    def get(self, name: str) -> PortraitConfig | None:
        return self.portraits.get(name)

    def delete(self, name: str) -> bool:
        return self.portraits.pop(name, None) is not None

    def selection_for_edit(self, name: str) -> PortraitSelection:
        """Selection to load into the editor for an existing portrait.

        Raises:
            KeyError: No portrait with that name.
            ValueError: The portrait was uploaded and cannot be re-composited.
        """
        portrait = self.portraits[name]
        if not portrait.editable:
            raise ValueError(f"Portrait {name!r} was uploaded and cannot be edited")
        return portrait.config

    def add_failure(self, name: str, error: str):
        """Record a portrait that failed to render."""
        self.failed.append({"name": name, "error": error})

    def write(self, output_path: str):
        """Write the library to disk as JSON.

        Creates parent directories if they don't exist.
        """
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        library = {
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "total_portraits": len(self.portraits),
            "total_failed": len(self.failed),
            "portraits": [p.to_dict() for _, p in sorted(self.portraits.items())],
            "failed": self.failed,
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(library, f, indent=2, ensure_ascii=False)
            f.write("\n")

    @classmethod
    def load(cls, path: str) -> "PortraitLibrary":
        """Read the portraits of a library written by write().

        Failures belong to the run that wrote the file and are not carried
        over.  A missing file gives an empty library.
        """
        library = cls()
        if not os.path.isfile(path):
            return library
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for raw in data.get("portraits", []):
            library.add_or_update(PortraitConfig.from_dict(raw))
        return library

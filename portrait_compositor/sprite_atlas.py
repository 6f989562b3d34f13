"""
Sprite Atlas Loader

Loads the five body-part sprite sheets and their manifests.  Each manifest
lists named rectangular regions inside one shared sheet image:

    {"sprites": [{"fileName": "hair01.png", "x": 0, "y": 0,
                  "width": 512, "height": 512}, ...]}

Asset layout under the asset root:
    hair/hair/HairSprite.json          + HairSprite.png
    hair/brow/HairBrowSprite.json      + HairBrowSprite.png
    hair/facial/HairFacialSprite.json  + HairFacialSprite.png
    hairBack/HairBackSprite.json       + HairBackSprite.png
    head/HeadSprite.json               + HeadSprite.png   (head, ears, neck)

Everything is loaded when the SpriteAtlas is constructed, so a missing or
corrupt asset fails at startup rather than halfway through a batch.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass

from PIL import Image

logger = logging.getLogger(__name__)

# Category -> (sub-directory, file stem) relative to the asset root
SPRITE_CATEGORIES: dict[str, tuple[str, str]] = {
    "hair": (os.path.join("hair", "hair"), "HairSprite"),
    "brow": (os.path.join("hair", "brow"), "HairBrowSprite"),
    "facial": (os.path.join("hair", "facial"), "HairFacialSprite"),
    "hairBack": ("hairBack", "HairBackSprite"),
    "head": ("head", "HeadSprite"),
}

_IMAGE_EXT_RE = re.compile(r'\.(?:png|jpe?g|webp)$', re.IGNORECASE)


class MissingAssetError(RuntimeError):
    """A manifest or sprite sheet could not be loaded."""


def strip_image_extension(file_name: str) -> str:
    """'hair01.png' -> 'hair01'.  Names without an image extension are returned as-is."""
    return _IMAGE_EXT_RE.sub("", file_name)


@dataclass(frozen=True)
class SpriteEntry:
    """One named region inside a sprite sheet."""
    file_name: str      # As written in the manifest, e.g. "hair01.png"
    x: int
    y: int
    width: int
    height: int

    @property
    def key(self) -> str:
        """Part key used by selections ("hair01")."""
        return strip_image_extension(self.file_name)

    @property
    def box(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class SpriteManifest:
    category: str
    entries: tuple[SpriteEntry, ...]

    def keys(self) -> list[str]:
        return [e.key for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)


def manifest_paths(assets_dir: str, category: str) -> tuple[str, str]:
    """Return (manifest_json_path, sheet_png_path) for a category."""
    try:
        subdir, stem = SPRITE_CATEGORIES[category]
    except KeyError:
        raise MissingAssetError(f"Unknown sprite category: {category!r}") from None
    base = os.path.join(assets_dir, subdir, stem)
    return base + ".json", base + ".png"


def load_manifest(path: str, category: str) -> SpriteManifest:
    """Parse a manifest JSON file into a SpriteManifest.

    Raises:
        MissingAssetError: If the file is missing, is not valid JSON, or an
            entry lacks one of fileName/x/y/width/height.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise MissingAssetError(f"{category}: manifest not found: {path}") from None
    except (json.JSONDecodeError, OSError) as exc:
        raise MissingAssetError(f"{category}: cannot read manifest {path}: {exc}") from exc

    sprites = data.get("sprites") if isinstance(data, dict) else None
    if not isinstance(sprites, list):
        raise MissingAssetError(f"{category}: manifest {path} has no 'sprites' list")

    entries = []
    for i, raw in enumerate(sprites):
        try:
            entries.append(SpriteEntry(
                file_name=str(raw["fileName"]),
                x=int(raw["x"]),
                y=int(raw["y"]),
                width=int(raw["width"]),
                height=int(raw["height"]),
            ))
        except (KeyError, TypeError, ValueError) as exc:
            raise MissingAssetError(
                f"{category}: manifest entry #{i} in {path} is malformed: {exc!r}"
            ) from exc

    return SpriteManifest(category=category, entries=tuple(entries))


def _load_sheet(path: str, category: str) -> Image.Image:
    try:
        img = Image.open(path)
        img.load()
    except FileNotFoundError:
        raise MissingAssetError(f"{category}: sprite sheet not found: {path}") from None
    except (OSError, ValueError) as exc:
        raise MissingAssetError(f"{category}: cannot decode sprite sheet {path}: {exc}") from exc
    return img.convert("RGBA")


def _check_bounds(manifest: SpriteManifest, sheet: Image.Image) -> None:
    for entry in manifest.entries:
        if (entry.width <= 0 or entry.height <= 0 or entry.x < 0 or entry.y < 0
                or entry.x + entry.width > sheet.width
                or entry.y + entry.height > sheet.height):
            raise MissingAssetError(
                f"{manifest.category}: region {entry.file_name} {entry.box} lies "
                f"outside the {sheet.width}x{sheet.height} sprite sheet"
            )


def load_backdrop(path: str) -> Image.Image:
    """Load the optional backdrop ("suit") layer as RGBA."""
    return _load_sheet(path, "backdrop")


class SpriteAtlas:
    """All sprite manifests and sheets, loaded once and read-only afterwards."""

    def __init__(self, assets_dir: str, categories=None):
        self.assets_dir = assets_dir
        self._manifests: dict[str, SpriteManifest] = {}
        self._sheets: dict[str, Image.Image] = {}

        for category in categories or SPRITE_CATEGORIES:
            manifest_path, sheet_path = manifest_paths(assets_dir, category)
            manifest = load_manifest(manifest_path, category)
            sheet = _load_sheet(sheet_path, category)
            _check_bounds(manifest, sheet)
            self._manifests[category] = manifest
            self._sheets[category] = sheet
            logger.debug("Loaded %s: %d sprites from %dx%d sheet",
                         category, len(manifest), sheet.width, sheet.height)

        logger.info("Sprite atlas loaded from %s (%d categories)",
                    assets_dir, len(self._manifests))

    @property
    def categories(self) -> list[str]:
        return list(self._manifests)

    def manifest(self, category: str) -> SpriteManifest:
        try:
            return self._manifests[category]
        except KeyError:
            raise MissingAssetError(f"Sprite category not loaded: {category!r}") from None

    def sheet(self, category: str) -> Image.Image:
        try:
            return self._sheets[category]
        except KeyError:
            raise MissingAssetError(f"Sprite category not loaded: {category!r}") from None

    def crop(self, category: str, entry: SpriteEntry) -> Image.Image:
        """Return a copy of one region of the category's sheet."""
        return self.sheet(category).crop(entry.box)

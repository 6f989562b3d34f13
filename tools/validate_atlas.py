#!/usr/bin/env python3
"""Sprite Atlas Validation Tool

Checks the five body-part sprite sheets and manifests under an asset root
before they are shipped with the compositor.

For each category this tool:
  1. Parses the manifest JSON and decodes the sprite sheet
  2. Flags duplicate part keys (the resolver only ever finds the first)
  3. Flags regions that are empty or fall outside the sheet
  4. Flags regions with no visible pixels
  5. For the head manifest, checks that head*, ear* and neck* defaults exist

Usage:
    python tools/validate_atlas.py assets/
    python tools/validate_atlas.py assets/ --verbose
"""
from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

# Add project root to path so we can import portrait_compositor modules
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from portrait_compositor.image_processor import visible_pixel_count      # noqa: E402
from portrait_compositor.part_resolver import default_part_key           # noqa: E402
from portrait_compositor.sprite_atlas import (                           # noqa: E402
    SPRITE_CATEGORIES,
    MissingAssetError,
    load_manifest,
    manifest_paths,
)

logger = logging.getLogger(__name__)

# Prefixes the head manifest must provide for default head/ears and the neck
REQUIRED_HEAD_PREFIXES = ("head", "ear", "neck")


@dataclass
class CategoryValidation:
    """Result of validating one sprite category."""
    category: str
    sprite_count: int = 0
    sheet_width: int = 0
    sheet_height: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_category(assets_dir: str, category: str) -> CategoryValidation:
    """Validate one category's manifest and sheet."""
    result = CategoryValidation(category=category)
    manifest_path, sheet_path = manifest_paths(assets_dir, category)

    try:
        manifest = load_manifest(manifest_path, category)
    except MissingAssetError as exc:
        result.errors.append(str(exc))
        return result
    result.sprite_count = len(manifest)

    try:
        sheet = Image.open(sheet_path)
        sheet.load()
        sheet = sheet.convert("RGBA")
    except (OSError, ValueError) as exc:
        result.errors.append(f"sheet: {exc}")
        return result
    result.sheet_width, result.sheet_height = sheet.size

    for key, n in Counter(manifest.keys()).items():
        if n > 1:
            result.errors.append(f"duplicate key {key!r} ({n} entries)")

    for entry in manifest.entries:
        if entry.width <= 0 or entry.height <= 0:
            result.errors.append(f"{entry.file_name}: empty region {entry.box}")
            continue
        if (entry.x < 0 or entry.y < 0
                or entry.x + entry.width > sheet.width
                or entry.y + entry.height > sheet.height):
            result.errors.append(f"{entry.file_name}: region {entry.box} outside sheet")
            continue
        if visible_pixel_count(sheet.crop(entry.box)) == 0:
            result.warnings.append(f"{entry.file_name}: fully transparent region")

    if category == "head":
        for prefix in REQUIRED_HEAD_PREFIXES:
            if not default_part_key(manifest, prefix):
                result.errors.append(f"no {prefix}* sprite for the default {prefix} layer")

    return result


def print_report(results: list[CategoryValidation], verbose: bool = False) -> None:
    """Print a human-readable validation report."""
    print(f"\n{'='*70}")
    print(f"  Sprite Atlas Validation Report")
    print(f"{'='*70}")
    for r in results:
        status = "OK" if r.valid else "INVALID"
        size = f"{r.sheet_width}x{r.sheet_height}" if r.sheet_width else "n/a"
        print(f"  {r.category:10s} {r.sprite_count:4d} sprites  sheet {size:>11s}  [{status}]")

    for r in results:
        if not r.errors and not (verbose and r.warnings):
            continue
        print(f"\n{'-'*70}")
        print(f"  {r.category}:")
        for e in r.errors:
            print(f"    ERROR    {e}")
        if verbose:
            for w in r.warnings:
                print(f"    WARNING  {w}")
    print(f"{'='*70}\n")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Validate portrait sprite sheets and manifests",
    )
    parser.add_argument("assets_dir", type=Path, help="Path to the sprite asset root")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show warnings too")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args.assets_dir.is_dir():
        print(f"Error: {args.assets_dir} is not a directory", file=sys.stderr)
        sys.exit(1)

    results = [validate_category(str(args.assets_dir), c) for c in SPRITE_CATEGORIES]
    print_report(results, verbose=args.verbose)

    if not all(r.valid for r in results):
        sys.exit(1)


if __name__ == "__main__":
    main()

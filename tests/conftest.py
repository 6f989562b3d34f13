"""Shared fixtures: a small synthetic sprite atlas written to disk.

Every sprite is a 32x32 cell holding one opaque grey rectangle on a fully
transparent background.  Rectangles are given as (rows, cols) slices in
sprite coordinates so tests can find layer-only pixels.
"""

import json
import os

import numpy as np
import pytest
from PIL import Image

from portrait_compositor.sprite_atlas import SPRITE_CATEGORIES, SpriteAtlas

CELL = 32

# category -> [(fileName, row slice, col slice, grey level)]
SPRITES = {
    "hair": [
        ("hair01.png", slice(0, 10), slice(4, 28), 200),
        ("hair02.png", slice(0, 8), slice(2, 30), 60),
    ],
    "brow": [
        ("hairbrow01.png", slice(11, 13), slice(8, 24), 90),
        ("hairbrow02.png", slice(10, 12), slice(8, 24), 150),
    ],
    "facial": [
        ("facial01.png", slice(22, 28), slice(8, 24), 120),
    ],
    "hairBack": [
        ("hairback01.png", slice(4, 30), slice(0, 32), 100),
    ],
    "head": [
        ("head01.png", slice(4, 26), slice(8, 24), 180),
        ("head02.png", slice(5, 27), slice(9, 23), 170),
        ("ear01.png", slice(12, 18), slice(5, 27), 160),
        ("ear02.png", slice(13, 19), slice(6, 26), 160),
        ("neck01.png", slice(22, 32), slice(12, 20), 150),
    ],
}


def sprite_array(rows: slice, cols: slice, grey: int) -> np.ndarray:
    arr = np.zeros((CELL, CELL, 4), dtype=np.uint8)
    arr[rows, cols, :3] = grey
    arr[rows, cols, 3] = 255
    return arr


def write_category(root: str, category: str, sprites) -> None:
    """Write one category's sheet (sprites side by side) and manifest."""
    subdir, stem = SPRITE_CATEGORIES[category]
    out_dir = os.path.join(root, subdir)
    os.makedirs(out_dir, exist_ok=True)

    sheet = np.zeros((CELL, CELL * len(sprites), 4), dtype=np.uint8)
    entries = []
    for i, (file_name, rows, cols, grey) in enumerate(sprites):
        sheet[:, i * CELL:(i + 1) * CELL] = sprite_array(rows, cols, grey)
        entries.append({"fileName": file_name, "x": i * CELL, "y": 0,
                        "width": CELL, "height": CELL})

    Image.fromarray(sheet, "RGBA").save(os.path.join(out_dir, stem + ".png"))
    with open(os.path.join(out_dir, stem + ".json"), "w", encoding="utf-8") as f:
        json.dump({"sprites": entries}, f)


def build_assets(root: str) -> str:
    for category, sprites in SPRITES.items():
        write_category(root, category, sprites)
    return root


@pytest.fixture(scope="session")
def assets_dir(tmp_path_factory):
    return build_assets(str(tmp_path_factory.mktemp("assets")))


@pytest.fixture
def fresh_assets_dir(tmp_path):
    """A private copy of the assets that a test may break."""
    return build_assets(str(tmp_path / "assets"))


@pytest.fixture(scope="session")
def atlas(assets_dir):
    return SpriteAtlas(assets_dir)


def sprite_px(row: int, col: int, size: int) -> tuple[int, int]:
    """Centre of sprite pixel (row, col) in a size x size render, as (x, y)."""
    scale = size // CELL
    return (col * scale + scale // 2, row * scale + scale // 2)

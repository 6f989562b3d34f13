"""Random portrait selections drawn from the atlas manifests."""

from __future__ import annotations

import random

from portrait_compositor.selection import PortraitSelection
from portrait_compositor.sprite_atlas import SpriteAtlas

SKIN_SWATCHES = (
    "#211610", "#472e23", "#c1724f", "#976a56", "#b07b61", "#b27064", "#bc8277",
)
HAIR_SWATCHES = (
    "#704123", "#8e7355", "#6b533c", "#493127", "#2d1b13", "#1b100b", "#131313",
)

# Chance that an optional layer (facial hair, hair back) is left empty
OPTIONAL_LAYER_SKIP = 0.5


def _keys_with_prefix(keys: list[str], prefix: str) -> list[str]:
    return [k for k in keys if k.lower().startswith(prefix)]


def _pick(rng: random.Random, keys: list[str]) -> str:
    return rng.choice(keys) if keys else ""


def random_selections(
    atlas: SpriteAtlas,
    count: int,
    rng: random.Random | None = None,
) -> list[PortraitSelection]:
    """Build *count* random selections.

    Hair and brow are always set; facial hair and hair back are each left
    empty half of the time.  Head and ears are picked among the head
    manifest's head* and ear* entries.
    """
    if count <= 0:
        raise ValueError(f"count must be > 0, got {count}")
    rng = rng or random.Random()

    hair = atlas.manifest("hair").keys()
    brow = atlas.manifest("brow").keys()
    facial = atlas.manifest("facial").keys()
    hair_back = atlas.manifest("hairBack").keys()
    head_keys = atlas.manifest("head").keys()
    heads = _keys_with_prefix(head_keys, "head")
    ears = _keys_with_prefix(head_keys, "ear")

    selections = []
    for _ in range(count):
        selections.append(PortraitSelection(
            hair=_pick(rng, hair),
            brow=_pick(rng, brow),
            facial="" if rng.random() < OPTIONAL_LAYER_SKIP else _pick(rng, facial),
            hair_back="" if rng.random() < OPTIONAL_LAYER_SKIP else _pick(rng, hair_back),
            head=_pick(rng, heads),
            ears=_pick(rng, ears),
            hair_color=rng.choice(HAIR_SWATCHES),
            skin_color=rng.choice(SKIN_SWATCHES),
        ))
    return selections

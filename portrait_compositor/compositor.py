"""
Portrait Compositor

Paints the seven portrait layers back-to-front onto a transparent canvas.

Per layer:
  1. Resolve the part key to a sprite region (neck is always the head
     manifest's first neck* entry; unresolved keys skip the layer)
  2. Crop the region from its sprite sheet and scale it to size x size
  3. Fill a solid layer with the tint colour and hard-light blend it over
     the region
  4. Destination-in: keep the region's own alpha as the result's alpha
  5. Source-over onto the canvas

Blend math is done in float32 on normalised [0, 1] values.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence

import numpy as np
from PIL import Image

from portrait_compositor.part_resolver import (
    UnresolvedPartError,
    UnresolvedPartWarning,
    default_part_key,
    neck_part_key,
    resolve_part,
)
from portrait_compositor.selection import (
    LAYER_ORDER,
    Layer,
    PortraitSelection,
    parse_hex_color,
)
from portrait_compositor.sprite_atlas import SpriteAtlas, SpriteEntry, SpriteManifest

logger = logging.getLogger(__name__)


def apply_part_defaults(
    selection: PortraitSelection,
    head_manifest: SpriteManifest,
) -> PortraitSelection:
    """Fill empty head/ears with the first head*/ear* entries."""
    if not selection.head:
        selection = selection.with_part("head", default_part_key(head_manifest, "head"))
    if not selection.ears:
        selection = selection.with_part("ears", default_part_key(head_manifest, "ear"))
    return selection


def hard_light(backdrop: np.ndarray, source: np.ndarray) -> np.ndarray:
    """Separable hard-light blend, inputs in [0, 1].

    The source (the tint) picks the branch: multiply for dark tints,
    screen for light ones.
    """
    return np.where(
        source <= 0.5,
        2.0 * backdrop * source,
        1.0 - 2.0 * (1.0 - backdrop) * (1.0 - source),
    )


def tint_region(region: Image.Image, color: tuple[int, int, int]) -> Image.Image:
    """Tint an RGBA region with a solid colour, keeping the region's alpha shape.

    The solid colour is opaque, so blending it over the region yields an
    opaque image whose colour is the hard-light result where the region is
    opaque and the plain tint where it is transparent.  The region's alpha
    is then copied over unchanged (destination-in), so pixels that were
    fully transparent stay fully transparent.
    """
    src = np.asarray(region.convert("RGBA"))
    arr = src.astype(np.float32) / 255.0
    alpha = arr[:, :, 3:4]
    tint = np.asarray(color, dtype=np.float32) / 255.0

    blended = hard_light(arr[:, :, :3], tint)
    colored = (1.0 - alpha) * tint + alpha * blended

    out = np.empty_like(src)
    out[:, :, :3] = np.rint(colored * 255.0).clip(0, 255).astype(np.uint8)
    out[:, :, 3] = src[:, :, 3]
    return Image.fromarray(out, "RGBA")


def _layer_entry(
    atlas: SpriteAtlas,
    layer: Layer,
    selection: PortraitSelection,
    strict: bool,
) -> SpriteEntry | None:
    manifest = atlas.manifest(layer.category)
    if layer.key == "neck":
        part_key = neck_part_key(manifest)
    else:
        part_key = selection.part(layer.key)

    entry = resolve_part(manifest, part_key)
    if entry is None and part_key:
        msg = f"{layer.key}: no sprite named {part_key!r} in the {layer.category} manifest"
        if strict:
            raise UnresolvedPartError(msg)
        # The warnings filter reports each call site once; the log line is per portrait
        logger.warning("Skipping layer %s", msg)
        warnings.warn(msg, UnresolvedPartWarning, stacklevel=3)
    return entry


def render_portrait(
    atlas: SpriteAtlas,
    selection: PortraitSelection,
    size: int,
    *,
    layers: Sequence[Layer] = LAYER_ORDER,
    resample: int = Image.LANCZOS,
    strict: bool = False,
    backdrop: Image.Image | None = None,
) -> Image.Image:
    """Composite a portrait into a size x size RGBA image.

    Args:
        atlas:     Loaded sprite atlas.
        selection: Part keys and tint colours.  Empty head/ears get defaults.
        size:      Output width and height in pixels.
        layers:    Draw order, back to front.
        resample:  Pillow filter used to scale each region to size x size.
        strict:    Raise UnresolvedPartError instead of skipping unknown parts.
        backdrop:  Optional image painted before any part layer.

    Returns:
        The composited portrait.  Pixels no layer touched are (0, 0, 0, 0).
    """
    selection = apply_part_defaults(selection, atlas.manifest("head"))

    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    if backdrop is not None:
        backdrop = backdrop.convert("RGBA")
        if backdrop.size != canvas.size:
            backdrop = backdrop.resize(canvas.size, resample)
        canvas = Image.alpha_composite(canvas, backdrop)

    drawn = []
    for layer in layers:
        entry = _layer_entry(atlas, layer, selection, strict)
        if entry is None:
            continue

        region = atlas.crop(layer.category, entry)
        if region.size != canvas.size:
            region = region.resize(canvas.size, resample)

        tinted = tint_region(region, parse_hex_color(layer.color(selection)))
        canvas = Image.alpha_composite(canvas, tinted)
        drawn.append(entry.key)

    logger.debug("Rendered %dx%d portrait: %s", size, size, ", ".join(drawn) or "(empty)")
    return canvas

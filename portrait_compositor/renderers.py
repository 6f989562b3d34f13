"""
Portrait renderers.

Two renderers share one contract and one compositing core:

  PreviewRenderer  interactive use. Bilinear scaling, in-memory image
                   for on-screen preview, optional PNG or data URL export.
  BatchRenderer    service and bulk use. Lanczos scaling, paired with the
                   batch orchestrator to stream encoded results.

Output of the two is visually equivalent, not pixel-identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from portrait_compositor.compositor import render_portrait
from portrait_compositor.image_processor import (
    FULL_SIZE,
    THUMBNAIL_SIZE,
    encode_png,
    reduce_thumbnail,
    to_data_url,
)
from portrait_compositor.selection import PortraitSelection, validate_selection, validate_size
from portrait_compositor.sprite_atlas import SpriteAtlas

logger = logging.getLogger(__name__)


@dataclass
class RenderedPortrait:
    """Encoded output of one render."""
    full_png: bytes
    thumbnail_png: bytes

    @property
    def full_data_url(self) -> str:
        return to_data_url(self.full_png)

    @property
    def thumbnail_data_url(self) -> str:
        return to_data_url(self.thumbnail_png)


class PortraitRenderer:
    """Renders PortraitSelections from a sprite atlas.

    Subclasses choose the resampling filter; everything else is shared.
    """

    resample: int = Image.LANCZOS

    def __init__(
        self,
        atlas: SpriteAtlas,
        *,
        strict: bool = False,
        backdrop: Image.Image | None = None,
    ):
        self.atlas = atlas
        self.strict = strict
        self.backdrop = backdrop

    def render(self, selection: PortraitSelection, size: int | None = None) -> Image.Image:
        """Validate the input, then composite a size x size RGBA portrait.

        Raises:
            SelectionError: Malformed colour, non-string part, or bad size.
            UnresolvedPartError: Unknown part key in strict mode.
        """
        validate_selection(selection)
        size = validate_size(FULL_SIZE if size is None else size)
        return render_portrait(
            self.atlas, selection, size,
            resample=self.resample,
            strict=self.strict,
            backdrop=self.backdrop,
        )

    def render_encoded(
        self,
        selection: PortraitSelection,
        size: int | None = None,
        thumbnail_size: int | None = None,
    ) -> RenderedPortrait:
        """Render, reduce to a thumbnail and encode both as PNG."""
        ts = validate_size(THUMBNAIL_SIZE if thumbnail_size is None else thumbnail_size,
                           "thumbnail size")
        image = self.render(selection, size)
        rendered = RenderedPortrait(
            full_png=encode_png(image),
            thumbnail_png=encode_png(reduce_thumbnail(image, ts)),
        )
        logger.debug("Encoded portrait: %d bytes full, %d bytes thumbnail",
                     len(rendered.full_png), len(rendered.thumbnail_png))
        return rendered


class PreviewRenderer(PortraitRenderer):
    """Interactive renderer (canvas-style bilinear scaling)."""

    resample = Image.BILINEAR

    def to_png(self, selection: PortraitSelection, size: int | None = None) -> bytes:
        return encode_png(self.render(selection, size))

    def to_data_url(self, selection: PortraitSelection, size: int | None = None) -> str:
        return to_data_url(self.to_png(selection, size))


class BatchRenderer(PortraitRenderer):
    """Service / bulk renderer (Lanczos scaling)."""

    resample = Image.LANCZOS

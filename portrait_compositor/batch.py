"""
Batch Orchestrator

Renders a list of PortraitSelections and yields one BatchResult per input,
in input order, as soon as each is ready.  Nothing is rendered until the
caller starts iterating, and at most a small window of items is rendered
ahead of the caller, so a consumer that stops early stops the batch.

A failure in one item is reported on that item's BatchResult.error and the
batch carries on.  There are no retries.
"""

from __future__ import annotations

import logging
import random
import string
import time
from collections import deque
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from portrait_compositor.image_processor import FULL_SIZE, THUMBNAIL_SIZE, to_data_url
from portrait_compositor.portrait_store import PortraitConfig
from portrait_compositor.renderers import PortraitRenderer
from portrait_compositor.selection import (
    PortraitSelection,
    SelectionError,
    validate_selection,
    validate_size,
)

logger = logging.getLogger(__name__)

NAME_PREFIX = "RandomPortrait"

_BASE36 = string.digits + string.ascii_lowercase


@dataclass
class BatchResult:
    index: int
    name: str
    config: PortraitSelection
    thumbnail: bytes | None = None          # PNG
    full_size_image: bytes | None = None    # PNG
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error

    def to_dict(self) -> dict:
        """JSON form streamed to clients; images as PNG data URLs."""
        data = {
            "index": self.index,
            "name": self.name,
            "config": self.config.to_dict(),
        }
        if self.ok:
            data["thumbnail"] = to_data_url(self.thumbnail)
            data["fullSizeImage"] = to_data_url(self.full_size_image)
        else:
            data["error"] = self.error
        return data

    def to_portrait(self) -> PortraitConfig:
        if not self.ok:
            raise ValueError(f"Portrait {self.name!r} failed to render: {self.error}")
        return PortraitConfig(
            name=self.name,
            config=self.config,
            thumbnail=to_data_url(self.thumbnail),
            full_size_image=to_data_url(self.full_size_image),
            uploaded=False,
        )


def make_portrait_name(index: int, now: float | None = None,
                       rng: random.Random | None = None) -> str:
    """RandomPortrait_<epoch ms>_<index>_<4 random base36 chars>."""
    ms = int((time.time() if now is None else now) * 1000)
    rng = rng or random
    suffix = "".join(rng.choice(_BASE36) for _ in range(4))
    return f"{NAME_PREFIX}_{ms}_{index}_{suffix}"


def _render_item(
    renderer: PortraitRenderer,
    index: int,
    name: str | None,
    selection: PortraitSelection,
    size: int,
    thumbnail_size: int,
) -> BatchResult:
    name = name or make_portrait_name(index)
    try:
        rendered = renderer.render_encoded(selection, size, thumbnail_size)
    except Exception as exc:
        error_msg = f"{type(exc).__name__}: {exc}"
        logger.warning("Portrait #%d (%s) failed: %s", index, name, error_msg)
        return BatchResult(index=index, name=name, config=selection, error=error_msg)

    return BatchResult(
        index=index,
        name=name,
        config=selection,
        thumbnail=rendered.thumbnail_png,
        full_size_image=rendered.full_png,
    )


def _generate_sequential(renderer, items, size, thumbnail_size) -> Iterator[BatchResult]:
    for index, name, selection in items:
        yield _render_item(renderer, index, name, selection, size, thumbnail_size)


def _generate_threaded(renderer, items, size, thumbnail_size, workers) -> Iterator[BatchResult]:
    # Results are yielded by input index; the window bounds how far rendering
    # can run ahead of the consumer.
    window = workers * 2
    remaining = iter(items)
    executor = ThreadPoolExecutor(max_workers=workers)
    pending = deque()

    def submit_next() -> None:
        item = next(remaining, None)
        if item is not None:
            pending.append(executor.submit(
                _render_item, renderer, *item, size, thumbnail_size))

    try:
        for _ in range(window):
            submit_next()
        while pending:
            result = pending.popleft().result()
            submit_next()
            yield result
    finally:
        executor.shutdown(wait=True, cancel_futures=True)


def generate_batch(
    renderer: PortraitRenderer,
    configs: Sequence[PortraitSelection],
    *,
    names: Sequence[str | None] | None = None,
    size: int | None = None,
    thumbnail_size: int | None = None,
    workers: int = 1,
) -> Iterator[BatchResult]:
    """Validate a batch, then return a lazy iterator over its results.

    Args:
        renderer:       Renderer used for every item.
        configs:        Selections to render, in order.
        names:          Optional caller-chosen names, parallel to configs.
                        Missing/empty names get a generated RandomPortrait_* name.
        size:           Full-size edge in px (None: FULL_SIZE).
        thumbnail_size: Thumbnail edge in px (None: THUMBNAIL_SIZE).
        workers:        Render threads; 1 renders inline in the consumer's thread.

    Raises:
        SelectionError: Empty batch, an invalid selection, or a bad size.
            Raised here, before any rendering starts.
    """
    configs = list(configs)
    if not configs:
        raise SelectionError("Batch contains no portrait configs")
    for i, selection in enumerate(configs):
        if not isinstance(selection, PortraitSelection):
            raise SelectionError(f"Config #{i}: expected PortraitSelection, "
                                 f"got {type(selection).__name__}")
        try:
            validate_selection(selection)
        except SelectionError as exc:
            raise SelectionError(f"Config #{i}: {exc}") from exc

    if names is None:
        names = [None] * len(configs)
    else:
        names = list(names)
        if len(names) != len(configs):
            raise SelectionError(
                f"Got {len(names)} names for {len(configs)} configs")

    fs = validate_size(FULL_SIZE if size is None else size)
    ts = validate_size(THUMBNAIL_SIZE if thumbnail_size is None else thumbnail_size,
                       "thumbnail size")
    if workers < 1:
        raise SelectionError(f"workers must be >= 1, got {workers}")

    items = [(i, names[i], configs[i]) for i in range(len(configs))]
    logger.info("Starting batch of %d portraits (%dpx, thumbnails %dpx, %d worker%s)",
                len(items), fs, ts, workers, "" if workers == 1 else "s")

    if workers == 1:
        return _generate_sequential(renderer, items, fs, ts)
    return _generate_threaded(renderer, items, fs, ts, workers)

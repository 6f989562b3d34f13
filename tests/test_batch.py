"""Tests for the batch orchestrator: ordering, laziness and per-item failures."""

import logging
import random
import re
import threading
import warnings

import pytest

from portrait_compositor.batch import BatchResult, generate_batch, make_portrait_name
from portrait_compositor.part_resolver import UnresolvedPartWarning
from portrait_compositor.renderers import BatchRenderer
from portrait_compositor.selection import PortraitSelection, SelectionError

SIZE = 32
THUMB = 8

NAME_RE = re.compile(r"^RandomPortrait_\d+_\d+_[0-9a-z]{4}$")

CONFIGS = [
    PortraitSelection(hair="hair01", brow="hairbrow01", head="head01", ears="ear01"),
    PortraitSelection(hair="hair02", brow="hairbrow02", facial="facial01",
                      hair_back="hairback01", hair_color="#131313", skin_color="#211610"),
    PortraitSelection(),
]


class CountingRenderer(BatchRenderer):
    """Counts render calls and fails any selection whose hair is 'boom'."""

    def __init__(self, atlas):
        super().__init__(atlas)
        self.calls = 0
        self._lock = threading.Lock()

    def render_encoded(self, selection, size=None, thumbnail_size=None):
        with self._lock:
            self.calls += 1
        if selection.hair == "boom":
            raise RuntimeError("sprite sheet exploded")
        return super().render_encoded(selection, size, thumbnail_size)


def _run(renderer, configs, **kwargs):
    kwargs.setdefault("size", SIZE)
    kwargs.setdefault("thumbnail_size", THUMB)
    return list(generate_batch(renderer, configs, **kwargs))


class TestOrdering:
    def test_one_result_per_config_in_order(self, atlas):
        results = _run(BatchRenderer(atlas), CONFIGS)
        assert [r.index for r in results] == [0, 1, 2]
        assert [r.config for r in results] == CONFIGS
        assert all(r.ok for r in results)
        assert all(NAME_RE.match(r.name) for r in results)
        assert len({r.name for r in results}) == 3

    def test_threaded_matches_sequential(self, atlas):
        renderer = BatchRenderer(atlas)
        configs = CONFIGS * 3
        names = [f"p{i}" for i in range(len(configs))]
        sequential = _run(renderer, configs, names=names)
        threaded = _run(renderer, configs, names=names, workers=3)
        assert [r.index for r in threaded] == list(range(len(configs)))
        assert [r.name for r in threaded] == names
        for a, b in zip(sequential, threaded):
            assert a.full_size_image == b.full_size_image
            assert a.thumbnail == b.thumbnail

    def test_caller_names_kept_and_blanks_generated(self, atlas):
        results = _run(BatchRenderer(atlas), CONFIGS, names=["Alice", None, ""])
        assert results[0].name == "Alice"
        assert NAME_RE.match(results[1].name)
        assert NAME_RE.match(results[2].name)


class TestValidation:
    def test_empty_batch(self, atlas):
        with pytest.raises(SelectionError):
            generate_batch(BatchRenderer(atlas), [])

    def test_invalid_entry_fails_before_rendering(self, atlas):
        renderer = CountingRenderer(atlas)
        bad = CONFIGS + [PortraitSelection(hair_color="#zzzzzz")]
        with pytest.raises(SelectionError, match="Config #3"):
            generate_batch(renderer, bad)
        assert renderer.calls == 0

    def test_not_a_selection(self, atlas):
        with pytest.raises(SelectionError, match="Config #1"):
            generate_batch(BatchRenderer(atlas), [CONFIGS[0], {"hair": "hair01"}])

    def test_names_length_mismatch(self, atlas):
        with pytest.raises(SelectionError):
            generate_batch(BatchRenderer(atlas), CONFIGS, names=["a"])

    @pytest.mark.parametrize("kwargs", [
        {"size": 0}, {"size": -1}, {"thumbnail_size": 0}, {"thumbnail_size": -4},
        {"workers": 0},
    ])
    def test_bad_options(self, atlas, kwargs):
        with pytest.raises(SelectionError):
            generate_batch(BatchRenderer(atlas), CONFIGS, **kwargs)


class TestStreaming:
    @pytest.mark.parametrize("workers", [1, 2])
    def test_nothing_rendered_before_iteration(self, atlas, workers):
        renderer = CountingRenderer(atlas)
        results = generate_batch(renderer, CONFIGS, size=SIZE,
                                 thumbnail_size=THUMB, workers=workers)
        assert renderer.calls == 0
        next(results)
        assert renderer.calls >= 1
        results.close()

    def test_sequential_renders_one_at_a_time(self, atlas):
        renderer = CountingRenderer(atlas)
        results = generate_batch(renderer, CONFIGS * 4, size=SIZE, thumbnail_size=THUMB)
        next(results)
        assert renderer.calls == 1
        next(results)
        assert renderer.calls == 2
        results.close()

    def test_threaded_window_is_bounded(self, atlas):
        renderer = CountingRenderer(atlas)
        results = generate_batch(renderer, CONFIGS * 10, size=SIZE,
                                 thumbnail_size=THUMB, workers=2)
        next(results)
        results.close()
        # Two workers keep at most four items in flight, plus the one
        # submitted when the first result was handed out.
        assert renderer.calls <= 5


class TestFailures:
    def test_unknown_part_logged_for_every_item(self, atlas, caplog):
        caplog.set_level(logging.WARNING, logger="portrait_compositor.compositor")
        configs = [PortraitSelection(hair="hair99")] * 3
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UnresolvedPartWarning)
            results = _run(BatchRenderer(atlas), configs)

        assert all(r.ok for r in results)
        records = [r for r in caplog.records
                   if r.name == "portrait_compositor.compositor" and "hair99" in r.getMessage()]
        assert len(records) == 3

    def test_failure_is_isolated(self, atlas):
        configs = [CONFIGS[0], PortraitSelection(hair="boom"), CONFIGS[1]]
        results = _run(CountingRenderer(atlas), configs)

        assert [r.ok for r in results] == [True, False, True]
        failed = results[1]
        assert failed.error == "RuntimeError: sprite sheet exploded"
        assert failed.thumbnail is None and failed.full_size_image is None
        assert failed.config == configs[1]

    def test_failure_in_threads(self, atlas):
        configs = [PortraitSelection(hair="boom"), CONFIGS[0]] * 3
        results = _run(CountingRenderer(atlas), configs, workers=2)
        assert [r.ok for r in results] == [False, True] * 3


class TestBatchResult:
    def test_to_dict_success(self, atlas):
        result = _run(BatchRenderer(atlas), CONFIGS[:1], names=["Alice"])[0]
        data = result.to_dict()
        assert data["index"] == 0
        assert data["name"] == "Alice"
        assert data["config"] == CONFIGS[0].to_dict()
        assert data["thumbnail"].startswith("data:image/png;base64,")
        assert data["fullSizeImage"].startswith("data:image/png;base64,")
        assert "error" not in data

    def test_to_dict_failure(self):
        data = BatchResult(index=4, name="x", config=PortraitSelection(),
                           error="OSError: nope").to_dict()
        assert data["error"] == "OSError: nope"
        assert "thumbnail" not in data

    def test_to_portrait(self, atlas):
        result = _run(BatchRenderer(atlas), CONFIGS[:1], names=["Alice"])[0]
        portrait = result.to_portrait()
        assert portrait.name == "Alice"
        assert portrait.config == CONFIGS[0]
        assert portrait.editable

    def test_failed_result_has_no_portrait(self):
        result = BatchResult(index=0, name="x", config=PortraitSelection(), error="boom")
        with pytest.raises(ValueError):
            result.to_portrait()


class TestPortraitName:
    def test_format(self):
        name = make_portrait_name(7, now=1700000000.5, rng=random.Random(1))
        assert name.startswith("RandomPortrait_1700000000500_7_")
        assert NAME_RE.match(name)

    def test_seeded_is_reproducible(self):
        a = make_portrait_name(0, now=1.0, rng=random.Random(5))
        b = make_portrait_name(0, now=1.0, rng=random.Random(5))
        assert a == b

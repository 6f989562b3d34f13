"""
Portrait Compositor CLI

Renders team-member portraits from body-part sprite sheets, either a
random batch or the selections listed in a JSON file, and writes:
  - full-size PNGs to {output}/portraits/{name}.png
  - the portrait library to {output}/portraits.json
  - error logs to {output}/failed/{index:03d}_{name}.log
It can also serve the HTTP API instead.

Usage:
    python cli.py [OPTIONS]

Options:
    --assets PATH        Sprite asset root (default: ./assets)
    --output PATH        Output directory (default: ./output)
    --count INT          Number of random portraits (default: 10)
    --configs FILE       JSON array of selections to render instead of random ones
    --size INT           Full-size portrait edge in px (default: 1024)
    --thumb-size INT     Thumbnail edge in px (default: 64)
    --workers INT        Render threads (default: 1)
    --seed INT           Seed for random selections
    --strict             Fail portraits whose part keys do not exist
    --backdrop FILE      Optional backdrop image painted under every portrait
    --json-progress      Emit JSON lines to stdout for GUI progress
    --verbose            Per-portrait progress output
    --serve              Run the HTTP API instead of a batch
    --host / --port      Bind address for --serve (default: 127.0.0.1:8000)
"""

import argparse
import json
import logging
import os
import random
import sys
import time

from portrait_compositor.batch import generate_batch
from portrait_compositor.portrait_store import PortraitLibrary
from portrait_compositor.randomizer import random_selections
from portrait_compositor.renderers import BatchRenderer
from portrait_compositor.selection import PortraitSelection, SelectionError
from portrait_compositor.sprite_atlas import MissingAssetError, SpriteAtlas, load_backdrop

logger = logging.getLogger(__name__)


def _emit_json(data: dict) -> None:
    """Write a single JSON line to stdout for GUI progress tracking."""
    sys.stdout.write(json.dumps(data, separators=(",", ":")) + "\n")
    sys.stdout.flush()


def _load_configs(path: str) -> tuple[list[PortraitSelection], list[str | None]]:
    """Read a JSON array of selections; each may carry an optional "name"."""
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, list):
        raise SelectionError(f"{path}: expected a JSON array of portrait configs")
    configs = [PortraitSelection.from_dict(raw) for raw in payload]
    names = [str(raw["name"]) if raw.get("name") else None for raw in payload]
    return configs, names


def _safe_filename(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name)


def run_batch(args: argparse.Namespace, renderer: BatchRenderer) -> int:
    """Render the batch described by args; returns the number of failures."""
    t_start = time.perf_counter()

    if args.configs:
        configs, names = _load_configs(args.configs)
    else:
        rng = random.Random(args.seed)
        configs = random_selections(renderer.atlas, args.count, rng)
        names = None

    portraits_dir = os.path.join(args.output, "portraits")
    failed_dir = os.path.join(args.output, "failed")
    os.makedirs(portraits_dir, exist_ok=True)

    library_path = os.path.join(args.output, "portraits.json")
    library = PortraitLibrary.load(library_path)

    results = generate_batch(
        renderer, configs,
        names=names,
        size=args.size or None,
        thumbnail_size=args.thumb_size or None,
        workers=args.workers,
    )

    total = len(configs)
    processed = 0
    failed = 0

    if args.json_progress:
        _emit_json({"type": "start", "total": total})
    else:
        print(f"Rendering {total} portraits with {args.workers} worker(s)...")

    for result in results:
        current = result.index + 1
        if result.ok:
            processed += 1
            library.add_or_update(result.to_portrait())
            with open(os.path.join(portraits_dir, _safe_filename(result.name) + ".png"), "wb") as f:
                f.write(result.full_size_image)

            if args.json_progress:
                _emit_json({"type": "progress", "current": current, "total": total,
                            "name": result.name, "status": "ok"})
            elif args.verbose:
                elapsed = time.perf_counter() - t_start
                rate = processed / elapsed if elapsed > 0 else 0
                print(f"  [{current}/{total}] OK: {result.name} [{rate:.1f} img/s]")
            continue

        failed += 1
        library.add_failure(result.name, result.error)
        if args.json_progress:
            _emit_json({"type": "progress", "current": current, "total": total,
                        "name": result.name, "status": "failed", "error": result.error})
        elif args.verbose:
            print(f"  [{current}/{total}] FAIL: {result.name} -- {result.error}")

        try:
            os.makedirs(failed_dir, exist_ok=True)
            log_path = os.path.join(
                failed_dir, f"{result.index:03d}_{_safe_filename(result.name)}.log")
            with open(log_path, "w", encoding="utf-8") as f:
                f.write(f"Name:   {result.name}\n")
                f.write(f"Config: {json.dumps(result.config.to_dict())}\n")
                f.write(f"Error:  {result.error}\n")
        except OSError as log_err:
            logger.warning("Failed to write error log: %s", log_err)

    library.write(library_path)

    elapsed = time.perf_counter() - t_start
    if args.json_progress:
        _emit_json({"type": "done", "processed": processed, "failed": failed,
                    "elapsed": round(elapsed, 1)})
    else:
        rate = processed / elapsed if elapsed > 0 and processed > 0 else 0
        print(f"\nLibrary written to {library_path}")
        print(f"\n=== RENDERING COMPLETE ===")
        print(f"  Total rendered:   {processed}")
        print(f"  Total failed:     {failed}")
        print(f"  Library entries:  {len(library)}")
        print(f"  Elapsed time:     {elapsed:.1f}s")
        print(f"  Avg throughput:   {rate:.1f} images/sec")
    return failed


def serve(args: argparse.Namespace, renderer: BatchRenderer) -> None:
    import uvicorn

    from portrait_compositor.service import create_app

    app = create_app(
        renderer,
        output_size=args.size or None,
        thumbnail_size=args.thumb_size or None,
        workers=args.workers,
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Composite team-member portraits from body-part sprite sheets.",
    )
    parser.add_argument(
        "--assets", default="./assets",
        help="Sprite asset root directory (default: ./assets)",
    )
    parser.add_argument(
        "--output", default="./output",
        help="Output directory (default: ./output)",
    )
    parser.add_argument(
        "--count", type=int, default=10,
        help="Number of random portraits to render (default: 10)",
    )
    parser.add_argument(
        "--configs",
        help="JSON file with an array of portrait selections to render",
    )
    parser.add_argument(
        "--size", type=int, default=0,
        help="Full-size portrait edge in px (default: 0 = 1024)",
    )
    parser.add_argument(
        "--thumb-size", type=int, default=0,
        help="Thumbnail edge in px (default: 0 = 64)",
    )
    parser.add_argument(
        "--workers", type=int, default=1,
        help="Number of render threads (default: 1)",
    )
    parser.add_argument(
        "--seed", type=int,
        help="Seed for random selections (default: unseeded)",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Fail portraits whose part keys are not in the manifests",
    )
    parser.add_argument(
        "--backdrop",
        help="Backdrop image composited under every portrait",
    )
    parser.add_argument(
        "--json-progress", action="store_true",
        help="Emit JSON lines to stdout for GUI progress tracking",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Print per-portrait progress",
    )
    parser.add_argument(
        "--serve", action="store_true",
        help="Serve the HTTP API instead of rendering a batch",
    )
    parser.add_argument(
        "--host", default="127.0.0.1",
        help="Bind host for --serve (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", type=int, default=8000,
        help="Bind port for --serve (default: 8000)",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: WARNING)",
    )
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s [%(name)s] %(message)s",
    )
    logging.captureWarnings(True)

    try:
        atlas = SpriteAtlas(args.assets)
        backdrop = load_backdrop(args.backdrop) if args.backdrop else None
    except MissingAssetError as exc:
        print(f"FAILED: {exc}")
        sys.exit(2)

    renderer = BatchRenderer(atlas, strict=args.strict, backdrop=backdrop)

    if args.serve:
        serve(args, renderer)
        return

    try:
        failed = run_batch(args, renderer)
    except (SelectionError, ValueError, OSError) as exc:
        print(f"FAILED: {type(exc).__name__}: {exc}")
        sys.exit(2)

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()

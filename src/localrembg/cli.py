from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Dict, List

from .app import RemoverApp
from .cache import AssetCacheManager
from .config import DEFAULT_CACHE_VERSION, DEVICE_CHOICES, CacheConfig, RemoverConfig
from .editor import StrokeAction, StrokeCommand
from .export import DirectoryDownloader
from .ingest import UploadedFile
from .lifecycle import ModelState, get_model_lifecycle


def _add_cache_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=Path("~/.cache/localrembg").expanduser(),
        help="Directory holding the offline asset cache.",
    )
    parser.add_argument(
        "--cache-version",
        dest="cache_version",
        default=DEFAULT_CACHE_VERSION,
        help="Cache version tag. Activating a new tag deletes every other version.",
    )


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Offline background remover with interactive mask correction.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    remove = commands.add_parser("remove", help="Remove the background from images.")
    remove.add_argument(
        "inputs",
        nargs="+",
        type=Path,
        help="Images to process (JPG, PNG, HEIC, HEIF).",
    )
    remove.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory where the transparent PNGs are written.",
    )
    remove.add_argument(
        "--strokes",
        type=Path,
        default=None,
        help=(
            "Optional JSON file of brush strokes keyed by file name, e.g. "
            '{"photo.jpg": [{"action": "erase", "x": 10, "y": 20, "radius": 10}]}.'
        ),
    )
    remove.add_argument(
        "--device",
        default="auto",
        choices=list(DEVICE_CHOICES),
        help="Inference device. 'auto' uses CUDA when onnxruntime reports it.",
    )
    remove.add_argument(
        "--mask-threshold",
        type=float,
        default=None,
        help="Optional threshold [0,1] below which mask values count as background.",
    )
    remove.add_argument(
        "--json",
        dest="json_report",
        type=Path,
        default=None,
        help="Optional path to write a JSON report of processed and failed images.",
    )
    _add_cache_arguments(remove)

    cache = commands.add_parser("cache", help="Manage the offline asset cache.")
    cache.add_argument("action", choices=["populate", "activate", "status"])
    _add_cache_arguments(cache)

    return parser.parse_args(argv)


def _load_strokes(path: Path, default_radius: float) -> Dict[str, List[dict]]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    strokes: Dict[str, List[dict]] = {}
    for name, items in data.items():
        strokes[name] = [
            {
                "action": StrokeAction(item["action"]),
                "x": float(item["x"]),
                "y": float(item["y"]),
                "radius": float(item.get("radius", default_radius)),
            }
            for item in items
        ]
    return strokes


def run_cache(args: argparse.Namespace) -> None:
    manager = AssetCacheManager(
        CacheConfig(cache_dir=args.cache_dir.expanduser(), version=args.cache_version)
    )
    if args.action == "populate":
        missing = manager.populate()
        stored = len(manager.required_assets()) - len(missing)
        print(f"[+] Cached {stored} assets under {manager.version}")
        for key in missing:
            print(f"    Missing: {key}")
    elif args.action == "activate":
        manager.activate(args.cache_version)
        print(f"[+] Activated cache version {manager.version}")
    else:
        entries = manager.entries()
        print(f"[+] {len(entries)} cached entries")
        for entry in entries:
            print(f"    [{entry.version}] {entry.key}")


def run_remove(args: argparse.Namespace) -> None:
    missing_inputs = [path for path in args.inputs if not path.exists()]
    if missing_inputs:
        raise SystemExit(f"Input file {missing_inputs[0]} does not exist.")

    config = RemoverConfig(
        cache=CacheConfig(cache_dir=args.cache_dir.expanduser(), version=args.cache_version),
        device=args.device,
        mask_threshold=args.mask_threshold,
    )
    assets = AssetCacheManager(config.cache)
    app = RemoverApp(get_model_lifecycle(config, assets), config)

    print("[+] Loading segmentation model")
    if app.start() is ModelState.FAILED:
        raise SystemExit(app.error)

    if not app.upload(UploadedFile.from_path(path) for path in args.inputs):
        raise SystemExit(app.error)

    result = app.remove_background()
    if result is None:
        raise SystemExit(app.error)
    print(f"    Processed {len(result.artifacts)} images | {len(result.errors)} failed")
    for name, reason in result.errors.items():
        print(f"    Error processing {name}: {reason}")

    if args.strokes is not None:
        strokes = _load_strokes(args.strokes, config.brush_radius)
        for artifact in app.results:
            for stroke in strokes.get(artifact.source_name, []):
                if app.apply_stroke(StrokeCommand(artifact_id=artifact.id, **stroke)) is None:
                    raise SystemExit(app.error)

    downloader = DirectoryDownloader(args.output_dir.expanduser())
    app.download_all(downloader)
    print(f"[+] Wrote {len(downloader.saved)} images to {downloader.output_dir}")

    if args.json_report:
        args.json_report.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "processed": [artifact.source_name for artifact in app.results],
            "errors": result.errors,
            "device": app.model.device,
        }
        with args.json_report.open("w", encoding="utf-8") as handle:
            json.dump(report, handle, indent=2)
        print(f"[+] Wrote report to {args.json_report}")


def run(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "cache":
        run_cache(args)
    else:
        run_remove(args)


if __name__ == "__main__":
    run()

"""raytra — CLI entry point.

Parses a raytra scene file, builds the BVH, renders, and writes the image.

Usage
-----
    python main.py --scene scenes/spheres.scn --output out/spheres.png
    python main.py -s scenes/glass.scn -o out/glass.png -a 16 -d 9 --workers 4
    python main.py -s scenes/bunny.scn -o out/bunny.exr --preview
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).resolve().parent / "config" / "default_config.yaml"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging."""
    fmt = "%(name)s [%(levelname)s] %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        stream=sys.stdout,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="raytra",
        description="raytra — recursive ray tracer for raytra scene files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python main.py -s scene.scn -o render.png\n"
            "  python main.py -s scene.scn -o render.png -a 16 -d 9\n"
            "  python main.py -s scene.scn -o render.exr --workers 8\n"
        ),
    )
    parser.add_argument(
        "-s", "--scene",
        type=str,
        required=True,
        help="Input scene file",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        required=True,
        help="Output image (.png/.jpg: gamma corrected 8-bit, .exr/.npy: float32 HDR)",
    )
    parser.add_argument(
        "-a", "--samples-per-pixel",
        type=int,
        default=None,
        help="Camera rays per pixel (default: from config)",
    )
    parser.add_argument(
        "-d", "--shadow-samples",
        type=int,
        default=None,
        help="Samples per area light (default: from config)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum reflection / refraction depth (default: from config)",
    )
    parser.add_argument(
        "--gamma",
        type=float,
        default=None,
        help="Display gamma for 8-bit output (default: from config)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel render workers, 1 = serial (default: from config)",
    )
    parser.add_argument(
        "--executor",
        type=str,
        default=None,
        choices=["process", "thread"],
        help="Worker pool type (default: from config)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Base random seed (default: from config)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"Path to render config YAML (default: {_DEFAULT_CONFIG.name} if present)",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        default=False,
        help="Also write a matplotlib preview figure next to the image",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return parser.parse_args(argv)


def _apply_overrides(config, args: argparse.Namespace):
    """Return ``config`` with command-line overrides applied."""
    from render_engine.constants import validate_config

    rt = config.raytracer
    if args.max_depth is not None:
        rt = dataclasses.replace(rt, max_ray_depth=args.max_depth)

    smp = config.sampling
    if args.samples_per_pixel is not None:
        smp = dataclasses.replace(smp, samples_per_pixel=args.samples_per_pixel)
    if args.shadow_samples is not None:
        smp = dataclasses.replace(smp, shadow_samples=args.shadow_samples)
    if args.seed is not None:
        smp = dataclasses.replace(smp, seed=args.seed)

    par = config.parallel
    if args.workers is not None:
        par = dataclasses.replace(par, workers=args.workers)
    if args.executor is not None:
        par = dataclasses.replace(par, executor=args.executor)

    out = config.output
    if args.gamma is not None:
        out = dataclasses.replace(out, gamma=args.gamma)
    if args.preview:
        out = dataclasses.replace(out, preview=True)

    config = dataclasses.replace(config, raytracer=rt, sampling=smp, parallel=par, output=out)
    validate_config(config)
    return config


def main(argv: list[str] | None = None) -> int:
    """Main render entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger = logging.getLogger("raytra")
    logger.info("=" * 60)
    logger.info("  raytra — Recursive Ray Tracer")
    logger.info("=" * 60)

    from render_engine.constants import default_config, load_config, log_platform_info
    from render_engine.raytracer import RayTracer
    from scene_io.image_io import save_render, write_image
    from scene_io.raytra_parser import parse_scene

    # Load configuration
    try:
        if args.config is not None:
            config = load_config(args.config)
        elif _DEFAULT_CONFIG.exists():
            config = load_config(_DEFAULT_CONFIG)
        else:
            config = default_config()
        config = _apply_overrides(config, args)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    log_platform_info()

    # Parse scene and build acceleration structure
    try:
        scene_desc = parse_scene(args.scene, shadow_samples=config.sampling.shadow_samples)
        width, height = scene_desc.image_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Scene requests an invalid image size {width} x {height}")
        root = scene_desc.build_bvh()
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to parse scene file: %s", exc)
        return 1

    # Render
    tracer = RayTracer(image_height=height, config=config)
    image = tracer.render(root, scene_desc.lights, scene_desc.camera)

    # Save
    output_path = Path(args.output)
    gamma = config.output.gamma
    try:
        if config.output.save_metadata:
            metadata = tracer.metadata()
            metadata.update(
                scene=str(Path(args.scene).resolve()),
                surfaces=len(scene_desc.surfaces),
                lights=len(scene_desc.lights),
                arena_nodes=scene_desc.arena.count_by_kind(),
            )
            saved = save_render(output_path, image, gamma, metadata)
        else:
            saved = [write_image(output_path, image, gamma)]
    except (OSError, ValueError) as exc:
        logger.error("Failed to write image: %s", exc)
        return 1

    if config.output.preview:
        from visualization.plotter import plot_render_preview

        preview_path = output_path.with_name(f"{output_path.stem}_preview.png")
        plot_render_preview(image, preview_path, gamma=gamma, title=Path(args.scene).name)
        saved.append(preview_path)

    # Summary
    logger.info("=" * 60)
    logger.info("  RENDER COMPLETE")
    logger.info("=" * 60)
    logger.info("  Image: %d x %d", image.shape[1], image.shape[0])
    logger.info("  Wall time: %.1f s", tracer.render_time_s)
    logger.info("  Output files (%d):", len(saved))
    for p in saved:
        logger.info("    → %s", p)
    logger.info("=" * 60)

    return 0


def cli() -> None:
    """Console-script wrapper."""
    sys.exit(main())


if __name__ == "__main__":
    sys.exit(main())

"""Command-line renderer.

Usage:
    render <scene-file> <output-file> [width] [height] [aperture] [focus-distance]

Options:
    --samples N         Jittered camera rays per pixel (default: 16)
    --seed N            Seed of the random streams (default: time based)
    --arch ARCH         Taichi backend: cpu, gpu or cuda (default: cpu)
    --binary            Write binary (P6) PPM instead of ASCII (P3)
    --preview           Show the finished image in a Matplotlib window
    --log-level LEVEL   DEBUG, INFO, WARNING or ERROR (default: INFO)
    --log-file PATH     Also write the log to PATH

The output format follows the extension: ``.ppm``/``.pnm`` are written as
portable pixmaps, anything else through Pillow.

Example:
    render examples/scenes/csg_showcase.in out.ppm 640 480 0.1 6 --samples 32
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from src.csgtrace.config import (
    DEFAULT_APERTURE,
    DEFAULT_FOCUS_DISTANCE,
    DEFAULT_HEIGHT,
    DEFAULT_SAMPLES,
    DEFAULT_WIDTH,
    RenderSettings,
    init_taichi,
)
from src.csgtrace.logging_config import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser of the ``render`` command."""
    parser = argparse.ArgumentParser(
        prog="render",
        description="Render a CSG scene file to an image.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("scene", help="Input scene file")
    parser.add_argument("output", help="Output image file (.ppm, .png, ...)")
    parser.add_argument(
        "width", nargs="?", default=str(DEFAULT_WIDTH), help=f"Image width (default: {DEFAULT_WIDTH})"
    )
    parser.add_argument(
        "height",
        nargs="?",
        default=str(DEFAULT_HEIGHT),
        help=f"Image height (default: {DEFAULT_HEIGHT})",
    )
    parser.add_argument(
        "aperture",
        nargs="?",
        default=str(DEFAULT_APERTURE),
        help=f"Lens radius, 0 disables depth of field (default: {DEFAULT_APERTURE})",
    )
    parser.add_argument(
        "focus_distance",
        nargs="?",
        default=str(DEFAULT_FOCUS_DISTANCE),
        metavar="focus-distance",
        help=f"Distance of the plane in focus (default: {DEFAULT_FOCUS_DISTANCE})",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=DEFAULT_SAMPLES,
        help=f"Samples per pixel (default: {DEFAULT_SAMPLES})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: time based)")
    parser.add_argument(
        "--arch", choices=("cpu", "gpu", "cuda"), default="cpu", help="Taichi backend (default: cpu)"
    )
    parser.add_argument("--binary", action="store_true", help="Write binary (P6) PPM")
    parser.add_argument("--preview", action="store_true", help="Show the result with Matplotlib")
    parser.add_argument(
        "--log-level", choices=LOG_LEVELS, default="INFO", help="Logging level (default: INFO)"
    )
    parser.add_argument("--log-file", default=None, help="Also write the log to this file")
    return parser


def _parse_number(text: str, kind: type, name: str) -> int | float:
    try:
        return kind(text)
    except ValueError:
        raise ValueError(f"Invalid {name}: {text!r}") from None


def settings_from_args(args: argparse.Namespace) -> RenderSettings:
    """Convert and validate the numeric arguments.

    Raises:
        ValueError: If a value does not parse or is out of range.
    """
    settings = RenderSettings(
        width=_parse_number(args.width, int, "width"),
        height=_parse_number(args.height, int, "height"),
        samples=args.samples,
        aperture=_parse_number(args.aperture, float, "aperture"),
        focus_distance=_parse_number(args.focus_distance, float, "focus distance"),
        seed=args.seed,
        arch=args.arch,
    )
    settings.validate()
    return settings


def render_scene(
    scene_path: str | Path,
    output_path: str | Path,
    settings: RenderSettings,
    *,
    binary: bool = False,
    preview: bool = False,
) -> Path:
    """Load, render and save one scene. Taichi must already be initialised.

    Raises:
        FileNotFoundError: If the scene file does not exist.
        OSError: If a file cannot be read or written.
        ValueError: If the scene is malformed (SceneFormatError) or invalid.
        RuntimeError: If a scene table overflows.
    """
    # Lazy imports: these modules declare Taichi fields
    from src.csgtrace.core.progressive import ProgressiveRenderer
    from src.csgtrace.scene.loader import load_scene

    scene = load_scene(scene_path)
    scene.apply_camera(settings.aspect_ratio, settings.aperture, settings.focus_distance)

    renderer = ProgressiveRenderer(settings.width, settings.height, seed=settings.seed)
    logger.info(
        "Rendering %dx%d, %d samples per pixel, aperture %g, focus distance %g (seed %d)",
        settings.width,
        settings.height,
        settings.samples,
        settings.aperture,
        settings.focus_distance,
        renderer.seed,
    )

    start = time.perf_counter()

    def progress(current: int, target: int) -> None:
        logger.info(
            "Progress: %d/%d samples (%.0f%%), %.1fs",
            current,
            target,
            100.0 * current / target,
            time.perf_counter() - start,
        )

    renderer.render(
        num_samples=settings.samples,
        batch_size=max(1, settings.samples // 4),
        callback=progress,
    )

    output = Path(output_path)
    renderer.save_image(str(output), binary=binary)

    if preview:
        from src.csgtrace.preview.display import show_preview

        show_preview(renderer)
    return output


def main(argv: list[str] | None = None) -> int:
    """Entry point of the ``render`` command. Returns the exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    try:
        settings = settings_from_args(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    init_taichi(settings.arch, seed=settings.seed)

    try:
        render_scene(
            args.scene,
            args.output,
            settings,
            binary=args.binary,
            preview=args.preview,
        )
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc.filename or args.scene)
        return 1
    except (OSError, ValueError, RuntimeError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

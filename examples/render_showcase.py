#!/usr/bin/env python3
"""Render the CSG showcase scene with and without depth of field.

The scene is rendered twice: once through a pinhole and once through a thin
lens focused on the glass sphere. Both images are saved and, unless --no-show
is given, displayed side by side with their difference.

Usage:
    python -m examples.render_showcase [options]

Example:
    python -m examples.render_showcase --width 320 --height 240 --samples 32
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from src.csgtrace.config import RenderSettings, init_taichi  # noqa: E402
from src.csgtrace.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger("src.csgtrace.examples.render_showcase")

SCENE_PATH = Path(__file__).parent / "scenes" / "csg_showcase.in"

# Distance from the eye (0, 2, 8) to the glass sphere at (0, -0.7, 2)
GLASS_FOCUS_DISTANCE = 6.58


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Render the CSG showcase scene.")
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=300, help="Image height in pixels (default: 300)")
    parser.add_argument("--samples", type=int, default=32, help="Samples per pixel (default: 32)")
    parser.add_argument("--aperture", type=float, default=0.25, help="Lens radius of the DOF render (default: 0.25)")
    parser.add_argument("--output-dir", type=str, default=".", help="Directory for the images (default: .)")
    parser.add_argument("--seed", type=int, default=7, help="Random seed (default: 7)")
    parser.add_argument("--no-show", action="store_true", help="Do not open the comparison window")
    return parser.parse_args()


def render_showcase(settings: RenderSettings, output_dir: Path, show: bool = True) -> tuple[Path, Path]:
    """Render the pinhole and thin-lens images and save them as PNG.

    Returns:
        Paths of the pinhole and the depth-of-field image.
    """
    # Lazy imports: these modules declare Taichi fields
    from src.csgtrace.core.progressive import ProgressiveRenderer
    from src.csgtrace.scene.loader import load_scene

    scene = load_scene(SCENE_PATH)
    renderer = ProgressiveRenderer(settings.width, settings.height, seed=settings.seed)
    output_dir.mkdir(parents=True, exist_ok=True)

    images = []
    paths = []
    for name, aperture in (("pinhole", 0.0), ("thin_lens", settings.aperture)):
        scene.apply_camera(settings.aspect_ratio, aperture, settings.focus_distance)
        renderer.reset()
        renderer.render(num_samples=settings.samples, batch_size=max(1, settings.samples // 4))

        path = output_dir / f"showcase_{name}.png"
        renderer.save_image(str(path))
        images.append(renderer.get_image_numpy())
        paths.append(path)

    if show:
        from src.csgtrace.preview.display import show_comparison

        rmse = show_comparison(images[0], images[1], labels=("Pinhole", f"Aperture {settings.aperture}"))
        logger.info("RMSE between renders: %.6f", rmse)

    return paths[0], paths[1]


def main() -> int:
    """Main entry point."""
    args = parse_args()
    setup_logging()

    settings = RenderSettings(
        width=args.width,
        height=args.height,
        samples=args.samples,
        aperture=args.aperture,
        focus_distance=GLASS_FOCUS_DISTANCE,
        seed=args.seed,
    )
    try:
        settings.validate()
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    init_taichi(settings.arch, seed=settings.seed)
    render_showcase(settings, Path(args.output_dir), show=not args.no_show)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Render configuration and Taichi runtime setup.

This module is the single place that knows the render-target limits and how
the Taichi runtime has to be initialised for the renderer. Nothing here
declares Taichi fields, so it is importable before ``ti.init()``.

Example:
    >>> from src.csgtrace.config import RenderSettings, init_taichi
    >>> settings = RenderSettings(width=320, height=240, samples=4)
    >>> settings.validate()
    >>> init_taichi(settings.arch, seed=settings.seed)
"""

import logging
from dataclasses import dataclass
from typing import Literal

import taichi as ti

logger = logging.getLogger(__name__)

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 600
DEFAULT_SAMPLES = 16
DEFAULT_APERTURE = 0.0
DEFAULT_FOCUS_DISTANCE = 10.0

ArchName = Literal["cpu", "gpu", "cuda"]


@dataclass
class RenderSettings:
    """Parameters of one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples: Jittered camera rays averaged per pixel.
        aperture: Lens radius for depth of field (0 disables it).
        focus_distance: Distance of the plane in perfect focus.
        seed: Seed of the random streams. None picks a time-based seed.
        arch: Taichi backend to request.
    """

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    samples: int = DEFAULT_SAMPLES
    aperture: float = DEFAULT_APERTURE
    focus_distance: float = DEFAULT_FOCUS_DISTANCE
    seed: int | None = None
    arch: ArchName = "cpu"

    @property
    def aspect_ratio(self) -> float:
        """Width divided by height."""
        return self.width / self.height

    def validate(self) -> None:
        """Check every field before any rendering work starts.

        Raises:
            ValueError: If a dimension or sample count is not positive, the
                aperture is negative, the focus distance is not positive,
                or the image exceeds the render-target maximum.
        """
        if self.width <= 0:
            raise ValueError(f"Invalid width: {self.width} (must be positive)")
        if self.height <= 0:
            raise ValueError(f"Invalid height: {self.height} (must be positive)")
        if self.samples <= 0:
            raise ValueError(f"Invalid sample count: {self.samples} (must be positive)")
        if self.aperture < 0.0:
            raise ValueError(f"Invalid aperture: {self.aperture} (must be non-negative)")
        if self.focus_distance <= 0.0:
            raise ValueError(
                f"Invalid focus distance: {self.focus_distance} (must be positive)"
            )
        if self.width > MAX_IMAGE_WIDTH or self.height > MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions ({self.width}x{self.height}) exceed maximum supported "
                f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
            )


def init_taichi(arch: ArchName = "cpu", seed: int | None = None) -> None:
    """Initialise the Taichi runtime for 64-bit geometry.

    Must run before any module declaring Taichi fields is imported.

    Args:
        arch: "cpu", "cuda" or "gpu". A GPU request falls back to the CPU
            backend when no usable device is found.
        seed: Seed for Taichi's own generator (the renderer itself uses the
            per-pixel streams of core.sampler).
    """
    kwargs = {"default_fp": ti.f64}
    if seed is not None:
        kwargs["random_seed"] = seed

    if arch == "cpu":
        ti.init(arch=ti.cpu, **kwargs)
        logger.info("Using CPU backend")
        return

    requested = ti.cuda if arch == "cuda" else ti.gpu
    try:
        ti.init(arch=requested, **kwargs)
        logger.info("Using %s backend", arch.upper())
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not initialise %s backend (%s), using CPU", arch, exc)
        ti.init(arch=ti.cpu, **kwargs)

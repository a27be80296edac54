"""Supersampled rendering in batches.

A ``ProgressiveRenderer`` owns the image size and the random seed; the running
color sums live in the integrator's Taichi fields. Samples can be added in any
number of calls, and each call reports after every batch, either through a
callback or as a generator.

Example:
    >>> from src.csgtrace.core.progressive import ProgressiveRenderer
    >>> renderer = ProgressiveRenderer(320, 240, seed=7)
    >>> renderer.render(16, batch_size=4)
    >>> pixels = renderer.get_image_uint8()
"""

import logging
import time
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from src.csgtrace.core.integrator import (
    clear_render_target,
    get_image_uint8,
    get_normalized_image_numpy,
    get_rays_traced,
    get_total_samples,
    render_image,
    setup_render_target,
)
from src.csgtrace.core.sampler import seed_streams

logger = logging.getLogger(__name__)

# (samples per pixel so far, samples per pixel when the call finishes)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Accumulates jittered camera samples into the shared render target.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        seed: Seed of the random streams.
        sample_count: Samples per pixel accumulated since the last reset.
        rays_traced: Rays traced since the last reset.
    """

    def __init__(self, width: int, height: int, seed: int | None = None) -> None:
        """
        Args:
            width: Image width in pixels, at most config.MAX_IMAGE_WIDTH.
            height: Image height in pixels, at most config.MAX_IMAGE_HEIGHT.
            seed: Seed for the per-pixel random streams. None derives one
                from the clock, so repeated renders differ.

        Raises:
            ValueError: If a dimension is not positive or too large.
        """
        self._seed = seed if seed is not None else time.time_ns() & 0xFFFFFFFF
        self._size = (width, height)
        self._restart(resize=True)

    def _restart(self, resize: bool = False) -> None:
        if resize:
            setup_render_target(*self._size)
        else:
            clear_render_target()
        seed_streams(self._seed)

    @property
    def width(self) -> int:
        return self._size[0]

    @property
    def height(self) -> int:
        return self._size[1]

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def sample_count(self) -> int:
        return get_total_samples()

    @property
    def rays_traced(self) -> int:
        return get_rays_traced()

    def reset(self) -> None:
        """Drop all samples and reseed, so the next render repeats the last one."""
        self._restart()

    def resize(self, width: int, height: int) -> None:
        """Switch to a new image size. Accumulated samples are dropped.

        Raises:
            ValueError: If a dimension is not positive or too large.
        """
        self._size = (width, height)
        self._restart(resize=True)

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add ``num_samples`` samples per pixel.

        Args:
            num_samples: Samples per pixel to add. Nothing happens if <= 0.
            batch_size: Samples per pixel between two progress reports.
            callback: Called after each batch with (done, target).
        """
        for _ in self.render_progressive(num_samples, batch_size, callback):
            pass

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> Generator[tuple[int, int], None, None]:
        """Generator form of :meth:`render`, yielding (done, target) per batch."""
        if num_samples <= 0:
            return
        step = max(1, batch_size)
        target = self.sample_count + num_samples
        started = time.perf_counter()

        for offset in range(0, num_samples, step):
            render_image(min(step, num_samples - offset))
            done = self.sample_count
            logger.debug("Accumulated %d/%d samples per pixel", done, target)
            if callback is not None:
                callback(done, target)
            yield done, target

        logger.info(
            "Rendered %dx%d with %d samples per pixel in %.2fs (%d rays)",
            self.width,
            self.height,
            num_samples,
            time.perf_counter() - started,
            self.rays_traced,
        )

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Averaged colors as (height, width, 3) floats in [0, 1], top row first."""
        return get_normalized_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """Averaged colors as (height, width, 3) bytes, round(c * 255)."""
        return get_image_uint8()

    def save_image(self, filepath: str, binary: bool = False) -> None:
        """Write the image; ``.ppm`` gives PPM, other extensions go to Pillow.

        Args:
            filepath: Destination path.
            binary: For PPM output, write P6 instead of P3.
        """
        from src.csgtrace.preview.export import save_image

        save_image(self.get_image_uint8(), filepath, binary=binary)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count}, seed={self.seed})"
        )

"""Image export utilities for rendered images.

Rendered images are (height, width, 3) arrays, top row first. Colors are
linear and clamped to [0, 1]; a byte is round(c * 255).

Supported formats:
    - PPM, ASCII (P3, one image row per line) or binary (P6)
    - Anything else Pillow writes (PNG, BMP, ...), chosen by extension

Example:
    >>> from src.csgtrace.preview.export import save_image
    >>> from src.csgtrace.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(320, 240)
    >>> renderer.render(16)
    >>> save_image(renderer.get_image_uint8(), "output.ppm")
"""

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

PPM_EXTENSIONS = (".ppm", ".pnm")


def image_to_uint8(image: npt.NDArray[np.floating]) -> npt.NDArray[np.uint8]:
    """Convert a float image in [0, 1] to bytes.

    Values are clamped to [0, 1] and rounded, so every channel lands in
    [0, 255]. NaN maps to 0.

    Args:
        image: Image array of shape (H, W, 3).

    Returns:
        8-bit image array of shape (H, W, 3).
    """
    clamped = np.clip(np.nan_to_num(image.astype(np.float64), nan=0.0), 0.0, 1.0)
    return np.rint(clamped * 255.0).astype(np.uint8)


def _as_uint8(image: npt.NDArray) -> npt.NDArray[np.uint8]:
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Image must have shape (H, W, 3), got {image.shape}")
    if image.dtype == np.uint8:
        return image
    return image_to_uint8(image)


def save_ppm(image: npt.NDArray, filepath: str | Path, binary: bool = False) -> None:
    """Save an image as a portable pixmap with maxval 255.

    Args:
        image: (H, W, 3) uint8 array, or floats in [0, 1].
        filepath: Output file path.
        binary: Write P6 instead of the ASCII P3 format.

    Raises:
        OSError: If the file cannot be written.
        ValueError: If the image has the wrong shape.
    """
    pixels = _as_uint8(image)
    if binary:
        PILImage.fromarray(pixels).save(filepath, format="PPM")
        return

    height, width = pixels.shape[0], pixels.shape[1]
    with open(filepath, "w", encoding="ascii") as f:
        f.write(f"P3\n{width} {height}\n255\n")
        for row in pixels:
            f.write(" ".join(str(int(v)) for v in row.reshape(-1)))
            f.write("\n")


def save_image(image: npt.NDArray, filepath: str | Path, binary: bool = False) -> None:
    """Save an image, picking the format from the file extension.

    ``.ppm`` and ``.pnm`` are written by save_ppm(); every other extension
    is handed to Pillow.

    Args:
        image: (H, W, 3) uint8 array, or floats in [0, 1].
        filepath: Output file path.
        binary: For PPM output, write P6 instead of P3.

    Raises:
        OSError: If the file cannot be written.
        ValueError: If the image has the wrong shape or Pillow does not
            know the extension.
    """
    path = Path(filepath)
    if path.suffix.lower() in PPM_EXTENSIONS:
        save_ppm(image, path, binary=binary)
    else:
        PILImage.fromarray(_as_uint8(image)).save(path)
    logger.info("Wrote %s", path)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))

"""Texture image loading for texture-mapped pigments.

Textures are portable pixmaps, ASCII (``P3``) or binary (``P6``). The magic
number is checked first, then Pillow decodes the image. A texture that
cannot be used is not fatal: the failure is logged as a warning and the
pigment falls back to its solid color.
"""

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

SUPPORTED_MAGIC = (b"P3", b"P6")


def load_texture(path: str | Path) -> npt.NDArray[np.float32] | None:
    """Load a PPM texture as an array of normalized colors.

    Args:
        path: Path of a P3 or P6 image.

    Returns:
        A (height, width, 3) float32 array in [0, 1] whose row 0 is the first
        row of the file, or None if the file is missing, has an unsupported
        magic number or cannot be decoded.
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            magic = f.read(2)
    except OSError as exc:
        logger.warning("Could not open texture %s: %s", path, exc)
        return None

    if magic not in SUPPORTED_MAGIC:
        logger.warning(
            "Unsupported texture format %r in %s (expected P3 or P6)",
            magic.decode("latin-1"),
            path,
        )
        return None

    try:
        with Image.open(path) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=np.float32)
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        logger.warning("Could not decode texture %s: %s", path, exc)
        return None

    logger.debug("Loaded texture %s (%dx%d)", path, rgb.shape[1], rgb.shape[0])
    return rgb / 255.0

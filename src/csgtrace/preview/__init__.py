"""Preview module for output and visualization.

Components:
    display: Matplotlib-based preview display
    export: PPM and Pillow image export utilities

This module holds no Taichi state and can be imported before ``ti.init()``.

Example:
    >>> from src.csgtrace.preview import save_image, show_preview
    >>> from src.csgtrace.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(320, 240)
    >>> renderer.render(16)
    >>> show_preview(renderer)
    >>> save_image(renderer.get_image_uint8(), "output.ppm", binary=True)
"""

from src.csgtrace.preview.display import show_comparison, show_image, show_preview
from src.csgtrace.preview.export import (
    compute_rmse,
    image_to_uint8,
    save_image,
    save_ppm,
)

__all__ = [
    # Display functions
    "show_image",
    "show_preview",
    "show_comparison",
    # Export functions
    "save_ppm",
    "save_image",
    "image_to_uint8",
    "compute_rmse",
]

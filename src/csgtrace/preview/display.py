"""Matplotlib-based preview display for rendered images.

The renderer's colors are already clamped to [0, 1] and shown as they are
written to disk, without tone mapping or gamma.

Example:
    >>> from src.csgtrace.preview.display import show_preview
    >>> from src.csgtrace.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(320, 240)
    >>> renderer.render(16)
    >>> show_preview(renderer)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from src.csgtrace.preview.export import compute_rmse

if TYPE_CHECKING:
    from src.csgtrace.core.progressive import ProgressiveRenderer


def show_image(
    image: npt.NDArray,
    *,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 6),
    block: bool = True,
) -> None:
    """Display an (H, W, 3) image, uint8 or floats in [0, 1], top row first.

    Args:
        image: The image to show.
        title: Optional figure title.
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until figure is closed.
    """
    import matplotlib.pyplot as plt

    if image.dtype != np.uint8:
        image = np.clip(image, 0.0, 1.0)

    _, ax = plt.subplots(figsize=figsize)
    ax.imshow(image)
    ax.axis("off")
    if title is not None:
        ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)


def show_preview(
    renderer: ProgressiveRenderer,
    *,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 6),
    block: bool = True,
) -> None:
    """Display the current render with its sample count in the title."""
    if title is None:
        title = (
            f"Render Preview - {renderer.width}x{renderer.height}, "
            f"{renderer.sample_count} SPP"
        )
    show_image(renderer.get_image_numpy(), title=title, figsize=figsize, block=block)


def show_comparison(
    image_a: npt.NDArray[np.float32],
    image_b: npt.NDArray[np.float32],
    *,
    labels: tuple[str, str] = ("A", "B"),
    diff_scale: float = 10.0,
    figsize: tuple[float, float] = (16, 6),
    block: bool = True,
) -> float:
    """Display two renders side by side with their amplified difference.

    Returns:
        RMSE between the two images.
    """
    import matplotlib.pyplot as plt

    rmse = compute_rmse(image_a, image_b)
    diff = np.abs(image_a.astype(np.float64) - image_b.astype(np.float64))
    diff_amplified = np.clip(diff * diff_scale, 0.0, 1.0)

    panels = (
        (np.clip(image_a, 0.0, 1.0), labels[0]),
        (np.clip(image_b, 0.0, 1.0), labels[1]),
        (diff_amplified, f"Difference ({diff_scale}x) - RMSE: {rmse:.6f}"),
    )
    _, axes = plt.subplots(1, len(panels), figsize=figsize)
    for ax, (panel, label) in zip(axes, panels):
        ax.imshow(panel)
        ax.set_title(label)
        ax.axis("off")

    plt.tight_layout()
    plt.show(block=block)
    return rmse

"""Pigments: the base color of a surface point.

Three pigment kinds are supported:

- SOLID: a constant color
- CHECKER: a 3D checkerboard of two colors with cubic cells of side
  ``scale``; the cell of p is floor(p / scale) and its parity picks color1
  (even) or color2 (odd)
- TEXMAP: an image mapped by two linear projections of the homogeneous point
  (x, y, z, 1), s = p0 . (x, y, z, 1) and t = p1 . (x, y, z, 1); only the
  fractional parts of s and t are used, so the image tiles space. Texel
  (u, v) is column u = int(s * width), row v = int(t * height), where row 0
  is the first image row. A texture map without texels returns color1.

Texels of all texture maps share one flat field, each pigment owning a
contiguous run of width * height entries.

Example:
    >>> solid = add_solid_pigment((0.8, 0.1, 0.1))
    >>> floor = add_checker_pigment((1, 1, 1), (0, 0, 0), scale=1.0)
    >>> # In a kernel: color = pigment_color(floor, hit_point)
"""

from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.csgtrace.core.ray import real, vec3, vec4


class PigmentKind(IntEnum):
    """Pigment kinds stored in ``pigment_kinds``."""

    SOLID = 0
    CHECKER = 1
    TEXMAP = 2


# Maximum number of pigments and of texels across all texture maps
MAX_PIGMENTS = 256
MAX_TEXELS = 1 << 20

pigment_kinds = ti.field(dtype=ti.i32, shape=MAX_PIGMENTS)
pigment_color1 = ti.Vector.field(3, dtype=real, shape=MAX_PIGMENTS)
pigment_color2 = ti.Vector.field(3, dtype=real, shape=MAX_PIGMENTS)
pigment_scales = ti.field(dtype=real, shape=MAX_PIGMENTS)
pigment_s_projection = ti.Vector.field(4, dtype=real, shape=MAX_PIGMENTS)
pigment_t_projection = ti.Vector.field(4, dtype=real, shape=MAX_PIGMENTS)
pigment_texel_first = ti.field(dtype=ti.i32, shape=MAX_PIGMENTS)
pigment_texture_width = ti.field(dtype=ti.i32, shape=MAX_PIGMENTS)
pigment_texture_height = ti.field(dtype=ti.i32, shape=MAX_PIGMENTS)
num_pigments = ti.field(dtype=ti.i32, shape=())

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_texels = ti.field(dtype=ti.i32, shape=())

_KIND_SOLID = int(PigmentKind.SOLID)
_KIND_CHECKER = int(PigmentKind.CHECKER)
_KIND_TEXMAP = int(PigmentKind.TEXMAP)


def clear_pigments() -> None:
    """Clear all pigments and texels."""
    num_pigments[None] = 0
    num_texels[None] = 0


def _check_color(name: str, color: tuple[float, float, float]) -> None:
    if len(color) != 3:
        raise ValueError(f"{name} needs 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0:
            raise ValueError(f"{name} component {i} = {component} is negative")


def _next_index() -> int:
    idx = num_pigments[None]
    if idx >= MAX_PIGMENTS:
        raise RuntimeError(f"Maximum number of pigments ({MAX_PIGMENTS}) exceeded")
    return idx


def _store(
    kind: PigmentKind,
    color1: tuple[float, float, float],
    color2: tuple[float, float, float] = (0.0, 0.0, 0.0),
    scale: float = 1.0,
    s_projection: tuple[float, ...] = (0.0, 0.0, 0.0, 0.0),
    t_projection: tuple[float, ...] = (0.0, 0.0, 0.0, 0.0),
    texel_first: int = 0,
    width: int = 0,
    height: int = 0,
) -> int:
    idx = _next_index()
    pigment_kinds[idx] = int(kind)
    pigment_color1[idx] = vec3(color1[0], color1[1], color1[2])
    pigment_color2[idx] = vec3(color2[0], color2[1], color2[2])
    pigment_scales[idx] = scale
    pigment_s_projection[idx] = vec4(*s_projection)
    pigment_t_projection[idx] = vec4(*t_projection)
    pigment_texel_first[idx] = texel_first
    pigment_texture_width[idx] = width
    pigment_texture_height[idx] = height
    num_pigments[None] = idx + 1
    return idx


def add_solid_pigment(color: tuple[float, float, float]) -> int:
    """Add a constant-color pigment.

    Returns:
        The pigment index.

    Raises:
        RuntimeError: If the maximum number of pigments is exceeded.
        ValueError: If a color component is negative.
    """
    _check_color("color", color)
    return _store(PigmentKind.SOLID, color)


def add_checker_pigment(
    color1: tuple[float, float, float],
    color2: tuple[float, float, float],
    scale: float,
) -> int:
    """Add a 3D checkerboard pigment.

    Args:
        color1: Color of even cells.
        color2: Color of odd cells.
        scale: Side of a cubic cell (positive).

    Returns:
        The pigment index.

    Raises:
        RuntimeError: If the maximum number of pigments is exceeded.
        ValueError: If a color component is negative or scale is not positive.
    """
    _check_color("color1", color1)
    _check_color("color2", color2)
    if scale <= 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")
    return _store(PigmentKind.CHECKER, color1, color2, scale=scale)


def add_texture_pigment(
    image: npt.NDArray[np.floating] | None,
    s_projection: tuple[float, float, float, float],
    t_projection: tuple[float, float, float, float],
    fallback_color: tuple[float, float, float] = (1.0, 1.0, 1.0),
) -> int:
    """Add a texture-mapped pigment.

    Args:
        image: (height, width, 3) array of colors in [0, 1], row 0 first, or
            None when the texture could not be loaded. Without texels the
            pigment returns fallback_color.
        s_projection: p0, mapping (x, y, z, 1) to the s coordinate.
        t_projection: p1, mapping (x, y, z, 1) to the t coordinate.
        fallback_color: Color used when no texels are present.

    Returns:
        The pigment index.

    Raises:
        RuntimeError: If the pigment table or the texel field would overflow.
        ValueError: If a projection does not have 4 components or the image
            has the wrong shape.
    """
    if len(s_projection) != 4 or len(t_projection) != 4:
        raise ValueError("Texture projections need 4 components each")
    _check_color("fallback_color", fallback_color)

    first, width, height = 0, 0, 0
    if image is not None:
        pixels = np.asarray(image, dtype=np.float32)
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"Texture image must have shape (H, W, 3), got {pixels.shape}")
        height, width = int(pixels.shape[0]), int(pixels.shape[1])
        first = num_texels[None]
        if first + width * height > MAX_TEXELS:
            raise RuntimeError(f"Maximum number of texels ({MAX_TEXELS}) exceeded")
        _next_index()
        _upload_texels(first, pixels.reshape(-1, 3))
        num_texels[None] = first + width * height

    return _store(
        PigmentKind.TEXMAP,
        fallback_color,
        s_projection=s_projection,
        t_projection=t_projection,
        texel_first=first,
        width=width,
        height=height,
    )


@ti.kernel
def _copy_texels(first: ti.i32, pixels: ti.types.ndarray()):
    for k in range(pixels.shape[0]):
        texels[first + k] = ti.Vector([pixels[k, 0], pixels[k, 1], pixels[k, 2]])


def _upload_texels(first: int, pixels: npt.NDArray[np.float32]) -> None:
    if pixels.shape[0] > 0:
        _copy_texels(first, np.ascontiguousarray(pixels))


def get_pigment_count() -> int:
    """Get the number of pigments in the registry."""
    return int(num_pigments[None])


# =============================================================================
# Evaluation
# =============================================================================


@ti.func
def _checker_color(index: ti.i32, point: vec3) -> vec3:
    cell = ti.floor(point / pigment_scales[index])
    parity = ti.cast(cell[0] + cell[1] + cell[2], ti.i64) % 2
    result = pigment_color1[index]
    if parity != 0:
        result = pigment_color2[index]
    return result


@ti.func
def _texture_color(index: ti.i32, point: vec3) -> vec3:
    width = pigment_texture_width[index]
    height = pigment_texture_height[index]
    result = pigment_color1[index]
    if width > 0 and height > 0:
        p = vec4(point[0], point[1], point[2], 1.0)
        s = tm.dot(pigment_s_projection[index], p)
        t = tm.dot(pigment_t_projection[index], p)
        s = s - ti.floor(s)
        t = t - ti.floor(t)
        u = ti.cast(s * width, ti.i32) % width
        v = ti.cast(t * height, ti.i32) % height
        texel = texels[pigment_texel_first[index] + v * width + u]
        result = ti.cast(texel, real)
    return result


@ti.func
def pigment_color(index: ti.i32, point: vec3) -> vec3:
    """Base color of pigment ``index`` at a world-space point.

    Args:
        index: The pigment index.
        point: The world-space surface point.

    Returns:
        The RGB base color.
    """
    kind = pigment_kinds[index]
    result = vec3(1.0, 1.0, 1.0)
    if kind == _KIND_SOLID:
        result = pigment_color1[index]
    elif kind == _KIND_CHECKER:
        result = _checker_color(index, point)
    elif kind == _KIND_TEXMAP:
        result = _texture_color(index, point)
    return result


_query_color = ti.Vector.field(3, dtype=real, shape=())


@ti.kernel
def _pigment_color_kernel(index: ti.i32, point: vec3):
    _query_color[None] = pigment_color(index, point)


def sample_pigment(index: int, point: tuple[float, float, float]) -> tuple[float, float, float]:
    """Evaluate a pigment from Python.

    Raises:
        ValueError: If the pigment index is out of range.
    """
    if index < 0 or index >= num_pigments[None]:
        raise ValueError(f"Invalid pigment index: {index}")
    _pigment_color_kernel(index, vec3(*point))
    color = _query_color[None]
    return (float(color[0]), float(color[1]), float(color[2]))

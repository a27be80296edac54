"""Thin-lens camera model with supersampling and depth of field.

The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view specification
- Arbitrary aspect ratios
- Jittered sub-pixel sampling for anti-aliasing
- Depth of field through a lens of radius ``aperture``

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

With aperture > 0 each ray origin is moved to a random point of the lens
disk, ``eye + u*dx*aperture + v*dy*aperture``, and re-aimed at the point the
unperturbed ray reaches at ``focus_distance``. Objects at that distance stay
sharp while nearer and farther ones blur.

Example:
    >>> from src.csgtrace.camera.thin_lens import ThinLensCamera, setup_camera
    >>> camera = ThinLensCamera(
    ...     lookfrom=(0.0, 0.0, 5.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vup=(0.0, 1.0, 0.0),
    ...     vfov=40.0,
    ...     aspect_ratio=4.0 / 3.0,
    ...     aperture=0.1,
    ...     focus_distance=5.0,
    ... )
    >>> setup_camera(camera)
    >>> # In a kernel: ray = get_ray_jittered(i, j, width, height, stream)
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from src.csgtrace.core.ray import Ray, make_ray, normalize, real, vec3
from src.csgtrace.core.sampler import ensure_seeded, random_float, random_in_unit_disk

logger = logging.getLogger(__name__)

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees.
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens radius. 0 gives a pinhole camera.
        focus_distance: Distance from the eye of the plane in focus.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float]
    vfov: float
    aspect_ratio: float
    aperture: float = 0.0
    focus_distance: float = 10.0


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=real, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=real, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=real, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=real, shape=())  # Backward (opposite view)

# Viewport at unit distance in front of the eye
_viewport_horizontal = ti.Vector.field(3, dtype=real, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=real, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=real, shape=())

_lens_aperture = ti.field(dtype=real, shape=())
_focus_distance = ti.field(dtype=real, shape=())


# =============================================================================
# Camera Setup (Python-side)
# =============================================================================


def setup_camera(camera: ThinLensCamera) -> None:
    """Initialize camera state from configuration.

    Must be called before rendering and again whenever the camera or the
    image aspect ratio changes.

    Args:
        camera: Camera configuration.

    Raises:
        ValueError: If lookfrom equals lookat, vup is parallel to the view
            direction, the aperture is negative or the focus distance is not
            positive.
    """
    if camera.aperture < 0.0:
        raise ValueError(f"Aperture must be non-negative, got {camera.aperture}")
    if camera.focus_distance <= 0.0:
        raise ValueError(f"Focus distance must be positive, got {camera.focus_distance}")

    theta = math.radians(camera.vfov)
    viewport_height = 2.0 * math.tan(theta / 2.0)
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w_norm = np.linalg.norm(w)
    if w_norm == 0.0:
        raise ValueError("Camera lookfrom and lookat must differ")
    w = w / w_norm

    u = np.cross(vup, w)
    u_norm = np.linalg.norm(u)
    if u_norm == 0.0:
        raise ValueError("Camera up vector must not be parallel to the view direction")
    u = u / u_norm

    v = np.cross(w, u)

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = lookfrom - w - horizontal / 2.0 - vertical / 2.0

    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()

    _lens_aperture[None] = camera.aperture
    _focus_distance[None] = camera.focus_distance

    logger.debug(
        "Camera at %s looking at %s, vfov=%.1f, aperture=%.3f, focus=%.3f",
        camera.lookfrom,
        camera.lookat,
        camera.vfov,
        camera.aperture,
        camera.focus_distance,
    )


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(s: real, t: real, stream: ti.i32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    - s = 0: left edge, s = 1: right edge
    - t = 0: bottom edge, t = 1: top edge

    Args:
        s: Horizontal coordinate in [0, 1].
        t: Vertical coordinate in [0, 1].
        stream: Random stream used for the lens sample.

    Returns:
        A Ray from the eye (or a lens point) with unit direction.
    """
    origin = _camera_origin[None]
    point_on_viewport = (
        _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    )
    direction = normalize(point_on_viewport - origin)

    aperture = _lens_aperture[None]
    if aperture > 0.0:
        lens = random_in_unit_disk(stream)
        lens_origin = origin + _camera_u[None] * (lens[0] * aperture) + _camera_v[None] * (lens[1] * aperture)
        focus_point = origin + direction * _focus_distance[None]
        origin = lens_origin
        direction = focus_point - lens_origin

    return make_ray(origin, direction)


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32, stream: ti.i32) -> Ray:
    """Generate a ray through a random point of a pixel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        stream: Random stream of the pixel.

    Returns:
        A Ray with a uniform sub-pixel offset.
    """
    s = (ti.cast(pixel_i, real) + random_float(stream)) / ti.cast(width, real)
    t = (ti.cast(pixel_j, real) + random_float(stream)) / ti.cast(height, real)
    return get_ray(s, t, stream)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left,
        aperture and focus_distance.
    """

    def as_tuple(field) -> tuple[float, float, float]:
        vec = field[None]
        return (float(vec[0]), float(vec[1]), float(vec[2]))

    return {
        "origin": as_tuple(_camera_origin),
        "u": as_tuple(_camera_u),
        "v": as_tuple(_camera_v),
        "w": as_tuple(_camera_w),
        "horizontal": as_tuple(_viewport_horizontal),
        "vertical": as_tuple(_viewport_vertical),
        "lower_left": as_tuple(_lower_left_corner),
        "aperture": float(_lens_aperture[None]),
        "focus_distance": float(_focus_distance[None]),
    }


_query_origin = ti.Vector.field(3, dtype=real, shape=())
_query_direction = ti.Vector.field(3, dtype=real, shape=())


@ti.kernel
def _camera_ray_kernel(s: real, t: real, stream: ti.i32):
    for _ in range(1):
        ray = get_ray(s, t, stream)
        _query_origin[None] = ray.origin
        _query_direction[None] = ray.direction


def sample_camera_ray(s: float, t: float, stream: int = 0):
    """Generate one camera ray from Python.

    Returns:
        Tuple (origin, direction) of 3-tuples.
    """
    ensure_seeded()
    _camera_ray_kernel(s, t, stream)
    o = _query_origin[None]
    d = _query_direction[None]
    return (
        (float(o[0]), float(o[1]), float(o[2])),
        (float(d[0]), float(d[1]), float(d[2])),
    )

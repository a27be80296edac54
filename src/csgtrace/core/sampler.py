"""Per-pixel random streams for stochastic sampling.

Every stochastic term of the renderer (anti-aliasing jitter, depth of
field, soft shadows and glossy perturbations) draws from an explicit random
stream instead of one shared generator. The stream table holds one xorshift
state per pixel of the largest supported render target:

    stream(i, j) = j * MAX_IMAGE_WIDTH + i

Because each pixel owns its stream, parallel kernel threads never contend
for a state, and a render is reproducible for a given seed regardless of
how Taichi schedules the threads. Single queries issued from Python use
stream 0.

Example:
    >>> seed_streams(1234)
    >>> # Inside a kernel:
    >>> # u = random_float(stream)
    >>> # offset = random_in_unit_sphere(stream)
"""

import numpy as np
import numpy.typing as npt
import taichi as ti

from src.csgtrace.config import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH
from src.csgtrace.core.ray import length_squared, real, vec3

MAX_STREAMS = MAX_IMAGE_WIDTH * MAX_IMAGE_HEIGHT

# Seed used when nothing was seeded explicitly
DEFAULT_SEED = 0

# Maximum rejection-sampling attempts before falling back to the origin
MAX_REJECTION_TRIES = 100

# 2^-32, maps a u32 onto [0, 1)
_U32_TO_UNIT = 1.0 / 4294967296.0

_stream_state = ti.field(dtype=ti.u32, shape=MAX_STREAMS)


@ti.func
def _wang_hash(seed: ti.u32) -> ti.u32:
    """Thomas Wang's 32-bit integer hash."""
    x = seed
    x = (x ^ ti.cast(61, ti.u32)) ^ (x >> ti.cast(16, ti.u32))
    x = x * ti.cast(9, ti.u32)
    x = x ^ (x >> ti.cast(4, ti.u32))
    x = x * ti.cast(0x27D4EB2D, ti.u32)
    x = x ^ (x >> ti.cast(15, ti.u32))
    return x


@ti.kernel
def _seed_kernel(seed: ti.u32):
    for s in range(MAX_STREAMS):
        h = _wang_hash(_wang_hash(ti.cast(s, ti.u32)) ^ seed)
        # xorshift never leaves the all-zero state
        if h == 0:
            h = ti.cast(1, ti.u32)
        _stream_state[s] = h


def seed_streams(seed: int) -> None:
    """Seed every random stream deterministically.

    Args:
        seed: Any Python integer. Equal seeds give equal streams.
    """
    mixed = (seed * 2654435769 + 0x9E3779B9) & 0xFFFFFFFF
    _seed_kernel(mixed)


def ensure_seeded(seed: int = DEFAULT_SEED) -> None:
    """Seed the streams with ``seed`` unless they were seeded before.

    A fresh table is all zeros, which xorshift never leaves. Seeded states
    are never zero, so stream 0 tells whether seeding has happened.
    """
    if int(_stream_state[0]) == 0:
        seed_streams(seed)


@ti.func
def pixel_stream(pixel_i: ti.i32, pixel_j: ti.i32) -> ti.i32:
    """Return the stream id owned by pixel (pixel_i, pixel_j)."""
    return pixel_j * MAX_IMAGE_WIDTH + pixel_i


@ti.func
def next_u32(stream: ti.i32) -> ti.u32:
    """Advance a stream (xorshift32) and return the new state."""
    x = _stream_state[stream]
    x = x ^ (x << ti.cast(13, ti.u32))
    x = x ^ (x >> ti.cast(17, ti.u32))
    x = x ^ (x << ti.cast(5, ti.u32))
    _stream_state[stream] = x
    return x


@ti.func
def random_float(stream: ti.i32) -> real:
    """Draw a uniform float in [0, 1) from a stream."""
    return ti.cast(next_u32(stream), real) * _U32_TO_UNIT


@ti.func
def random_signed(stream: ti.i32) -> real:
    """Draw a uniform float in [-1, 1) from a stream."""
    return random_float(stream) * 2.0 - 1.0


@ti.func
def random_in_cube(stream: ti.i32) -> vec3:
    """Draw a point uniformly from the cube [-1, 1]^3.

    Used as the jitter vector of glossy reflection and refraction.
    """
    x = random_signed(stream)
    y = random_signed(stream)
    z = random_signed(stream)
    return vec3(x, y, z)


@ti.func
def random_in_unit_sphere(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit sphere.

    Uses rejection sampling to generate uniformly distributed points
    within the unit sphere.

    Returns:
        A random point with length < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    # Rejection sampling loop
    for _ in range(MAX_REJECTION_TRIES):
        if not found:
            candidate = random_in_cube(stream)
            if length_squared(candidate) < 1.0:
                p = candidate
                found = True
    return p


@ti.func
def random_in_unit_disk(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used for thin-lens depth-of-field sampling.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(MAX_REJECTION_TRIES):
        if not found:
            x = random_signed(stream)
            y = random_signed(stream)
            if x * x + y * y < 1.0:
                p = vec3(x, y, 0.0)
                found = True
    return p


# =============================================================================
# Python-side access (testing and diagnostics)
# =============================================================================


@ti.kernel
def _fill_uniform(out: ti.types.ndarray(), stream: ti.i32):
    ti.loop_config(serialize=True)
    for k in range(out.shape[0]):
        out[k] = random_float(stream)


@ti.kernel
def _fill_unit_sphere(out: ti.types.ndarray(), stream: ti.i32):
    ti.loop_config(serialize=True)
    for k in range(out.shape[0]):
        p = random_in_unit_sphere(stream)
        for c in ti.static(range(3)):
            out[k, c] = p[c]


def sample_uniform(count: int, stream: int = 0) -> npt.NDArray[np.float64]:
    """Draw ``count`` uniform floats from one stream.

    Args:
        count: Number of values to draw.
        stream: The stream id to advance.

    Returns:
        A float64 array of shape (count,).
    """
    ensure_seeded()
    out = np.zeros(count, dtype=np.float64)
    _fill_uniform(out, stream)
    return out


def sample_unit_sphere(count: int, stream: int = 0) -> npt.NDArray[np.float64]:
    """Draw ``count`` points inside the unit sphere from one stream.

    Returns:
        A float64 array of shape (count, 3).
    """
    ensure_seeded()
    out = np.zeros((count, 3), dtype=np.float64)
    _fill_unit_sphere(out, stream)
    return out

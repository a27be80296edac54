"""Ray data structure and vector utilities for the intersection engine.

This module provides the fundamental Ray dataclass and the vector algebra
shared by every solver and by the shading pipeline. All operations are
Taichi functions so they can be inlined into kernels.

Every geometric quantity is a 64-bit float. Taichi must be initialised with
``default_fp=ti.f64`` so that literals inside kernels match ``real``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> origin = vec3(0.0, 0.0, 0.0)
    >>> direction = vec3(0.0, 0.0, -1.0)
    >>> # Inside a kernel:
    >>> # ray = make_ray(origin, direction)
    >>> # point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Scalar type for all geometry
real = ti.f64

# 3D vector type (point, direction or RGB color)
vec3 = ti.types.vector(3, real)

# 4D vector type (plane coefficients, texture projections)
vec4 = ti.types.vector(4, real)

# Hits closer than this are rejected to avoid self-intersection
T_EPSILON = 1e-3

# Hits farther than this are treated as numerical blow-up
T_FAR = 1e10

# Below this |n . d| a ray is considered parallel to a plane
PARALLEL_EPSILON = 1e-10


@ti.dataclass
class Ray:
    """Origin and direction. make_ray() always stores a unit direction."""

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: real) -> vec3:
    """origin + t * direction; t > 0 lies in front of the origin."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Ray with a normalized direction, so solver t values are distances."""
    return Ray(origin=origin, direction=normalize(direction))


# =============================================================================
# Vector Helpers
# =============================================================================


@ti.func
def length(v: vec3) -> real:
    """Euclidean norm."""
    return tm.sqrt(tm.dot(v, v))


@ti.func
def length_squared(v: vec3) -> real:
    """Squared norm."""
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Unit vector along v, or the zero vector when v is zero."""
    n = tm.sqrt(tm.dot(v, v))
    result = vec3(0.0, 0.0, 0.0)
    if n > 0.0:
        result = v / n
    return result


@ti.func
def dot(a: vec3, b: vec3) -> real:
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    return tm.cross(a, b)


@ti.func
def clamp01(v: vec3) -> vec3:
    """Clamp every channel of a color to [0, 1]."""
    return tm.clamp(v, 0.0, 1.0)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Mirror direction of ``incident`` about the unit ``normal``."""
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, ior: real):
    """Refract an incident vector through a surface using Snell's law.

    The side of the surface is decided by the sign of incident . normal:
    a negative cosine means the ray enters the material (air to ior), a
    positive one means it leaves it, in which case the index ratio is
    swapped and the normal flipped.

    Args:
        incident: The incoming direction vector.
        normal: The outward surface normal.
        ior: Refractive index of the material relative to the outside.

    Returns:
        A tuple (direction, ok). ok is 0 on total internal reflection, in
        which case direction is the zero vector.
    """
    i = normalize(incident)
    n = normalize(normal)
    cos_i = tm.dot(i, n)

    eta_i = 1.0
    eta_t = ior
    if cos_i < 0.0:
        cos_i = -cos_i
    else:
        eta_i = ior
        eta_t = 1.0
        n = -n

    eta = eta_i / eta_t
    k = 1.0 - eta * eta * (1.0 - cos_i * cos_i)

    result = vec3(0.0, 0.0, 0.0)
    ok = 0
    if k >= 0.0:
        result = normalize(eta * i + (eta * cos_i - tm.sqrt(k)) * n)
        ok = 1
    return result, ok

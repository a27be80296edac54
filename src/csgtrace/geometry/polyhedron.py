"""Convex polyhedron primitive (intersection of half-spaces).

A polyhedron is a run of planes ``a*x + b*y + c*z + d = 0`` stored as vec4
coefficients in a plane field. The solid is the region where every plane
evaluates to <= 0, so each (a, b, c) is the outward face normal.

The ray is clipped against every half-space with the slab method, keeping a
running [t_near, t_far] interval:

- a face with n . D < 0 is entered, and may raise t_near
- a face with n . D > 0 is left, and may lower t_far
- a face parallel to the ray (|n . D| < PARALLEL_EPSILON) culls the ray when
  the origin lies outside it, and is otherwise ignored

The plane field is passed as a template argument, so the same solvers work
on any vec4 field holding planes back to back.
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.csgtrace.core.ray import PARALLEL_EPSILON, T_EPSILON, T_FAR, normalize, vec3
from src.csgtrace.geometry.sphere import Crossings, HitRecord, make_miss, make_no_crossings

# Stand-ins for -inf / +inf of an open slab interval
_SLAB_INF = 1e30


def make_plane(a: float, b: float, c: float, d: float) -> npt.NDArray[np.float64]:
    """Build plane coefficients scaled to a unit normal.

    Scaling all four coefficients by 1/|(a, b, c)| keeps the plane in place
    and makes the plane equation a true signed distance. A degenerate plane
    with an all-zero normal is returned unchanged.

    Args:
        a, b, c: Normal components (pointing out of the solid).
        d: Offset term.

    Returns:
        A float64 array [a, b, c, d] with unit (a, b, c).
    """
    coeffs = np.array([a, b, c, d], dtype=np.float64)
    norm = float(np.linalg.norm(coeffs[:3]))
    if norm > 0.0:
        coeffs /= norm
    return coeffs


@ti.func
def _clip_slab(ray_origin: vec3, ray_direction: vec3, planes: ti.template(), first: ti.i32, count: ti.i32):
    """Clip the ray against ``count`` half-spaces starting at ``first``.

    Returns:
        Tuple (valid, t_near, normal_near, t_far, normal_far). The normals
        are the outward normals of the limiting faces. valid is 0 when the
        ray misses the solid.
    """
    t_near = -_SLAB_INF
    t_far = _SLAB_INF
    normal_near = vec3(0.0, 0.0, 0.0)
    normal_far = vec3(0.0, 0.0, 0.0)
    valid = 1

    for k in range(count):
        if valid == 1:
            plane = planes[first + k]
            n = vec3(plane[0], plane[1], plane[2])
            denom = tm.dot(n, ray_direction)
            distance = tm.dot(n, ray_origin) + plane[3]

            if ti.abs(denom) < PARALLEL_EPSILON:
                if distance > 0.0:
                    valid = 0
            else:
                t = -distance / denom
                if denom < 0.0:
                    if t > t_near:
                        t_near = t
                        normal_near = n
                else:
                    if t < t_far:
                        t_far = t
                        normal_far = n
                if t_near > t_far:
                    valid = 0

    return valid, t_near, normal_near, t_far, normal_far


@ti.func
def hit_polyhedron(
    ray_origin: vec3,
    ray_direction: vec3,
    planes: ti.template(),
    first: ti.i32,
    count: ti.i32,
) -> HitRecord:
    """Test for ray-polyhedron intersection.

    When t_near falls below T_EPSILON the ray starts inside the solid, and
    the exit face is reported instead, with its normal pointing inward
    (facing the ray origin). Distances beyond T_FAR are rejected.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        planes: vec4 field of unit-normal plane coefficients.
        first: Index of the polyhedron's first plane.
        count: Number of planes.

    Returns:
        A HitRecord for the nearest valid face.
    """
    valid, t_near, normal_near, t_far, normal_far = _clip_slab(
        ray_origin, ray_direction, planes, first, count
    )

    result = make_miss()

    if valid == 1:
        t = t_near
        normal = normal_near
        if t < T_EPSILON:
            t = t_far
            normal = -normal_far
        if t >= T_EPSILON and t <= T_FAR:
            result = HitRecord(
                hit=1,
                t=t,
                point=ray_origin + t * ray_direction,
                normal=normalize(normal),
            )

    return result


@ti.func
def polyhedron_crossings(
    ray_origin: vec3,
    ray_direction: vec3,
    planes: ti.template(),
    first: ti.i32,
    count: ti.i32,
) -> Crossings:
    """Return the entry and exit of the ray through the polyhedron.

    Both normals are outward face normals. An open side of an unbounded
    polyhedron shows up as a crossing at -+1e30 with a zero normal.
    """
    valid, t_near, normal_near, t_far, normal_far = _clip_slab(
        ray_origin, ray_direction, planes, first, count
    )

    result = make_no_crossings()
    if valid == 1:
        result = Crossings(
            count=2,
            t_near=t_near,
            normal_near=normalize(normal_near),
            t_far=t_far,
            normal_far=normalize(normal_far),
        )
    return result

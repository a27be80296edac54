"""Scene-level closest-hit queries.

This module scans every top-level object, dispatches to the solver of its
root node (sphere, polyhedron, quadric or CSG evaluator) and keeps the hit
with the smallest t. There is no acceleration structure: each query costs
one solver call per object.

Besides the Taichi functions used by the renderer, two Python-callable
queries are provided for tools and tests:

- closest_hit(origin, direction): one find_closest_hit() query
- csg_boundary(object_index, origin, direction): every boundary of a CSG
  object along a line, including those behind the origin

Example:
    >>> from src.csgtrace.scene.intersection import closest_hit
    >>> hit = closest_hit((0, 0, 0), (0, 0, -1))
    >>> hit.hit, hit.t, hit.object_index
"""

from dataclasses import dataclass

import taichi as ti

from src.csgtrace.core.ray import normalize, real, vec3
from src.csgtrace.geometry.polyhedron import hit_polyhedron
from src.csgtrace.geometry.quadric import hit_quadric
from src.csgtrace.geometry.sphere import HitRecord, hit_sphere, make_miss
from src.csgtrace.scene.csg import T_ANY, hit_csg, next_csg_boundary
from src.csgtrace.scene.primitives import (
    MAX_CSG_EVENTS,
    get_quadric,
    get_sphere,
    node_count,
    node_data,
    node_kind,
    num_objects,
    object_root,
    plane_coeffs,
)
from src.csgtrace.scene.shapes import ShapeKind

# Larger than any accepted hit distance
_NO_HIT_T = 1e30

_KIND_SPHERE = int(ShapeKind.SPHERE)
_KIND_POLYHEDRON = int(ShapeKind.POLYHEDRON)
_KIND_QUADRIC = int(ShapeKind.QUADRIC)
_KIND_CSG = int(ShapeKind.CSG)


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection.

    Attributes:
        hit: Whether the ray intersected any object (1 if hit, 0 if miss).
        t: The distance along the ray of the closest hit.
        point: The hit point.
        normal: The unit surface normal as produced by the solver.
        object_index: Index of the top-level object that was hit, -1 on a
            miss.
    """

    hit: ti.i32
    t: real
    point: vec3
    normal: vec3
    object_index: ti.i32


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        object_index=-1,
    )


@ti.func
def hit_object(object_index: ti.i32, ray_origin: vec3, ray_direction: vec3) -> HitRecord:
    """Nearest hit of the ray with one top-level object."""
    root = object_root[object_index]
    kind = node_kind[root]
    data = node_data[root]
    rec = make_miss()
    if kind == _KIND_SPHERE:
        rec = hit_sphere(ray_origin, ray_direction, get_sphere(data))
    elif kind == _KIND_POLYHEDRON:
        rec = hit_polyhedron(ray_origin, ray_direction, plane_coeffs, data, node_count[root])
    elif kind == _KIND_QUADRIC:
        rec = hit_quadric(ray_origin, ray_direction, get_quadric(data))
    elif kind == _KIND_CSG:
        rec = hit_csg(root, ray_origin, ray_direction)
    return rec


@ti.func
def find_closest_hit(ray_origin: vec3, ray_direction: vec3) -> SceneHitRecord:
    """Test the ray against all objects in the scene.

    Objects are tested in insertion order; on equal t the earlier object
    wins.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.

    Returns:
        A SceneHitRecord for the closest hit, or a miss record.
    """
    closest_t = _NO_HIT_T
    result = _make_miss_record()

    for i in range(num_objects[None]):
        rec = hit_object(i, ray_origin, ray_direction)
        if rec.hit == 1 and rec.t < closest_t:
            closest_t = rec.t
            result = SceneHitRecord(
                hit=1,
                t=rec.t,
                point=rec.point,
                normal=rec.normal,
                object_index=i,
            )

    return result


# =============================================================================
# Python-side queries
# =============================================================================


@dataclass
class ClosestHit:
    """Python copy of a SceneHitRecord."""

    hit: bool
    t: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    object_index: int


_query_hit = ti.field(dtype=ti.i32, shape=())
_query_t = ti.field(dtype=real, shape=())
_query_point = ti.Vector.field(3, dtype=real, shape=())
_query_normal = ti.Vector.field(3, dtype=real, shape=())
_query_object = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _closest_hit_kernel(origin: vec3, direction: vec3):
    for _ in range(1):
        rec = find_closest_hit(origin, normalize(direction))
        _query_hit[None] = rec.hit
        _query_t[None] = rec.t
        _query_point[None] = rec.point
        _query_normal[None] = rec.normal
        _query_object[None] = rec.object_index


@ti.kernel
def _boundary_kernel(root: ti.i32, origin: vec3, direction: vec3, t_min: real):
    for _ in range(1):
        event = next_csg_boundary(root, origin, normalize(direction), t_min)
        _query_hit[None] = event.found
        _query_t[None] = event.t
        _query_normal[None] = event.normal


def _as_tuple(v) -> tuple[float, float, float]:
    return (float(v[0]), float(v[1]), float(v[2]))


def closest_hit(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
) -> ClosestHit:
    """Run find_closest_hit() for a single ray from Python.

    Args:
        origin: Ray origin.
        direction: Ray direction (normalized before the query).

    Returns:
        The closest hit, with hit=False on a miss.
    """
    _closest_hit_kernel(vec3(*origin), vec3(*direction))
    return ClosestHit(
        hit=bool(_query_hit[None]),
        t=float(_query_t[None]),
        point=_as_tuple(_query_point[None]),
        normal=_as_tuple(_query_normal[None]),
        object_index=int(_query_object[None]),
    )


def csg_boundary(
    object_index: int,
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
) -> list[tuple[float, tuple[float, float, float]]]:
    """List every boundary of a CSG object along a line.

    Boundaries behind the origin (negative t) are included.

    Args:
        object_index: A top-level object whose root is a CSG node.
        origin: A point on the line.
        direction: Line direction (normalized before the query).

    Returns:
        (t, normal) pairs in ascending t order.

    Raises:
        ValueError: If the object does not exist or is not a CSG object.
    """
    if object_index < 0 or object_index >= num_objects[None]:
        raise ValueError(f"Invalid object index: {object_index}")
    root = int(object_root[object_index])
    if node_kind[root] != _KIND_CSG:
        raise ValueError(f"Object {object_index} is not a CSG object")

    events = []
    t_min = T_ANY
    for _ in range(MAX_CSG_EVENTS):
        _boundary_kernel(root, vec3(*origin), vec3(*direction), t_min)
        if _query_hit[None] == 0:
            break
        t_min = float(_query_t[None])
        events.append((t_min, _as_tuple(_query_normal[None])))
    return events

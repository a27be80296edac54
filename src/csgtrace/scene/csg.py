"""CSG evaluation by sweeping sorted boundary crossings.

A CSG tree is evaluated along a ray in three steps:

1. Every leaf of the tree contributes both of its boundary crossings,
   including those behind the ray origin, so that the inside/outside state
   of each leaf is known from t = -inf onwards.
2. The crossings are kept in ascending t order by insertion, so crossings at
   the same t keep the post-order of their leaves.
3. A sweep toggles one bit per leaf and re-evaluates the root membership in
   a single post-order pass: a CSG node is inside when at least one UNION
   child is inside and no DIFFERENCE child is. Each change of the root
   state is a boundary of the composite solid.

Crossings whose t lie within CSG_TIE_EPSILON of the first crossing of a
group are applied together before the membership is re-evaluated. Two
coincident surfaces therefore never create a zero-thickness boundary: a
sphere minus an identical sphere stays empty.

The normal of an emitted boundary is the leaf's outward normal multiplied by
the leaf's precomputed sign, so a surface exposed by a DIFFERENCE child
faces into the subtracted cavity.

Unbounded leaves (polyhedra with an open side) cross at +-1e30. Membership
changes that far out are not boundaries and are never emitted.
"""

import taichi as ti

from src.csgtrace.core.ray import T_EPSILON, T_FAR, real, vec3
from src.csgtrace.geometry.polyhedron import polyhedron_crossings
from src.csgtrace.geometry.quadric import quadric_crossings
from src.csgtrace.geometry.sphere import Crossings, HitRecord, make_miss, make_no_crossings, sphere_crossings
from src.csgtrace.scene.primitives import (
    MAX_CSG_EVENTS,
    MAX_CSG_NODES,
    get_quadric,
    get_sphere,
    node_count,
    node_data,
    node_first,
    node_kind,
    node_op,
    node_parent,
    node_sign,
    plane_coeffs,
)
from src.csgtrace.scene.shapes import CSGOperation, ShapeKind

# Crossings closer than this are treated as simultaneous
CSG_TIE_EPSILON = 1e-9

# Lower bound accepted by next_csg_boundary() to list every boundary
T_ANY = -1e300

_KIND_SPHERE = int(ShapeKind.SPHERE)
_KIND_POLYHEDRON = int(ShapeKind.POLYHEDRON)
_KIND_QUADRIC = int(ShapeKind.QUADRIC)
_KIND_CSG = int(ShapeKind.CSG)
_OP_UNION = int(CSGOperation.UNION)


@ti.dataclass
class BoundaryEvent:
    """A boundary of a composite solid along a ray.

    Attributes:
        found: 1 if a boundary was found, 0 otherwise.
        t: Ray parameter of the boundary.
        normal: Unit normal of the visible surface (outward for material
            entered or left through a UNION child, inverted for surfaces
            contributed by a DIFFERENCE child).
    """

    found: ti.i32
    t: real
    normal: vec3


@ti.func
def leaf_crossings(node: ti.i32, ray_origin: vec3, ray_direction: vec3) -> Crossings:
    """Both crossings of the ray with a leaf node of the shape table."""
    kind = node_kind[node]
    data = node_data[node]
    result = make_no_crossings()
    if kind == _KIND_SPHERE:
        result = sphere_crossings(ray_origin, ray_direction, get_sphere(data))
    elif kind == _KIND_POLYHEDRON:
        result = polyhedron_crossings(ray_origin, ray_direction, plane_coeffs, data, node_count[node])
    elif kind == _KIND_QUADRIC:
        result = quadric_crossings(ray_origin, ray_direction, get_quadric(data))
    return result


@ti.func
def _root_inside(first: ti.i32, n_nodes: ti.i32, leaf_mask: ti.i64) -> ti.i32:
    """Membership of the tree root given the inside state of every leaf.

    Bit ``k`` of ``leaf_mask`` is the state of node ``first + k``; bits of
    CSG nodes are ignored.
    """
    in_union = ti.Vector.zero(ti.i32, MAX_CSG_NODES)
    in_difference = ti.Vector.zero(ti.i32, MAX_CSG_NODES)
    root_inside = 0

    for local in range(n_nodes):
        node = first + local
        inside = 0
        if node_kind[node] == _KIND_CSG:
            if in_union[local] == 1 and in_difference[local] == 0:
                inside = 1
        else:
            inside = ti.cast((leaf_mask >> ti.cast(local, ti.i64)) & ti.cast(1, ti.i64), ti.i32)

        if local == n_nodes - 1:
            root_inside = inside
        elif inside == 1:
            parent = node_parent[node] - first
            if node_op[node] == _OP_UNION:
                in_union[parent] = 1
            else:
                in_difference[parent] = 1

    return root_inside


@ti.func
def next_csg_boundary(root: ti.i32, ray_origin: vec3, ray_direction: vec3, t_min: real) -> BoundaryEvent:
    """Find the first boundary of a CSG tree beyond ``t_min``.

    Boundaries are produced in ascending t order, so the first one emitted
    after t_min is the nearest.

    Args:
        root: Root node of the flattened tree.
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        t_min: Boundaries at t <= t_min are skipped (the sweep still
            accounts for them).

    Returns:
        The nearest BoundaryEvent with t > t_min, or found == 0.
    """
    first = node_first[root]
    n_nodes = root - first + 1

    ev_t = ti.Vector.zero(real, MAX_CSG_EVENTS)
    ev_leaf = ti.Vector.zero(ti.i32, MAX_CSG_EVENTS)
    ev_nx = ti.Vector.zero(real, MAX_CSG_EVENTS)
    ev_ny = ti.Vector.zero(real, MAX_CSG_EVENTS)
    ev_nz = ti.Vector.zero(real, MAX_CSG_EVENTS)
    count = 0

    # Gather leaf crossings, insertion-sorted by t
    for local in range(n_nodes):
        node = first + local
        if node_kind[node] != _KIND_CSG:
            crossings = leaf_crossings(node, ray_origin, ray_direction)
            if crossings.count == 2:
                for side in range(2):
                    t = crossings.t_near
                    n = crossings.normal_near
                    if side == 1:
                        t = crossings.t_far
                        n = crossings.normal_far
                    pos = count
                    shifting = 1
                    while shifting == 1:
                        shifting = 0
                        if pos > 0:
                            if ev_t[pos - 1] > t:
                                ev_t[pos] = ev_t[pos - 1]
                                ev_leaf[pos] = ev_leaf[pos - 1]
                                ev_nx[pos] = ev_nx[pos - 1]
                                ev_ny[pos] = ev_ny[pos - 1]
                                ev_nz[pos] = ev_nz[pos - 1]
                                pos -= 1
                                shifting = 1
                    ev_t[pos] = t
                    ev_leaf[pos] = local
                    ev_nx[pos] = n[0]
                    ev_ny[pos] = n[1]
                    ev_nz[pos] = n[2]
                    count += 1

    # Sweep
    result = BoundaryEvent(found=0, t=0.0, normal=vec3(0.0, 0.0, 0.0))
    leaf_mask = ti.cast(0, ti.i64)
    was_inside = 0
    k = 0
    while k < count:
        group_start = k
        t_group = ev_t[k]
        in_group = 1
        while in_group == 1:
            leaf_mask ^= ti.cast(1, ti.i64) << ti.cast(ev_leaf[k], ti.i64)
            k += 1
            in_group = 0
            if k < count:
                if ev_t[k] - t_group <= CSG_TIE_EPSILON:
                    in_group = 1

        inside = _root_inside(first, n_nodes, leaf_mask)
        if inside != was_inside:
            was_inside = inside
            # Open polyhedra report their missing crossing at +-1e30
            if t_group >= T_FAR:
                k = count
            elif t_group > t_min and t_group > -T_FAR:
                leaf = first + ev_leaf[group_start]
                normal = vec3(ev_nx[group_start], ev_ny[group_start], ev_nz[group_start])
                result = BoundaryEvent(found=1, t=t_group, normal=normal * node_sign[leaf])
                k = count

    return result


@ti.func
def hit_csg(root: ti.i32, ray_origin: vec3, ray_direction: vec3) -> HitRecord:
    """Nearest boundary of a CSG tree beyond the self-intersection guard.

    The normal is reported as the evaluator produced it, not flipped to face
    the ray.
    """
    event = next_csg_boundary(root, ray_origin, ray_direction, T_EPSILON)
    result = make_miss()
    if event.found == 1:
        result = HitRecord(
            hit=1,
            t=event.t,
            point=ray_origin + event.t * ray_direction,
            normal=event.normal,
        )
    return result

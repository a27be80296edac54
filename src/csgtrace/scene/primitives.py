"""Taichi storage for scene geometry.

Shapes are stored in Structure-of-Arrays tables, one per primitive type,
plus a node table that flattens shape trees:

- every shape tree is written in post-order, so children come before their
  parent and a subtree occupies the contiguous node range
  [node_first[n], n]
- ``node_parent`` links each node to its parent (-1 for a tree root)
- ``node_op`` is the operation a node applies to its parent
- ``node_sign`` is +1 or -1 per leaf: the parity of DIFFERENCE links on the
  path from the leaf up to (not including) the tree root. A boundary of the
  composite solid taken from that leaf has its normal multiplied by it.

Top-level objects reference the root node of their tree together with the
pigment and finish used for shading.

Example:
    >>> from src.csgtrace.scene.shapes import CSGChild, CSGInfo, CSGOperation, SphereInfo
    >>> root = add_shape(CSGInfo([
    ...     CSGChild(CSGOperation.UNION, SphereInfo((0, 0, 0), 2.0)),
    ...     CSGChild(CSGOperation.DIFFERENCE, SphereInfo((1, 0, 0), 1.0)),
    ... ]))
    >>> add_object(root, pigment_index=0, finish_index=0)
"""

import logging

import taichi as ti

from src.csgtrace.core.ray import real, vec3, vec4
from src.csgtrace.geometry.polyhedron import make_plane
from src.csgtrace.geometry.quadric import Quadric
from src.csgtrace.geometry.sphere import Sphere
from src.csgtrace.scene.shapes import (
    CSGInfo,
    CSGOperation,
    PolyhedronInfo,
    QuadricInfo,
    Shape,
    ShapeKind,
    SphereInfo,
    count_nodes,
    validate_shape,
)

logger = logging.getLogger(__name__)

# Maximum number of entries per table
MAX_SPHERES = 1024
MAX_PLANES = 4096
MAX_QUADRICS = 1024
MAX_NODES = 4096
MAX_OBJECTS = 1024

# Per-tree limits of the CSG evaluator (node membership lives in a 64-bit mask)
MAX_CSG_NODES = 32
MAX_CSG_EVENTS = 2 * MAX_CSG_NODES

# Sphere storage
sphere_centers = ti.Vector.field(3, dtype=real, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=real, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Plane storage: polyhedra own contiguous runs of unit-normal planes
plane_coeffs = ti.Vector.field(4, dtype=real, shape=MAX_PLANES)
num_planes = ti.field(dtype=ti.i32, shape=())

# Quadric storage, grouped by degree
quadric_quadratic = ti.Vector.field(3, dtype=real, shape=MAX_QUADRICS)
quadric_mixed = ti.Vector.field(3, dtype=real, shape=MAX_QUADRICS)
quadric_linear = ti.Vector.field(3, dtype=real, shape=MAX_QUADRICS)
quadric_constant = ti.field(dtype=real, shape=MAX_QUADRICS)
num_quadrics = ti.field(dtype=ti.i32, shape=())

# Flattened shape trees
node_kind = ti.field(dtype=ti.i32, shape=MAX_NODES)
# Index into the sphere/quadric table, or first plane of a polyhedron
node_data = ti.field(dtype=ti.i32, shape=MAX_NODES)
# Plane count of a polyhedron, child count of a CSG node
node_count = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_first = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_parent = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_op = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_sign = ti.field(dtype=real, shape=MAX_NODES)
num_nodes = ti.field(dtype=ti.i32, shape=())

# Top-level objects
object_root = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_pigment = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
object_finish = ti.field(dtype=ti.i32, shape=MAX_OBJECTS)
num_objects = ti.field(dtype=ti.i32, shape=())


def clear_primitives() -> None:
    """Remove all shapes and objects.

    Only the counters are reset; stale field data is overwritten by later
    insertions.
    """
    num_spheres[None] = 0
    num_planes[None] = 0
    num_quadrics[None] = 0
    num_nodes[None] = 0
    num_objects[None] = 0


def _requirements(shape: Shape) -> tuple[int, int, int, int]:
    """Table entries a shape tree needs: (nodes, spheres, planes, quadrics)."""
    if isinstance(shape, SphereInfo):
        return 1, 1, 0, 0
    if isinstance(shape, PolyhedronInfo):
        return 1, 0, len(shape.planes), 0
    if isinstance(shape, QuadricInfo):
        return 1, 0, 0, 1
    nodes, spheres, planes, quadrics = 1, 0, 0, 0
    for child in shape.children:
        n, s, p, q = _requirements(child.shape)
        nodes += n
        spheres += s
        planes += p
        quadrics += q
    return nodes, spheres, planes, quadrics


def _check_capacity(shape: Shape) -> None:
    nodes, spheres, planes, quadrics = _requirements(shape)
    for name, needed, used, limit in (
        ("nodes", nodes, num_nodes[None], MAX_NODES),
        ("spheres", spheres, num_spheres[None], MAX_SPHERES),
        ("planes", planes, num_planes[None], MAX_PLANES),
        ("quadrics", quadrics, num_quadrics[None], MAX_QUADRICS),
    ):
        if used + needed > limit:
            raise RuntimeError(f"Maximum number of {name} ({limit}) exceeded")


def _append_node(kind: ShapeKind, data: int, count: int, first: int, op: int, sign: float) -> int:
    idx = num_nodes[None]
    node_kind[idx] = int(kind)
    node_data[idx] = data
    node_count[idx] = count
    node_first[idx] = first
    node_parent[idx] = -1
    node_op[idx] = op
    node_sign[idx] = sign
    num_nodes[None] = idx + 1
    return idx


def _store_sphere(shape: SphereInfo) -> int:
    idx = num_spheres[None]
    sphere_centers[idx] = vec3(shape.center[0], shape.center[1], shape.center[2])
    sphere_radii[idx] = shape.radius
    num_spheres[None] = idx + 1
    return idx


def _store_planes(shape: PolyhedronInfo) -> int:
    first = num_planes[None]
    for k, (a, b, c, d) in enumerate(shape.planes):
        coeffs = make_plane(a, b, c, d)
        plane_coeffs[first + k] = vec4(coeffs[0], coeffs[1], coeffs[2], coeffs[3])
    num_planes[None] = first + len(shape.planes)
    return first


def _store_quadric(shape: QuadricInfo) -> int:
    a, b, c, d, e, f, g, h, i, j = shape.coefficients
    idx = num_quadrics[None]
    quadric_quadratic[idx] = vec3(a, b, c)
    quadric_mixed[idx] = vec3(d, e, f)
    quadric_linear[idx] = vec3(g, h, i)
    quadric_constant[idx] = j
    num_quadrics[None] = idx + 1
    return idx


def _flatten(shape: Shape, op: CSGOperation, sign: float) -> int:
    """Write a shape tree in post-order and return its root node."""
    first = num_nodes[None]
    if isinstance(shape, CSGInfo):
        children = []
        for child in shape.children:
            child_sign = -sign if child.operation == CSGOperation.DIFFERENCE else sign
            children.append(_flatten(child.shape, child.operation, child_sign))
        node = _append_node(ShapeKind.CSG, -1, len(children), first, int(op), sign)
        for child_node in children:
            node_parent[child_node] = node
        return node

    if isinstance(shape, SphereInfo):
        return _append_node(ShapeKind.SPHERE, _store_sphere(shape), 0, first, int(op), sign)
    if isinstance(shape, PolyhedronInfo):
        data = _store_planes(shape)
        return _append_node(
            ShapeKind.POLYHEDRON, data, len(shape.planes), first, int(op), sign
        )
    return _append_node(ShapeKind.QUADRIC, _store_quadric(shape), 0, first, int(op), sign)


def add_shape(shape: Shape) -> int:
    """Flatten a shape tree into the node table.

    Args:
        shape: A SphereInfo, PolyhedronInfo, QuadricInfo or CSGInfo tree.

    Returns:
        The node index of the tree root.

    Raises:
        ValueError: If the shape is malformed or a CSG tree has more than
            MAX_CSG_NODES nodes.
        RuntimeError: If a table would overflow. Nothing is written then.
    """
    validate_shape(shape)
    n_nodes = count_nodes(shape)
    if isinstance(shape, CSGInfo) and n_nodes > MAX_CSG_NODES:
        raise ValueError(
            f"CSG tree has {n_nodes} nodes, the evaluator supports at most {MAX_CSG_NODES}"
        )
    _check_capacity(shape)
    root = _flatten(shape, CSGOperation.UNION, 1.0)
    logger.debug("Flattened %s into nodes %d..%d", type(shape).__name__, root - n_nodes + 1, root)
    return root


def add_object(root_node: int, pigment_index: int, finish_index: int) -> int:
    """Register a top-level object.

    Index ranges are validated by SceneManager, which knows the pigment and
    finish tables.

    Args:
        root_node: Root node returned by add_shape().
        pigment_index: Pigment used to color the object.
        finish_index: Finish used to shade the object.

    Returns:
        The object index.

    Raises:
        RuntimeError: If the maximum number of objects is exceeded.
        ValueError: If root_node is not the root of a stored tree.
    """
    if root_node < 0 or root_node >= num_nodes[None] or node_parent[root_node] != -1:
        raise ValueError(f"Invalid root node: {root_node}")
    idx = num_objects[None]
    if idx >= MAX_OBJECTS:
        raise RuntimeError(f"Maximum number of objects ({MAX_OBJECTS}) exceeded")
    object_root[idx] = root_node
    object_pigment[idx] = pigment_index
    object_finish[idx] = finish_index
    num_objects[None] = idx + 1
    return idx


def get_object_count() -> int:
    """Get the number of top-level objects."""
    return int(num_objects[None])


def get_node_count() -> int:
    """Get the number of stored shape nodes."""
    return int(num_nodes[None])


# =============================================================================
# Taichi accessors
# =============================================================================


@ti.func
def get_sphere(index: ti.i32) -> Sphere:
    """Build the Sphere stored at ``index``."""
    return Sphere(center=sphere_centers[index], radius=sphere_radii[index])


@ti.func
def get_quadric(index: ti.i32) -> Quadric:
    """Build the Quadric stored at ``index``."""
    return Quadric(
        quadratic=quadric_quadratic[index],
        mixed=quadric_mixed[index],
        linear=quadric_linear[index],
        constant=quadric_constant[index],
    )

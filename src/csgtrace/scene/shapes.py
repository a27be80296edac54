"""Python-side shape tree.

Scenes are described with these plain dataclasses before they are flattened
into Taichi fields by ``scene.primitives.add_shape``. A shape is one of
SphereInfo, PolyhedronInfo, QuadricInfo or CSGInfo; a CSGInfo owns an
ordered list of CSGChild entries, each pairing a boolean operation with a
child shape (which may itself be a CSGInfo).

This module holds no Taichi state and can be imported before ``ti.init()``.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Union


class CSGOperation(IntEnum):
    """Boolean operation applied by a CSG child to its parent."""

    UNION = 0
    DIFFERENCE = 1


class ShapeKind(IntEnum):
    """Node kinds of the flattened shape table."""

    SPHERE = 0
    POLYHEDRON = 1
    QUADRIC = 2
    CSG = 3


Vector3 = tuple[float, float, float]
PlaneCoefficients = tuple[float, float, float, float]


@dataclass
class SphereInfo:
    """A sphere.

    Attributes:
        center: The center of the sphere.
        radius: The radius of the sphere (non-negative).
    """

    center: Vector3
    radius: float


@dataclass
class PolyhedronInfo:
    """A convex polyhedron bounded by planes a*x + b*y + c*z + d = 0.

    The solid is the region where every plane evaluates to <= 0.

    Attributes:
        planes: The (a, b, c, d) coefficients of each face, in any scale.
    """

    planes: list[PlaneCoefficients]


@dataclass
class QuadricInfo:
    """A general quadric surface.

    Attributes:
        coefficients: (A, B, C, D, E, F, G, H, I, J) of
            A x^2 + B y^2 + C z^2 + D xy + E xz + F yz + G x + H y + I z + J = 0.
    """

    coefficients: tuple[float, ...]


@dataclass
class CSGChild:
    """One operand of a CSG node."""

    operation: CSGOperation
    shape: "Shape"


@dataclass
class CSGInfo:
    """A boolean combination of child shapes.

    A point is inside the combination when it is inside at least one UNION
    child and inside no DIFFERENCE child.

    Attributes:
        children: Ordered operands.
    """

    children: list[CSGChild] = field(default_factory=list)


Shape = Union[SphereInfo, PolyhedronInfo, QuadricInfo, CSGInfo]


def shape_kind(shape: Shape) -> ShapeKind:
    """Return the node kind of a shape.

    Raises:
        TypeError: If ``shape`` is not one of the shape dataclasses.
    """
    if isinstance(shape, SphereInfo):
        return ShapeKind.SPHERE
    if isinstance(shape, PolyhedronInfo):
        return ShapeKind.POLYHEDRON
    if isinstance(shape, QuadricInfo):
        return ShapeKind.QUADRIC
    if isinstance(shape, CSGInfo):
        return ShapeKind.CSG
    raise TypeError(f"Unsupported shape type: {type(shape).__name__}")


def validate_shape(shape: Shape) -> None:
    """Check a shape tree for malformed entries.

    Raises:
        ValueError: If a sphere radius is negative, a polyhedron has no
            planes or a plane has the wrong arity, a quadric does not have
            ten coefficients, or a CSG node has no children.
        TypeError: If a node is not a shape dataclass.
    """
    kind = shape_kind(shape)
    if kind == ShapeKind.SPHERE:
        if shape.radius < 0.0:
            raise ValueError(f"Sphere radius must be non-negative, got {shape.radius}")
    elif kind == ShapeKind.POLYHEDRON:
        if not shape.planes:
            raise ValueError("Polyhedron needs at least one plane")
        for plane in shape.planes:
            if len(plane) != 4:
                raise ValueError(f"Plane needs 4 coefficients, got {len(plane)}")
    elif kind == ShapeKind.QUADRIC:
        if len(shape.coefficients) != 10:
            raise ValueError(
                f"Quadric needs 10 coefficients, got {len(shape.coefficients)}"
            )
    else:
        if not shape.children:
            raise ValueError("CSG node needs at least one child")
        for child in shape.children:
            CSGOperation(child.operation)
            validate_shape(child.shape)


def count_nodes(shape: Shape) -> int:
    """Number of nodes in a shape tree (leaves and CSG nodes)."""
    if isinstance(shape, CSGInfo):
        return 1 + sum(count_nodes(child.shape) for child in shape.children)
    return 1


# =============================================================================
# Serialization
# =============================================================================


def shape_to_dict(shape: Shape) -> dict[str, Any]:
    """Convert a shape tree to plain JSON-compatible data."""
    kind = shape_kind(shape)
    if kind == ShapeKind.SPHERE:
        return {"type": "sphere", "center": list(shape.center), "radius": shape.radius}
    if kind == ShapeKind.POLYHEDRON:
        return {"type": "polyhedron", "planes": [list(p) for p in shape.planes]}
    if kind == ShapeKind.QUADRIC:
        return {"type": "quadric", "coefficients": list(shape.coefficients)}
    return {
        "type": "csg",
        "children": [
            {
                "operation": child.operation.name.lower(),
                "shape": shape_to_dict(child.shape),
            }
            for child in shape.children
        ],
    }


def shape_from_dict(data: dict[str, Any]) -> Shape:
    """Rebuild a shape tree from ``shape_to_dict`` output.

    Raises:
        ValueError: If the type tag or an operation name is unknown.
    """
    kind = data.get("type")
    if kind == "sphere":
        center = data["center"]
        return SphereInfo(center=(center[0], center[1], center[2]), radius=data["radius"])
    if kind == "polyhedron":
        return PolyhedronInfo(planes=[tuple(p) for p in data["planes"]])
    if kind == "quadric":
        return QuadricInfo(coefficients=tuple(data["coefficients"]))
    if kind == "csg":
        children = []
        for child in data["children"]:
            name = str(child["operation"]).upper()
            if name not in CSGOperation.__members__:
                raise ValueError(f"Unknown CSG operation: {child['operation']}")
            children.append(
                CSGChild(operation=CSGOperation[name], shape=shape_from_dict(child["shape"]))
            )
        return CSGInfo(children=children)
    raise ValueError(f"Unknown shape type: {kind}")

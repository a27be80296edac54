"""Scene module: shape trees, scene tables and ray-scene queries.

Components:
    shapes: Python-side shape tree (sphere, polyhedron, quadric, CSG)
    primitives: Taichi tables for shapes and top-level objects
    csg: CSG boundary sweep over flattened shape trees
    intersection: Closest-hit dispatch over the object list
    lights: Light table (light 0 is ambient)
    manager: SceneManager coordinating all tables
    loader: Reader for the text scene format

Everything except ``shapes`` declares or uses Taichi fields and must be
imported after ``ti.init()``; only the shape tree is exported here.
"""

from .shapes import (
    CSGChild,
    CSGInfo,
    CSGOperation,
    PolyhedronInfo,
    QuadricInfo,
    Shape,
    ShapeKind,
    SphereInfo,
    count_nodes,
    shape_from_dict,
    shape_kind,
    shape_to_dict,
    validate_shape,
)

__all__ = [
    "CSGChild",
    "CSGInfo",
    "CSGOperation",
    "PolyhedronInfo",
    "QuadricInfo",
    "Shape",
    "ShapeKind",
    "SphereInfo",
    "count_nodes",
    "shape_from_dict",
    "shape_kind",
    "shape_to_dict",
    "validate_shape",
]

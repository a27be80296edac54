"""Geometry module for the analytic ray-surface solvers.

Components:
    sphere: Sphere primitive, shared hit records and the robust quadratic
    polyhedron: Convex polyhedron clipped against half-spaces (slab method)
    quadric: General second-degree implicit surfaces

Every solver comes in two forms, both Taichi functions (@ti.func):
    hit_<shape>(): nearest hit above the self-intersection guard
    <shape>_crossings(): both boundary crossings, as used by the CSG evaluator
"""

from .polyhedron import hit_polyhedron, make_plane, polyhedron_crossings
from .quadric import Quadric, hit_quadric, quadric_coefficients, quadric_crossings, quadric_normal
from .sphere import Crossings, HitRecord, Sphere, hit_sphere, solve_quadratic, sphere_crossings

__all__ = [
    "Sphere",
    "HitRecord",
    "Crossings",
    "hit_sphere",
    "sphere_crossings",
    "solve_quadratic",
    "make_plane",
    "hit_polyhedron",
    "polyhedron_crossings",
    "Quadric",
    "quadric_coefficients",
    "quadric_normal",
    "hit_quadric",
    "quadric_crossings",
]

"""Taichi ray tracer for CSG scenes.

This package renders scenes made of spheres, convex polyhedra, general
quadrics and CSG unions/differences of them, shaded with a recursive Phong
model (soft shadows, glossy reflection and refraction), supersampling and
thin-lens depth of field.

Subpackages:
    core: Vector utilities, random streams, shading and the render loop
    geometry: Analytic ray-surface solvers
    scene: Object tables, CSG evaluation, lights, scene files
    materials: Pigments, textures and finishes
    camera: Thin-lens camera
    preview: Image export and on-screen preview

Modules:
    config: Render settings and Taichi initialisation
    cli: The ``render`` command
"""

__version__ = "0.1.0"

"""Core rendering module.

Components:
    ray: Ray data structure, 64-bit vector types and vector utilities
    sampler: Per-pixel random streams
    integrator: Recursive Phong shading and the render target
    progressive: Batched progressive rendering with callbacks

Only the ray module is imported here. sampler, integrator and progressive
declare Taichi fields, so they must be imported after ti.init(). Import
them directly, e.g.:
    from src.csgtrace.core.progressive import ProgressiveRenderer
"""

from .ray import (
    PARALLEL_EPSILON,
    T_EPSILON,
    T_FAR,
    Ray,
    clamp01,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    normalize,
    ray_at,
    real,
    reflect,
    refract,
    vec3,
    vec4,
)

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "real",
    "vec3",
    "vec4",
    "T_EPSILON",
    "T_FAR",
    "PARALLEL_EPSILON",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "clamp01",
    "reflect",
    "refract",
]

"""Finishes: the reflectance coefficients of the Phong shading model.

A finish holds:

- ambient (ka), diffuse (kd) and specular (ks) weights
- shininess (alpha), the Phong specular exponent; it also sets the
  roughness of glossy reflection (1/alpha) and refraction (5/alpha)
- reflectivity (kr) and transmissivity (kt), the weights of the reflected
  and refracted rays
- ior, the refractive index of the material relative to the outside
"""

import taichi as ti

from src.csgtrace.core.ray import real


@ti.dataclass
class Finish:
    """Material reflectance coefficients.

    Attributes:
        ambient: Weight of the ambient light.
        diffuse: Weight of the Lambert term.
        specular: Weight of the Blinn-Phong highlight.
        shininess: Specular exponent.
        reflectivity: Weight of the reflected ray.
        transmissivity: Weight of the refracted ray.
        ior: Refractive index ratio.
    """

    ambient: real
    diffuse: real
    specular: real
    shininess: real
    reflectivity: real
    transmissivity: real
    ior: real


# Maximum number of finishes in the scene
MAX_FINISHES = 256

finish_ambient = ti.field(dtype=real, shape=MAX_FINISHES)
finish_diffuse = ti.field(dtype=real, shape=MAX_FINISHES)
finish_specular = ti.field(dtype=real, shape=MAX_FINISHES)
finish_shininess = ti.field(dtype=real, shape=MAX_FINISHES)
finish_reflectivity = ti.field(dtype=real, shape=MAX_FINISHES)
finish_transmissivity = ti.field(dtype=real, shape=MAX_FINISHES)
finish_ior = ti.field(dtype=real, shape=MAX_FINISHES)
num_finishes = ti.field(dtype=ti.i32, shape=())


def clear_finishes() -> None:
    """Clear all finishes."""
    num_finishes[None] = 0


def add_finish(
    ambient: float = 0.0,
    diffuse: float = 0.0,
    specular: float = 0.0,
    shininess: float = 1.0,
    reflectivity: float = 0.0,
    transmissivity: float = 0.0,
    ior: float = 1.0,
) -> int:
    """Add a finish to the registry.

    Defaults match an unlit, non-reflective surface.

    Returns:
        The index of the added finish.

    Raises:
        RuntimeError: If the maximum number of finishes is exceeded.
        ValueError: If a weight or the shininess is negative, or ior is not
            positive.
    """
    weights = {
        "ambient": ambient,
        "diffuse": diffuse,
        "specular": specular,
        "shininess": shininess,
        "reflectivity": reflectivity,
        "transmissivity": transmissivity,
    }
    for name, value in weights.items():
        if value < 0.0:
            raise ValueError(f"Finish {name} must be non-negative, got {value}")
    if ior <= 0.0:
        raise ValueError(f"Finish ior must be positive, got {ior}")

    idx = num_finishes[None]
    if idx >= MAX_FINISHES:
        raise RuntimeError(f"Maximum number of finishes ({MAX_FINISHES}) exceeded")

    finish_ambient[idx] = ambient
    finish_diffuse[idx] = diffuse
    finish_specular[idx] = specular
    finish_shininess[idx] = shininess
    finish_reflectivity[idx] = reflectivity
    finish_transmissivity[idx] = transmissivity
    finish_ior[idx] = ior
    num_finishes[None] = idx + 1
    return idx


def get_finish_count() -> int:
    """Get the number of finishes in the registry."""
    return int(num_finishes[None])


@ti.func
def get_finish(index: ti.i32) -> Finish:
    """Get the finish stored at ``index``."""
    return Finish(
        ambient=finish_ambient[index],
        diffuse=finish_diffuse[index],
        specular=finish_specular[index],
        shininess=finish_shininess[index],
        reflectivity=finish_reflectivity[index],
        transmissivity=finish_transmissivity[index],
        ior=finish_ior[index],
    )

"""Light table.

A light has a position, a color and a quadratic attenuation triple
(constant, linear, quadratic): at distance d its diffuse and specular
contributions are scaled by 1 / (constant + linear*d + quadratic*d^2).

Light 0 is the ambient light. Only its color is used, as the ambient term
of every surface; it casts no shadows and adds no diffuse or specular
light. Every following light is a point light sampled as a small sphere for
soft shadows.
"""

import taichi as ti

from src.csgtrace.core.ray import real, vec3

# Maximum number of lights (the ambient light included)
MAX_LIGHTS = 64

light_positions = ti.Vector.field(3, dtype=real, shape=MAX_LIGHTS)
light_colors = ti.Vector.field(3, dtype=real, shape=MAX_LIGHTS)
light_attenuations = ti.Vector.field(3, dtype=real, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Clear all lights."""
    num_lights[None] = 0


def add_light(
    position: tuple[float, float, float],
    color: tuple[float, float, float],
    attenuation: tuple[float, float, float] = (1.0, 0.0, 0.0),
) -> int:
    """Add a light.

    Args:
        position: Light position (ignored for the ambient light).
        color: Light color.
        attenuation: (constant, linear, quadratic) coefficients.

    Returns:
        The light index. The first light added is the ambient light.

    Raises:
        RuntimeError: If the maximum number of lights is exceeded.
        ValueError: If a color or attenuation component is negative, or all
            attenuation coefficients of a point light are zero.
    """
    for i, component in enumerate(color):
        if component < 0.0:
            raise ValueError(f"Light color component {i} = {component} is negative")
    if any(a < 0.0 for a in attenuation):
        raise ValueError(f"Attenuation coefficients must be non-negative, got {attenuation}")
    idx = num_lights[None]
    if idx > 0 and not any(a > 0.0 for a in attenuation):
        raise ValueError("At least one attenuation coefficient of a point light must be positive")
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")

    light_positions[idx] = vec3(position[0], position[1], position[2])
    light_colors[idx] = vec3(color[0], color[1], color[2])
    light_attenuations[idx] = vec3(attenuation[0], attenuation[1], attenuation[2])
    num_lights[None] = idx + 1
    return idx


def get_light_count() -> int:
    """Get the number of lights, the ambient light included."""
    return int(num_lights[None])


@ti.func
def attenuation_factor(index: ti.i32, distance: real) -> real:
    """1 / (constant + linear*d + quadratic*d^2) for light ``index``."""
    a = light_attenuations[index]
    return 1.0 / (a[0] + a[1] * distance + a[2] * distance * distance)

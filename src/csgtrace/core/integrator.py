"""Recursive Phong ray tracer with soft shadows and glossy secondary rays.

Each camera ray is shaded with a Phong model:

- ambient: pigment color * color of light 0 * ka
- for every other light, one shadow ray aimed at a random point of a
  sphere of radius LIGHT_RADIUS around the light; if nothing blocks it the
  Lambert term (kd * max(0, N.L)) and the Blinn-Phong highlight
  (ks * max(0, N.H)^alpha) are added, scaled by the light's attenuation
- a reflected ray weighted by kr, its mirror direction jittered by the
  roughness 1/alpha (the jitter is dropped if it would point into the
  surface)
- a refracted ray weighted by kt, following Snell's law (skipped on total
  internal reflection) and jittered by the roughness 5/alpha

and every level clamps its color to [0, 1]. Rays that miss everything are
black.

Taichi functions cannot recurse, so the recursion is unrolled over a
complete binary tree of ray nodes. Node 0 is the camera ray; node k spawns
its reflected ray at 2k+1 and its refracted ray at 2k+2. A forward pass in
level order traces each active node and spawns its children, then a
backward pass combines them exactly as the recursive definition would:

    color[k] = clamp(local[k] + kr*color[2k+1] + kt*color[2k+2])

Nodes at depth MAX_DEPTH are traced but spawn nothing, so at most
2^(MAX_DEPTH+1) - 1 rays are traced per camera sample.

Example:
    >>> from src.csgtrace.core.integrator import render_image, setup_render_target
    >>> setup_render_target(320, 240)
    >>> render_image(num_samples=16)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.csgtrace.camera.thin_lens import get_ray_jittered
from src.csgtrace.config import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH
from src.csgtrace.core.ray import clamp01, length, normalize, real, reflect, refract, vec3
from src.csgtrace.core.sampler import ensure_seeded, pixel_stream, random_in_cube, random_in_unit_sphere
from src.csgtrace.materials.finish import get_finish
from src.csgtrace.materials.pigment import pigment_color
from src.csgtrace.scene.intersection import find_closest_hit
from src.csgtrace.scene.lights import attenuation_factor, light_colors, light_positions, num_lights
from src.csgtrace.scene.primitives import object_finish, object_pigment

logger = logging.getLogger(__name__)

# =============================================================================
# Shading Constants
# =============================================================================

# Deepest recursion level that is still traced
MAX_DEPTH = 5

# Ray nodes of a complete binary tree of depth MAX_DEPTH
TREE_SIZE = 2 ** (MAX_DEPTH + 1) - 1

# Shadow ray origin offset along the normal, larger at grazing angles
SHADOW_BIAS = 1e-3
GRAZING_SHADOW_BIAS = 1e-2
GRAZING_COSINE = 0.1

# Radius of the sphere sampled around each point light
LIGHT_RADIUS = 0.5

# An occluder must be at least this much closer than the light sample
SHADOW_TOLERANCE = 1e-4

# Offset of reflected and refracted ray origins
SECONDARY_OFFSET = 1e-3

# Roughness scales of glossy reflection and refraction (divided by alpha)
REFLECTION_ROUGHNESS = 1.0
REFRACTION_ROUGHNESS = 5.0

# At or below this shininess the roughness is 1
MIN_SHININESS = 1e-3


# =============================================================================
# Render Target
# =============================================================================

# Active (width, height); (0, 0) until setup_render_target() runs
_image_size = ti.Vector.field(2, dtype=ti.i32, shape=())

# Per-pixel color sums over all samples, indexed [i, j] with j = 0 at the
# bottom, preallocated at the maximum size so kernels never recompile
_color_sums = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Every pixel receives the same number of samples
_samples_taken = ti.field(dtype=ti.i32, shape=())

# Primary and secondary rays traced since the last clear
_rays_traced = ti.field(dtype=ti.i64, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Make ``width`` x ``height`` the active image size and clear it.

    Random streams that were never seeded get sampler.DEFAULT_SEED.

    Raises:
        ValueError: If a dimension is not positive or exceeds the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions {width}x{height} exceed the maximum of "
            f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
        )
    _image_size[None] = ti.Vector([width, height])
    clear_render_target()
    ensure_seeded()
    logger.debug("Render target set to %dx%d", width, height)


def clear_render_target() -> None:
    """Drop all accumulated samples."""
    _color_sums.fill(0.0)
    _samples_taken[None] = 0
    _rays_traced[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Active (width, height) of the render target."""
    size = _image_size[None]
    return int(size[0]), int(size[1])


def _active_size() -> tuple[int, int]:
    width, height = get_image_dimensions()
    if width == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")
    return width, height


# =============================================================================
# Shading
# =============================================================================


@ti.func
def direct_lighting(
    object_index: ti.i32,
    point: vec3,
    normal: vec3,
    view_origin: vec3,
    stream: ti.i32,
) -> vec3:
    """Ambient, diffuse and specular light at a surface point.

    Args:
        object_index: The object that was hit.
        point: The hit point.
        normal: The surface normal at the hit point.
        view_origin: Origin of the ray that hit the point.
        stream: Random stream for the light samples.

    Returns:
        The local (unclamped) color.
    """
    finish = get_finish(object_finish[object_index])
    base = pigment_color(object_pigment[object_index], point)

    color = vec3(0.0, 0.0, 0.0)
    if num_lights[None] > 0:
        color = base * light_colors[0] * finish.ambient
    view = normalize(view_origin - point)

    for i in range(1, num_lights[None]):
        to_light = light_positions[i] - point
        light_dir = normalize(to_light)
        light_dist = length(to_light)

        bias = SHADOW_BIAS
        if ti.abs(tm.dot(normal, light_dir)) < GRAZING_COSINE:
            bias = GRAZING_SHADOW_BIAS
        shadow_origin = point + normal * bias

        sample = light_positions[i] + random_in_unit_sphere(stream) * LIGHT_RADIUS
        to_sample = sample - shadow_origin
        sample_dist = length(to_sample)
        blocker = find_closest_hit(shadow_origin, normalize(to_sample))

        if not (blocker.hit == 1 and blocker.t < sample_dist - SHADOW_TOLERANCE):
            attenuation = attenuation_factor(i, light_dist)
            light_color = light_colors[i]

            diffuse = ti.max(0.0, tm.dot(normal, light_dir))
            color += base * light_color * finish.diffuse * diffuse * attenuation

            halfway = normalize(light_dir + view)
            specular = tm.pow(ti.max(0.0, tm.dot(normal, halfway)), finish.shininess)
            color += light_color * finish.specular * specular * attenuation

    return color


@ti.func
def _roughness(shininess: real, scale: real) -> real:
    result = 1.0
    if shininess > MIN_SHININESS:
        result = scale / shininess
    return result


@ti.func
def glossy_reflection(direction: vec3, normal: vec3, shininess: real, stream: ti.i32) -> vec3:
    """Mirror direction perturbed by a roughness-scaled jitter.

    The perturbation is dropped when it would point into the surface.
    """
    mirror = normalize(reflect(direction, normal))
    jitter = random_in_cube(stream)
    perturbed = normalize(mirror + jitter * _roughness(shininess, REFLECTION_ROUGHNESS))
    if tm.dot(perturbed, normal) < 0.0:
        perturbed = mirror
    return perturbed


@ti.func
def glossy_refraction(direction: vec3, normal: vec3, ior: real, shininess: real, stream: ti.i32):
    """Refracted direction perturbed by a roughness-scaled jitter.

    Returns:
        Tuple (offset_direction, direction, ok). offset_direction is the
        unperturbed refraction, along which the new origin is offset. ok is
        0 on total internal reflection, and no random number is drawn then.
    """
    refracted, ok = refract(direction, normal, ior)
    perturbed = refracted
    if ok == 1:
        jitter = random_in_cube(stream)
        perturbed = normalize(refracted + jitter * _roughness(shininess, REFRACTION_ROUGHNESS))
    return refracted, perturbed, ok


@ti.func
def _tree_depth(node: ti.i32) -> ti.i32:
    """Depth of a node of the level-ordered ray tree (root = 0)."""
    depth = 0
    m = node + 1
    while m > 1:
        m = m >> 1
        depth += 1
    return depth


@ti.func
def trace_ray(ray_origin: vec3, ray_direction: vec3, stream: ti.i32):
    """Shade a ray, following reflections and refractions to MAX_DEPTH.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        stream: Random stream for every stochastic term.

    Returns:
        Tuple (color, rays_traced). color is clamped to [0, 1];
        rays_traced counts the camera ray and every secondary ray traced
        (shadow rays excluded), at most TREE_SIZE.
    """
    active = ti.Vector.zero(ti.i32, TREE_SIZE)
    origins = ti.Matrix.zero(real, TREE_SIZE, 3)
    directions = ti.Matrix.zero(real, TREE_SIZE, 3)
    local = ti.Matrix.zero(real, TREE_SIZE, 3)
    combined = ti.Matrix.zero(real, TREE_SIZE, 3)
    reflect_weight = ti.Vector.zero(real, TREE_SIZE)
    refract_weight = ti.Vector.zero(real, TREE_SIZE)

    active[0] = 1
    for c in ti.static(range(3)):
        origins[0, c] = ray_origin[c]
        directions[0, c] = ray_direction[c]

    rays = 0

    # Forward pass: trace nodes in level order and spawn children
    for k in range(TREE_SIZE):
        if active[k] == 1:
            rays += 1
            origin = vec3(origins[k, 0], origins[k, 1], origins[k, 2])
            direction = vec3(directions[k, 0], directions[k, 1], directions[k, 2])
            rec = find_closest_hit(origin, direction)

            if rec.hit == 1:
                point = rec.point
                normal = rec.normal
                color = direct_lighting(rec.object_index, point, normal, origin, stream)
                for c in ti.static(range(3)):
                    local[k, c] = color[c]

                if _tree_depth(k) < MAX_DEPTH:
                    finish = get_finish(object_finish[rec.object_index])

                    if finish.reflectivity > 0.0:
                        child = 2 * k + 1
                        reflected = glossy_reflection(direction, normal, finish.shininess, stream)
                        child_origin = point + normal * SECONDARY_OFFSET
                        active[child] = 1
                        reflect_weight[k] = finish.reflectivity
                        for c in ti.static(range(3)):
                            origins[child, c] = child_origin[c]
                            directions[child, c] = reflected[c]

                    if finish.transmissivity > 0.0:
                        offset_dir, refracted, ok = glossy_refraction(
                            direction, normal, finish.ior, finish.shininess, stream
                        )
                        if ok == 1:
                            child = 2 * k + 2
                            child_origin = point + offset_dir * SECONDARY_OFFSET
                            active[child] = 1
                            refract_weight[k] = finish.transmissivity
                            for c in ti.static(range(3)):
                                origins[child, c] = child_origin[c]
                                directions[child, c] = refracted[c]

    # Backward pass: children before parents
    for step in range(TREE_SIZE):
        k = TREE_SIZE - 1 - step
        if active[k] == 1:
            color = vec3(local[k, 0], local[k, 1], local[k, 2])
            if 2 * k + 2 < TREE_SIZE:
                reflected = vec3(combined[2 * k + 1, 0], combined[2 * k + 1, 1], combined[2 * k + 1, 2])
                refracted = vec3(combined[2 * k + 2, 0], combined[2 * k + 2, 1], combined[2 * k + 2, 2])
                color += reflect_weight[k] * reflected + refract_weight[k] * refracted
            color = clamp01(color)
            for c in ti.static(range(3)):
                combined[k, c] = color[c]

    return vec3(combined[0, 0], combined[0, 1], combined[0, 2]), rays


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32):
    """Add one jittered sample to every pixel, each from its own stream."""
    for i, j in ti.ndrange(width, height):
        stream = pixel_stream(i, j)
        ray = get_ray_jittered(i, j, width, height, stream)
        color, rays = trace_ray(ray.origin, ray.direction, stream)

        # Degenerate geometry can produce NaN or Inf; such samples count as black
        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0

        _rays_traced[None] += ti.cast(rays, ti.i64)
        _color_sums[i, j] += ti.cast(color, ti.f32)


_query_color = ti.Vector.field(3, dtype=real, shape=())
_query_rays = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _trace_single_ray(origin: vec3, direction: vec3, stream: ti.i32):
    for _ in range(1):
        color, rays = trace_ray(origin, normalize(direction), stream)
        _query_color[None] = color
        _query_rays[None] = rays


@ti.kernel
def _render_single_pixel(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32):
    for _ in range(1):
        stream = pixel_stream(pixel_i, pixel_j)
        ray = get_ray_jittered(pixel_i, pixel_j, width, height, stream)
        color, rays = trace_ray(ray.origin, ray.direction, stream)
        _query_color[None] = color
        _query_rays[None] = rays


# =============================================================================
# Public Rendering API
# =============================================================================


def trace_single_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    stream: int = 0,
) -> tuple[tuple[float, float, float], int]:
    """Shade one ray from Python.

    Args:
        origin: Ray origin.
        direction: Ray direction (normalized before tracing).
        stream: Random stream to draw from.

    Returns:
        Tuple ((r, g, b), rays_traced).
    """
    ensure_seeded()
    _trace_single_ray(vec3(*origin), vec3(*direction), stream)
    color = _query_color[None]
    return (float(color[0]), float(color[1]), float(color[2])), int(_query_rays[None])


def render_sample(pixel_i: int, pixel_j: int) -> tuple[float, float, float]:
    """Trace one camera sample of a pixel and return its color.

    Nothing is accumulated; the pixel's random stream does advance.

    Args:
        pixel_i: Column, 0 at the left.
        pixel_j: Row, 0 at the bottom.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    width, height = _active_size()
    _render_single_pixel(pixel_i, pixel_j, width, height)
    color = _query_color[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(num_samples: int = 1) -> None:
    """Add ``num_samples`` samples to every pixel of the active image.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    width, height = _active_size()
    for _ in range(num_samples):
        _render_one_spp(width, height)
        _samples_taken[None] += 1


def get_total_samples() -> int:
    """Samples per pixel accumulated since the last clear.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _active_size()
    return int(_samples_taken[None])


def get_rays_traced() -> int:
    """Camera and secondary rays traced since the last clear."""
    return int(_rays_traced[None])


def get_normalized_image_numpy() -> npt.NDArray[np.float32]:
    """Average color of every pixel, shape (height, width, 3), top row first.

    An image without samples is black.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    width, height = _active_size()
    sums = _color_sums.to_numpy()[:width, :height, :]
    image = sums / max(1, int(_samples_taken[None]))

    # [i, j] from the bottom-left -> [row, column] from the top-left
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.clip(image, 0.0, 1.0).astype(np.float32)


def get_image_uint8() -> npt.NDArray[np.uint8]:
    """Average colors as bytes, round(clamp(c) * 255), top row first."""
    image = get_normalized_image_numpy()
    return np.rint(image.astype(np.float64) * 255.0).astype(np.uint8)

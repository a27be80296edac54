"""General quadric surface primitive.

A quadric is the zero set of

    A x^2 + B y^2 + C z^2 + D xy + E xz + F yz + G x + H y + I z + J = 0

The ten coefficients are grouped by degree in the Quadric dataclass:
``quadratic = (A, B, C)``, ``mixed = (D, E, F)``, ``linear = (G, H, I)`` and
``constant = J``. The surface normal is the normalized gradient of the
implicit function, so for closed quadrics with a negative interior (e.g.
J = -r^2 spheres) it points outward.
"""

import taichi as ti
import taichi.math as tm

from src.csgtrace.core.ray import T_EPSILON, normalize, real, vec3
from src.csgtrace.geometry.sphere import (
    Crossings,
    HitRecord,
    make_miss,
    make_no_crossings,
    pick_nearest_root,
    solve_quadratic,
)

# Below this |a| the ray equation is treated as linear
DEGENERATE_EPSILON = 1e-12


@ti.dataclass
class Quadric:
    """Coefficients of a general second-degree surface.

    Attributes:
        quadratic: (A, B, C), the x^2, y^2, z^2 terms.
        mixed: (D, E, F), the xy, xz, yz terms.
        linear: (G, H, I), the x, y, z terms.
        constant: J.
    """

    quadratic: vec3
    mixed: vec3
    linear: vec3
    constant: real


@ti.func
def quadric_coefficients(ray_origin: vec3, ray_direction: vec3, q: Quadric):
    """Expand the quadric along the ray into a*t^2 + b*t + c.

    Returns:
        Tuple (a, b, c).
    """
    o = ray_origin
    d = ray_direction
    qa = q.quadratic
    qm = q.mixed

    a = (
        qa[0] * d[0] * d[0]
        + qa[1] * d[1] * d[1]
        + qa[2] * d[2] * d[2]
        + qm[0] * d[0] * d[1]
        + qm[1] * d[0] * d[2]
        + qm[2] * d[1] * d[2]
    )
    b = (
        2.0 * (qa[0] * o[0] * d[0] + qa[1] * o[1] * d[1] + qa[2] * o[2] * d[2])
        + qm[0] * (o[0] * d[1] + o[1] * d[0])
        + qm[1] * (o[0] * d[2] + o[2] * d[0])
        + qm[2] * (o[1] * d[2] + o[2] * d[1])
        + tm.dot(q.linear, d)
    )
    c = (
        qa[0] * o[0] * o[0]
        + qa[1] * o[1] * o[1]
        + qa[2] * o[2] * o[2]
        + qm[0] * o[0] * o[1]
        + qm[1] * o[0] * o[2]
        + qm[2] * o[1] * o[2]
        + tm.dot(q.linear, o)
        + q.constant
    )
    return a, b, c


@ti.func
def quadric_normal(point: vec3, q: Quadric) -> vec3:
    """Normalized gradient of the implicit function at ``point``."""
    qa = q.quadratic
    qm = q.mixed
    grad = vec3(
        2.0 * qa[0] * point[0] + qm[0] * point[1] + qm[1] * point[2] + q.linear[0],
        2.0 * qa[1] * point[1] + qm[0] * point[0] + qm[2] * point[2] + q.linear[1],
        2.0 * qa[2] * point[2] + qm[1] * point[0] + qm[2] * point[1] + q.linear[2],
    )
    return normalize(grad)


@ti.func
def hit_quadric(ray_origin: vec3, ray_direction: vec3, q: Quadric) -> HitRecord:
    """Test for ray-quadric intersection.

    Roots are chosen as for spheres: the smaller one first, then the larger
    one if the smaller is below T_EPSILON. When the t^2 term vanishes (the
    ray runs parallel to an asymptotic direction, e.g. along a cylinder
    axis or a paraboloid's axis) the single root of b*t + c = 0 is used.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        q: The quadric coefficients.

    Returns:
        A HitRecord whose normal is the surface gradient.
    """
    a, b, c = quadric_coefficients(ray_origin, ray_direction, q)

    t = -1.0
    if ti.abs(a) < DEGENERATE_EPSILON:
        if ti.abs(b) >= DEGENERATE_EPSILON:
            t = -c / b
            if t < T_EPSILON:
                t = -1.0
    else:
        h = 0.5 * b
        discriminant = h * h - a * c
        if discriminant >= 0.0:
            t0, t1 = solve_quadratic(a, h, c, tm.sqrt(discriminant))
            t = pick_nearest_root(t0, t1)

    result = make_miss()
    if t > 0.0:
        point = ray_origin + t * ray_direction
        result = HitRecord(hit=1, t=t, point=point, normal=quadric_normal(point, q))
    return result


@ti.func
def quadric_crossings(ray_origin: vec3, ray_direction: vec3, q: Quadric) -> Crossings:
    """Return both roots of the ray equation with their gradient normals.

    A degenerate (linear) equation has at most one root, which cannot bound
    an interval, so it yields no crossings.
    """
    a, b, c = quadric_coefficients(ray_origin, ray_direction, q)

    result = make_no_crossings()
    if ti.abs(a) >= DEGENERATE_EPSILON:
        h = 0.5 * b
        discriminant = h * h - a * c
        if discriminant >= 0.0:
            t0, t1 = solve_quadratic(a, h, c, tm.sqrt(discriminant))
            result = Crossings(
                count=2,
                t_near=t0,
                normal_near=quadric_normal(ray_origin + t0 * ray_direction, q),
                t_far=t1,
                normal_far=quadric_normal(ray_origin + t1 * ray_direction, q),
            )
    return result

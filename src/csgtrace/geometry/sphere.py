"""Ray-sphere solvers and the hit records shared by every primitive.

Two entry points:

- hit_sphere(): the nearest valid hit (t above the self-intersection guard)
- sphere_crossings(): both boundary crossings, including negative t, as
  consumed by the CSG evaluator

Roots come from the robust quadratic formula from Ray Tracing Gems, which
avoids catastrophic cancellation when b^2 is nearly equal to 4ac.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.csgtrace.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=vec3(0, 0, -5), radius=1.0)
    >>> # hit_sphere(origin, direction, sphere) inside a kernel or ti.func
"""

import taichi as ti
import taichi.math as tm

from src.csgtrace.core.ray import T_EPSILON, normalize, real, vec3


@ti.dataclass
class Sphere:
    """Center and (positive) radius."""

    center: vec3
    radius: real


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: 1 on a hit, 0 on a miss. The other fields are undefined on a miss.
        t: Ray parameter of the hit.
        point: Hit position.
        normal: Unit normal as the primitive defines it (outward for
            spheres, along the gradient for quadrics), never flipped
            toward the ray.
    """

    hit: ti.i32
    t: real
    point: vec3
    normal: vec3


@ti.dataclass
class Crossings:
    """Both boundary crossings of a ray with a closed primitive.

    Attributes:
        count: 2 when the ray crosses the primitive, 0 otherwise.
        t_near: Parameter of the first crossing (may be negative).
        normal_near: Unit outward normal at the first crossing.
        t_far: Parameter of the second crossing.
        normal_far: Unit outward normal at the second crossing.
    """

    count: ti.i32
    t_near: real
    normal_near: vec3
    t_far: real
    normal_far: vec3


@ti.func
def make_miss() -> HitRecord:
    """Create a HitRecord indicating no intersection."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
    )


@ti.func
def make_no_crossings() -> Crossings:
    """Create an empty Crossings record."""
    return Crossings(
        count=0,
        t_near=0.0,
        normal_near=vec3(0.0, 0.0, 0.0),
        t_far=0.0,
        normal_far=vec3(0.0, 0.0, 0.0),
    )


@ti.func
def solve_quadratic(a: real, h: real, c: real, sqrt_d: real):
    """Both roots of a*t^2 + 2*h*t + c = 0 without cancellation (Ray Tracing Gems).

    Args:
        a: Quadratic coefficient (non-zero, any sign).
        h: Half the linear coefficient.
        c: Constant coefficient.
        sqrt_d: sqrt(h^2 - a*c), already known to be real.

    Returns:
        (t0, t1) with t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-300:
        # Tangent ray with h == 0 and zero discriminant
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def pick_nearest_root(t0: real, t1: real) -> real:
    """Choose the smaller root, falling back to the larger one.

    Returns:
        The first root above T_EPSILON, or -1.0 when neither qualifies.
    """
    t = t0
    if t < T_EPSILON:
        t = t1
    if t < T_EPSILON:
        t = -1.0
    return t


@ti.func
def hit_sphere(ray_origin: vec3, ray_direction: vec3, sphere: Sphere) -> HitRecord:
    """Nearest hit of a ray with a sphere.

    With oc = O - C, the ray satisfies |oc + tD|^2 = r^2, i.e.
    a = D.D, h = D.oc and c = oc.oc - r^2 in a*t^2 + 2*h*t + c = 0.

    The smaller root wins unless it is below T_EPSILON, in which case the
    larger root is tried (ray origin inside the sphere).

    Args:
        ray_origin: Ray origin.
        ray_direction: Unit ray direction.
        sphere: Sphere to test.

    Returns:
        A HitRecord whose normal is (point - center) normalized.
    """
    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    result = make_miss()

    if discriminant >= 0.0 and a > 0.0:
        t0, t1 = solve_quadratic(a, h, c, tm.sqrt(discriminant))
        t = pick_nearest_root(t0, t1)
        if t > 0.0:
            point = ray_origin + t * ray_direction
            result = HitRecord(
                hit=1,
                t=t,
                point=point,
                normal=normalize(point - sphere.center),
            )

    return result


@ti.func
def sphere_crossings(ray_origin: vec3, ray_direction: vec3, sphere: Sphere) -> Crossings:
    """Return both crossings of a ray with a sphere, whatever their sign.

    A tangent ray yields two crossings at the same t.
    """
    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    result = make_no_crossings()

    if discriminant >= 0.0 and a > 0.0:
        t0, t1 = solve_quadratic(a, h, c, tm.sqrt(discriminant))
        result = Crossings(
            count=2,
            t_near=t0,
            normal_near=normalize(ray_origin + t0 * ray_direction - sphere.center),
            t_far=t1,
            normal_far=normalize(ray_origin + t1 * ray_direction - sphere.center),
        )

    return result

"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting sphere from outside (front face)
- Ray missing sphere
- Ray starting inside sphere (far root)
- Sphere behind the ray
- Both crossings for CSG, tangent rays
- Analytic accuracy along the sphere axis
"""

import pytest
import taichi as ti


def _vec(v):
    return (float(v[0]), float(v[1]), float(v[2]))


@pytest.fixture
def sphere_query():
    """Return a function running hit_sphere for one ray and sphere."""
    from src.csgtrace.core.ray import real, vec3
    from src.csgtrace.geometry.sphere import Sphere, hit_sphere

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=real, shape=())
    point = ti.Vector.field(3, dtype=real, shape=())
    normal = ti.Vector.field(3, dtype=real, shape=())

    @ti.kernel
    def query(origin: vec3, direction: vec3, center: vec3, radius: real):
        rec = hit_sphere(origin, direction, Sphere(center=center, radius=radius))
        hit[None] = rec.hit
        t_val[None] = rec.t
        point[None] = rec.point
        normal[None] = rec.normal

    def run(origin, direction, center, radius):
        query(vec3(*origin), vec3(*direction), vec3(*center), radius)
        return {
            "hit": hit[None],
            "t": t_val[None],
            "point": _vec(point[None]),
            "normal": _vec(normal[None]),
        }

    return run


class TestSphereIntersection:
    """Tests for hit_sphere."""

    def test_direct_hit(self, sphere_query):
        """Ray toward a sphere 5 units away hits at t=4 with normal toward the ray."""
        rec = sphere_query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.0, 0.0, -5.0), 1.0)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(4.0, rel=1e-12)
        assert rec["point"] == pytest.approx((0.0, 0.0, -4.0))
        assert rec["normal"] == pytest.approx((0.0, 0.0, 1.0))

    def test_miss(self, sphere_query):
        """Ray pointing away from the sphere misses."""
        rec = sphere_query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), (5.0, 5.0, 5.0), 1.0)
        assert rec["hit"] == 0

    def test_sphere_behind_ray(self, sphere_query):
        """Both roots negative: no hit."""
        rec = sphere_query((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -5.0), 1.0)
        assert rec["hit"] == 0

    def test_origin_inside_uses_far_root(self, sphere_query):
        """From the center the hit is at t = r with the outward normal."""
        rec = sphere_query((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 0.0), 2.0)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0)
        assert rec["normal"] == pytest.approx((1.0, 0.0, 0.0))

    def test_origin_on_surface_skips_self_hit(self, sphere_query):
        """A root below the epsilon is ignored in favour of the far root."""
        rec = sphere_query((0.0, 0.0, 1.0), (0.0, 0.0, -1.0), (0.0, 0.0, 0.0), 1.0)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0)

    def test_leaving_from_surface_misses(self, sphere_query):
        """On the surface heading out: both roots below the epsilon."""
        rec = sphere_query((0.0, 0.0, 1.0), (0.0, 0.0, 1.0), (0.0, 0.0, 0.0), 1.0)
        assert rec["hit"] == 0

    @pytest.mark.parametrize(
        "distance,radius",
        [(5.0, 1.0), (10.0, 0.5), (123.456, 7.89), (1e4, 3.0), (2.5, 2.4)],
    )
    def test_axis_distance_matches_analytic(self, sphere_query, distance, radius):
        """Along the axis the near hit is d - r within 1e-9 relative."""
        rec = sphere_query((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, distance, 0.0), radius)
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(distance - radius, rel=1e-9)


class TestSphereCrossings:
    """Tests for sphere_crossings."""

    @pytest.fixture
    def crossings_query(self):
        from src.csgtrace.core.ray import real, vec3
        from src.csgtrace.geometry.sphere import Sphere, sphere_crossings

        count = ti.field(dtype=ti.i32, shape=())
        ts = ti.field(dtype=real, shape=2)
        normals = ti.Vector.field(3, dtype=real, shape=2)

        @ti.kernel
        def query(origin: vec3, direction: vec3, center: vec3, radius: real):
            c = sphere_crossings(origin, direction, Sphere(center=center, radius=radius))
            count[None] = c.count
            ts[0] = c.t_near
            ts[1] = c.t_far
            normals[0] = c.normal_near
            normals[1] = c.normal_far

        def run(origin, direction, center, radius):
            query(vec3(*origin), vec3(*direction), vec3(*center), radius)
            return count[None], (ts[0], ts[1]), (_vec(normals[0]), _vec(normals[1]))

        return run

    @pytest.mark.parametrize("distance,radius", [(5.0, 1.0), (77.0, 3.25), (1e3, 10.0)])
    def test_axis_crossings(self, crossings_query, distance, radius):
        """Near and far crossings are d - r and d + r within 1e-9 relative."""
        count, (t_near, t_far), _ = crossings_query(
            (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, distance), radius
        )
        assert count == 2
        assert t_near == pytest.approx(distance - radius, rel=1e-9)
        assert t_far == pytest.approx(distance + radius, rel=1e-9)

    def test_crossings_behind_origin_are_reported(self, crossings_query):
        """Crossings keep their sign; both are negative for a sphere behind."""
        count, (t_near, t_far), _ = crossings_query(
            (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -5.0), 1.0
        )
        assert count == 2
        assert t_near == pytest.approx(-6.0)
        assert t_far == pytest.approx(-4.0)

    def test_outward_normals(self, crossings_query):
        """The entry normal faces the ray, the exit normal faces away."""
        _, _, (n_near, n_far) = crossings_query(
            (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (3.0, 0.0, 0.0), 1.0
        )
        assert n_near == pytest.approx((-1.0, 0.0, 0.0))
        assert n_far == pytest.approx((1.0, 0.0, 0.0))

    def test_no_crossings_on_miss(self, crossings_query):
        count, _, _ = crossings_query((0.0, 5.0, 0.0), (1.0, 0.0, 0.0), (3.0, 0.0, 0.0), 1.0)
        assert count == 0

    def test_tangent_ray_touches_once(self, crossings_query):
        """A tangent ray yields two coincident crossings."""
        count, (t_near, t_far), _ = crossings_query(
            (0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (3.0, 0.0, 0.0), 1.0
        )
        assert count == 2
        assert t_near == pytest.approx(3.0)
        assert t_far == pytest.approx(3.0)

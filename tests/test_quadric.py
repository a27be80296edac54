"""Unit tests for quadric intersection.

Tests cover:
- Equivalence of the quadric sphere with the explicit sphere solver
- Cylinders, paraboloids and the degenerate (linear) case
- Gradient normals and CSG crossings
"""

import math

import pytest
import taichi as ti


def _vec(v):
    return (float(v[0]), float(v[1]), float(v[2]))


def _sphere_quadric(r):
    return (1.0, 1.0, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, -r * r)


# x^2 + y^2 = 1
CYLINDER = (1.0, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, -1.0)

# z = x^2 + y^2
PARABOLOID = (1.0, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, -1.0, 0.0)


@pytest.fixture
def quadric_query():
    """Trace one ray against a quadric and, for comparison, a sphere at the origin."""
    from src.csgtrace.core.ray import normalize, real, vec3
    from src.csgtrace.geometry.quadric import Quadric, hit_quadric, quadric_crossings
    from src.csgtrace.geometry.sphere import Sphere, hit_sphere

    results = ti.field(dtype=real, shape=8)
    normals = ti.Vector.field(3, dtype=real, shape=2)

    @ti.kernel
    def query(
        origin: vec3,
        direction: vec3,
        quadratic: vec3,
        mixed: vec3,
        linear: vec3,
        constant: real,
        radius: real,
    ):
        d = normalize(direction)
        q = Quadric(quadratic=quadratic, mixed=mixed, linear=linear, constant=constant)
        rec = hit_quadric(origin, d, q)
        results[0] = rec.hit
        results[1] = rec.t
        normals[0] = rec.normal
        c = quadric_crossings(origin, d, q)
        results[2] = c.count
        results[3] = c.t_near
        results[4] = c.t_far
        srec = hit_sphere(origin, d, Sphere(center=vec3(0.0, 0.0, 0.0), radius=radius))
        results[5] = srec.hit
        results[6] = srec.t
        normals[1] = srec.normal

    def run(coeffs, origin, direction, radius=1.0):
        a, b, c, d, e, f, g, h, i, j = coeffs
        query(
            vec3(*origin),
            vec3(*direction),
            vec3(a, b, c),
            vec3(d, e, f),
            vec3(g, h, i),
            j,
            radius,
        )
        return {
            "hit": int(results[0]),
            "t": results[1],
            "normal": _vec(normals[0]),
            "count": int(results[2]),
            "t_near": results[3],
            "t_far": results[4],
            "sphere_hit": int(results[5]),
            "sphere_t": results[6],
            "sphere_normal": _vec(normals[1]),
        }

    return run


class TestQuadricSphereEquivalence:
    """A=B=C=1, J=-r^2 behaves exactly like a sphere of radius r at the origin."""

    @pytest.mark.parametrize(
        "origin,direction,radius",
        [
            ((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), 1.0),
            ((3.0, -2.0, 7.0), (-0.3, 0.2, -1.0), 2.0),
            ((0.5, 0.5, 0.0), (1.0, 1.0, 0.3), 1.5),
            ((4.0, 4.0, 4.0), (-1.0, -1.0, -1.0), 0.25),
            ((0.0, 3.0, 0.0), (1.0, 0.0, 0.0), 1.0),
            ((2.0, 0.0, 0.0), (0.0, 1.0, 0.0), 3.0),
        ],
    )
    def test_matches_sphere(self, quadric_query, origin, direction, radius):
        rec = quadric_query(_sphere_quadric(radius), origin, direction, radius)
        assert rec["hit"] == rec["sphere_hit"]
        if rec["hit"]:
            assert rec["t"] == pytest.approx(rec["sphere_t"], rel=1e-9)
            assert rec["normal"] == pytest.approx(rec["sphere_normal"], abs=1e-9)

    def test_end_to_end_example(self, quadric_query):
        rec = quadric_query(_sphere_quadric(1.0), (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(4.0)
        assert rec["normal"] == pytest.approx((0.0, 0.0, 1.0))
        assert rec["count"] == 2
        assert rec["t_near"] == pytest.approx(4.0)
        assert rec["t_far"] == pytest.approx(6.0)


class TestOtherQuadrics:
    """Tests for non-spherical surfaces."""

    def test_cylinder_side_hit(self, quadric_query):
        """A ray across the cylinder hits its side with a radial normal."""
        rec = quadric_query(CYLINDER, (5.0, 0.0, 3.0), (-1.0, 0.0, 0.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(4.0)
        assert rec["normal"] == pytest.approx((1.0, 0.0, 0.0))

    def test_ray_along_cylinder_axis_misses(self, quadric_query):
        """Inside and parallel to the axis: a = b = 0, no root."""
        rec = quadric_query(CYLINDER, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 0
        assert rec["count"] == 0

    def test_paraboloid_axis_uses_linear_root(self, quadric_query):
        """Along the paraboloid axis the equation is linear."""
        rec = quadric_query(PARABOLOID, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(5.0)
        assert rec["normal"] == pytest.approx((0.0, 0.0, -1.0))
        # A single root cannot bound an interval
        assert rec["count"] == 0

    def test_paraboloid_oblique_hit(self, quadric_query):
        """An off-axis vertical ray hits at z = x^2 + y^2."""
        rec = quadric_query(PARABOLOID, (1.0, 1.0, 10.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(8.0)
        g = (2.0, 2.0, -1.0)
        n = math.sqrt(9.0)
        assert rec["normal"] == pytest.approx(tuple(c / n for c in g))

    def test_quadric_behind_ray_misses(self, quadric_query):
        rec = quadric_query(_sphere_quadric(1.0), (0.0, 0.0, 5.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 0
        assert rec["count"] == 2
        assert rec["t_far"] < 0.0

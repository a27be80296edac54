"""Unit tests for the Phong integrator.

Tests cover:
- Ambient, diffuse, specular and attenuation terms
- Shadows
- Mirror reflection depth and the ray-tree bound
- Refraction and total internal reflection
- Glossy direction sampling
- Render target accumulation and image layout
"""

import numpy as np
import pytest
import taichi as ti

from src.csgtrace.scene.shapes import PolyhedronInfo, SphereInfo


def add(shape, pigment, finish):
    from src.csgtrace.scene.primitives import add_object, add_shape

    return add_object(add_shape(shape), pigment, finish)


@pytest.fixture
def lit_sphere():
    """A white unit sphere at the origin with a black ambient light."""
    from src.csgtrace.materials.finish import add_finish
    from src.csgtrace.materials.pigment import add_solid_pigment
    from src.csgtrace.scene.lights import add_light

    def build(finish_kwargs, light=((0.0, 0.0, 10.0), (1.0, 1.0, 1.0), (1.0, 0.0, 0.0))):
        add_light((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        if light is not None:
            add_light(*light)
        white = add_solid_pigment((1.0, 1.0, 1.0))
        finish = add_finish(**finish_kwargs)
        add(SphereInfo((0.0, 0.0, 0.0), 1.0), white, finish)

    return build


class TestLocalShading:
    """Tests for the direct lighting terms."""

    def test_miss_is_black(self):
        from src.csgtrace.core.integrator import trace_single_ray

        color, rays = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == (0.0, 0.0, 0.0)
        assert rays == 1

    def test_ambient_term(self):
        """pigment * light 0 * ka."""
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (1.0, 0.5, 1.0))
        pigment = add_solid_pigment((0.5, 0.4, 0.2))
        finish = add_finish(ambient=0.4)
        add(SphereInfo((0.0, 0.0, 0.0), 1.0), pigment, finish)

        color, rays = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((0.2, 0.08, 0.08))
        assert rays == 1

    def test_no_lights_is_black(self):
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment

        add(SphereInfo((0.0, 0.0, 0.0), 1.0), add_solid_pigment((1.0, 1.0, 1.0)), add_finish(ambient=1.0))
        color, _ = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == (0.0, 0.0, 0.0)

    def test_color_is_clamped(self):
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        add(SphereInfo((0.0, 0.0, 0.0), 1.0), add_solid_pigment((1.0, 0.5, 0.0)), add_finish(ambient=3.0))
        color, _ = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((1.0, 1.0, 0.0))

    def test_diffuse_and_specular_facing_light(self, lit_sphere):
        """Light, viewer and normal aligned: kd + ks."""
        from src.csgtrace.core.integrator import trace_single_ray

        lit_sphere({"diffuse": 0.5, "specular": 0.25, "shininess": 10.0})
        color, _ = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((0.75, 0.75, 0.75))

    def test_attenuation(self, lit_sphere):
        """A quadratic attenuation of 1 divides by the squared distance."""
        from src.csgtrace.core.integrator import trace_single_ray

        lit_sphere(
            {"diffuse": 1.0},
            light=((0.0, 0.0, 10.0), (1.0, 1.0, 1.0), (0.0, 0.0, 1.0)),
        )
        color, _ = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((1.0 / 81.0,) * 3)

    def test_light_behind_surface(self, lit_sphere):
        """No diffuse light reaches a surface facing away from the light."""
        from src.csgtrace.core.integrator import trace_single_ray

        lit_sphere({"diffuse": 1.0}, light=((0.0, 0.0, -10.0), (1.0, 1.0, 1.0), (1.0, 0.0, 0.0)))
        color, _ = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((0.0, 0.0, 0.0))

    def test_shadowed_point(self, lit_sphere):
        """A blocker between the point and the light removes its contribution."""
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish

        lit_sphere({"diffuse": 0.5})
        blocker_finish = add_finish()
        add(SphereInfo((0.0, 0.0, 6.0), 1.0), 0, blocker_finish)

        color, _ = trace_single_ray((0.0, 0.0, 3.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((0.0, 0.0, 0.0))

    def test_unblocked_point(self, lit_sphere):
        from src.csgtrace.core.integrator import trace_single_ray

        lit_sphere({"diffuse": 0.5})
        color, _ = trace_single_ray((0.0, 0.0, 3.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((0.5, 0.5, 0.5))


class TestSecondaryRays:
    """Tests for reflection and refraction."""

    def test_mirror_depth_limit(self):
        """Two facing mirrors: camera ray plus MAX_DEPTH bounces."""
        from src.csgtrace.core.integrator import MAX_DEPTH, trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment

        mirror = add_finish(reflectivity=1.0, shininess=1e6)
        pigment = add_solid_pigment((1.0, 1.0, 1.0))
        add(SphereInfo((0.0, 0.0, -3.0), 1.0), pigment, mirror)
        add(SphereInfo((0.0, 0.0, 3.0), 1.0), pigment, mirror)

        _, rays = trace_single_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rays == MAX_DEPTH + 1

    def test_reflection_picks_up_mirrored_color(self):
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        mirror = add_finish(reflectivity=0.5, shininess=1e9)
        glow = add_finish(ambient=1.0)
        add(SphereInfo((0.0, 0.0, -3.0), 1.0), add_solid_pigment((1.0, 1.0, 1.0)), mirror)
        add(SphereInfo((0.0, 0.0, 3.0), 1.0), add_solid_pigment((0.0, 1.0, 0.0)), glow)

        color, rays = trace_single_ray((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((0.0, 0.5, 0.0))
        assert rays == 2

    def test_ray_tree_bound(self):
        """Reflective and transmissive surfaces never exceed the tree size."""
        from src.csgtrace.core.integrator import TREE_SIZE, trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (0.3, 0.3, 0.3))
        both = add_finish(ambient=0.2, reflectivity=0.5, transmissivity=0.5, ior=1.3, shininess=50.0)
        pigment = add_solid_pigment((0.9, 0.9, 0.9))
        add(SphereInfo((0.0, 0.0, 0.0), 20.0), pigment, both)
        add(SphereInfo((0.0, 0.0, -5.0), 2.0), pigment, both)
        add(SphereInfo((0.0, 0.0, 5.0), 2.0), pigment, both)

        for stream in range(5):
            color, rays = trace_single_ray((0.0, 0.5, 0.0), (0.1, 0.0, -1.0), stream)
            assert 1 < rays <= TREE_SIZE
            assert all(0.0 <= c <= 1.0 for c in color)

    def test_refraction_through_sphere(self):
        """At normal incidence the ray passes straight through to the wall."""
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        glass = add_finish(transmissivity=1.0, ior=1.5, shininess=1e9)
        wall = add_finish(ambient=1.0)
        add(SphereInfo((0.0, 0.0, 0.0), 1.0), add_solid_pigment((1.0, 1.0, 1.0)), glass)
        add(PolyhedronInfo([(0.0, 0.0, 1.0, 10.0)]), add_solid_pigment((1.0, 0.0, 0.0)), wall)

        color, rays = trace_single_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert color == pytest.approx((1.0, 0.0, 0.0), abs=1e-6)
        assert rays == 3

    def test_total_internal_reflection_spawns_nothing(self):
        from src.csgtrace.core.integrator import trace_single_ray
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment

        glass = add_finish(transmissivity=1.0, ior=1.5, shininess=1e9)
        add(SphereInfo((0.0, 0.0, 0.0), 1.0), add_solid_pigment((1.0, 1.0, 1.0)), glass)

        _, grazing = trace_single_ray((0.0, 0.9, 0.0), (1.0, 0.0, 0.0))
        _, straight = trace_single_ray((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert grazing == 1
        assert straight == 2


class TestGlossySampling:
    """Tests for the perturbed secondary directions."""

    @pytest.fixture
    def reflection_samples(self):
        from src.csgtrace.core.integrator import glossy_reflection
        from src.csgtrace.core.ray import real, vec3

        n = 200
        out = ti.Vector.field(3, dtype=real, shape=n)

        @ti.kernel
        def sample(direction: vec3, normal: vec3, shininess: real):
            ti.loop_config(serialize=True)
            for k in range(n):
                out[k] = glossy_reflection(direction, normal, shininess, 0)

        def run(direction, normal, shininess):
            sample(vec3(*direction), vec3(*normal), shininess)
            return out.to_numpy()

        return run

    def test_rough_reflection_stays_above_surface(self, reflection_samples):
        d = np.array([1.0, 0.0, -1.0]) / np.sqrt(2.0)
        dirs = reflection_samples(tuple(d), (0.0, 0.0, 1.0), 1.0)
        assert np.all(dirs[:, 2] >= 0.0)
        np.testing.assert_allclose(np.linalg.norm(dirs, axis=1), 1.0)
        # Rough: the samples actually spread
        assert dirs[:, 1].std() > 0.05

    def test_shiny_reflection_is_mirror(self, reflection_samples):
        dirs = reflection_samples((0.0, 0.0, -1.0), (0.0, 0.0, 1.0), 1e6)
        np.testing.assert_allclose(dirs, np.tile([0.0, 0.0, 1.0], (len(dirs), 1)), atol=1e-5)


class TestRenderTarget:
    """Tests for image accumulation."""

    @pytest.fixture
    def camera(self):
        from src.csgtrace.camera.thin_lens import ThinLensCamera, setup_camera

        def build(aspect_ratio):
            setup_camera(
                ThinLensCamera(
                    lookfrom=(0.0, 0.0, 0.0),
                    lookat=(0.0, 0.0, -1.0),
                    vup=(0.0, 1.0, 0.0),
                    vfov=90.0,
                    aspect_ratio=aspect_ratio,
                )
            )

        return build

    def test_setup_rejects_bad_sizes(self):
        from src.csgtrace.config import MAX_IMAGE_WIDTH
        from src.csgtrace.core.integrator import setup_render_target

        with pytest.raises(ValueError, match="positive"):
            setup_render_target(0, 10)
        with pytest.raises(ValueError, match="exceed"):
            setup_render_target(MAX_IMAGE_WIDTH + 1, 10)

    def test_empty_scene_counts(self, camera):
        from src.csgtrace.core import integrator

        camera(4.0 / 3.0)
        integrator.setup_render_target(4, 3)
        integrator.render_image(2)

        assert integrator.get_total_samples() == 2
        assert integrator.get_rays_traced() == 4 * 3 * 2
        image = integrator.get_image_uint8()
        assert image.shape == (3, 4, 3)
        assert image.dtype == np.uint8
        assert image.max() == 0

    def test_top_row_first(self, camera):
        """Geometry above the horizon appears in row 0 of the array."""
        from src.csgtrace.core import integrator
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        add(PolyhedronInfo([(0.0, -1.0, 0.0, 0.01)]), add_solid_pigment((1.0, 1.0, 1.0)), add_finish(ambient=1.0))
        camera(0.5)
        integrator.setup_render_target(1, 2)
        integrator.render_image(8)

        image = integrator.get_normalized_image_numpy()
        assert image.shape == (2, 1, 3)
        assert image[0, 0, 0] == pytest.approx(1.0)
        assert image[1, 0, 0] == 0.0

    def test_uint8_rounding(self, camera):
        from src.csgtrace.core import integrator
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_solid_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        add(SphereInfo((0.0, 0.0, 0.0), 50.0), add_solid_pigment((0.5, 0.5, 0.5)), add_finish(ambient=1.0))
        camera(1.0)
        integrator.setup_render_target(2, 2)
        integrator.render_image(1)

        image = integrator.get_image_uint8()
        # round(0.5 * 255) = 128
        assert np.all(image == 128)

    def test_render_sample_leaves_buffer_alone(self, camera):
        from src.csgtrace.core import integrator

        camera(1.0)
        integrator.setup_render_target(2, 2)
        assert integrator.render_sample(0, 0) == (0.0, 0.0, 0.0)
        assert integrator.get_total_samples() == 0

    def test_same_seed_same_image(self, camera):
        from src.csgtrace.core import integrator
        from src.csgtrace.core.sampler import seed_streams
        from src.csgtrace.materials.finish import add_finish
        from src.csgtrace.materials.pigment import add_checker_pigment
        from src.csgtrace.scene.lights import add_light

        add_light((0.0, 0.0, 0.0), (0.2, 0.2, 0.2))
        add_light((2.0, 4.0, 0.0), (1.0, 1.0, 1.0))
        checker = add_checker_pigment((1.0, 1.0, 1.0), (0.1, 0.1, 0.1), 0.5)
        add(SphereInfo((0.0, 0.0, -4.0), 2.0), checker, add_finish(ambient=0.2, diffuse=0.8, reflectivity=0.3))
        camera(1.0)

        integrator.setup_render_target(6, 6)
        seed_streams(7)
        integrator.render_image(3)
        first = integrator.get_normalized_image_numpy()

        integrator.clear_render_target()
        seed_streams(7)
        integrator.render_image(3)
        np.testing.assert_array_equal(first, integrator.get_normalized_image_numpy())

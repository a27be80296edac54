"""Pytest configuration for renderer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls; fields declared
    by imported modules belong to the runtime they were created in.
    """
    ti.init(arch=ti.cpu, default_fp=ti.f64, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear every scene table and reseed the random streams before each test."""
    # Import here so Taichi is initialized first
    from src.csgtrace.core.sampler import seed_streams
    from src.csgtrace.materials.finish import clear_finishes
    from src.csgtrace.materials.pigment import clear_pigments
    from src.csgtrace.scene.lights import clear_lights
    from src.csgtrace.scene.primitives import clear_primitives

    def _clear_all():
        clear_primitives()
        clear_lights()
        clear_pigments()
        clear_finishes()

    _clear_all()
    seed_streams(42)

    yield

    _clear_all()


@pytest.fixture
def vec_result():
    """A scalar vec3 result field for kernel tests."""
    from src.csgtrace.core.ray import real

    return ti.Vector.field(3, dtype=real, shape=())

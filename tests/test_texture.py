"""Unit tests for texture loading."""

import logging

import numpy as np
from PIL import Image

from src.csgtrace.materials.texture import load_texture


def write_p3(path, rows):
    height = len(rows)
    width = len(rows[0])
    lines = ["P3", f"{width} {height}", "255"]
    for row in rows:
        lines.append(" ".join(f"{r} {g} {b}" for r, g, b in row))
    path.write_text("\n".join(lines) + "\n")


class TestLoadTexture:
    """Tests for load_texture."""

    def test_ascii_ppm(self, tmp_path):
        path = tmp_path / "tex.ppm"
        write_p3(path, [[(255, 0, 0), (0, 255, 0)], [(0, 0, 255), (255, 255, 255)]])

        image = load_texture(path)

        assert image is not None
        assert image.shape == (2, 2, 3)
        np.testing.assert_allclose(image[0, 0], [1.0, 0.0, 0.0])
        np.testing.assert_allclose(image[0, 1], [0.0, 1.0, 0.0])
        np.testing.assert_allclose(image[1, 0], [0.0, 0.0, 1.0])

    def test_binary_ppm(self, tmp_path):
        path = tmp_path / "tex.ppm"
        pixels = np.zeros((3, 4, 3), dtype=np.uint8)
        pixels[2, 3] = (51, 102, 204)
        Image.fromarray(pixels).save(path, format="PPM")

        image = load_texture(str(path))

        assert image.shape == (3, 4, 3)
        assert image.dtype == np.float32
        np.testing.assert_allclose(image[2, 3], [0.2, 0.4, 0.8], atol=1e-6)
        assert image[0, 0].sum() == 0.0

    def test_missing_file_returns_none(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            assert load_texture(tmp_path / "nope.ppm") is None
        assert "Could not open texture" in caplog.text

    def test_unsupported_magic_returns_none(self, tmp_path, caplog):
        path = tmp_path / "tex.pgm"
        path.write_bytes(b"P5\n1 1\n255\n\x00")

        with caplog.at_level(logging.WARNING):
            assert load_texture(path) is None
        assert "Unsupported texture format" in caplog.text

    def test_png_is_rejected(self, tmp_path):
        path = tmp_path / "tex.png"
        Image.new("RGB", (2, 2)).save(path)
        assert load_texture(path) is None

    def test_truncated_file_returns_none(self, tmp_path, caplog):
        path = tmp_path / "tex.ppm"
        path.write_bytes(b"P6\n")
        with caplog.at_level(logging.WARNING):
            assert load_texture(path) is None
        assert "Could not decode texture" in caplog.text

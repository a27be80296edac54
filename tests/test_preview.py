"""Tests for the Matplotlib preview.

Figures are drawn with the non-interactive Agg backend and ``plt.show`` is
replaced, so no window is opened.
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402

from src.csgtrace.preview.display import show_comparison, show_image, show_preview  # noqa: E402


class FakeRenderer:
    width = 4
    height = 2
    sample_count = 8

    def get_image_numpy(self):
        return np.linspace(0.0, 1.0, 24, dtype=np.float32).reshape(2, 4, 3)


@pytest.fixture(autouse=True)
def no_windows(monkeypatch):
    """Record plt.show calls instead of opening windows."""
    calls = []
    monkeypatch.setattr(plt, "show", lambda block=True: calls.append(block))
    yield calls
    plt.close("all")


class TestShowImage:
    def test_float_image(self, no_windows):
        image = np.full((3, 5, 3), 1.5)
        show_image(image, title="bright", block=False)

        ax = plt.gcf().axes[0]
        assert ax.get_title() == "bright"
        shown = ax.get_images()[0].get_array()
        assert shown.max() == 1.0
        assert no_windows == [False]

    def test_uint8_image_is_shown_unchanged(self):
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        image[0, 1] = (255, 128, 0)
        show_image(image)
        shown = plt.gcf().axes[0].get_images()[0].get_array()
        np.testing.assert_array_equal(shown, image)


class TestShowPreview:
    def test_default_title(self):
        show_preview(FakeRenderer())
        assert plt.gcf().axes[0].get_title() == "Render Preview - 4x2, 8 SPP"

    def test_custom_title(self):
        show_preview(FakeRenderer(), title="Showcase")
        assert plt.gcf().axes[0].get_title() == "Showcase"


class TestShowComparison:
    def test_returns_rmse(self, no_windows):
        a = np.zeros((2, 2, 3), dtype=np.float32)
        b = np.full((2, 2, 3), 0.5, dtype=np.float32)
        rmse = show_comparison(a, b, labels=("dark", "gray"), block=False)

        assert rmse == pytest.approx(0.5)
        titles = [ax.get_title() for ax in plt.gcf().axes]
        assert titles[:2] == ["dark", "gray"]
        assert "RMSE: 0.500000" in titles[2]
        assert no_windows == [False]

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            show_comparison(np.zeros((2, 2, 3)), np.zeros((3, 2, 3)))

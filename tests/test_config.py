"""Unit tests for render settings and logging setup."""

import logging

import pytest

from src.csgtrace.config import MAX_IMAGE_HEIGHT, RenderSettings
from src.csgtrace.logging_config import PACKAGE_LOGGER, setup_logging


class TestRenderSettings:
    """Tests for RenderSettings.validate."""

    def test_defaults_are_valid(self):
        settings = RenderSettings()
        settings.validate()
        assert settings.aspect_ratio == pytest.approx(800 / 600)

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"width": 0}, "width"),
            ({"height": -1}, "height"),
            ({"samples": 0}, "sample count"),
            ({"aperture": -0.5}, "aperture"),
            ({"focus_distance": 0.0}, "focus distance"),
            ({"height": MAX_IMAGE_HEIGHT + 1}, "exceed"),
        ],
    )
    def test_invalid(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            RenderSettings(**kwargs).validate()


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        handlers = logger.handlers[:]
        level = logger.level
        yield logger
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)

    def test_level_and_single_handler(self, restore_logger):
        setup_logging(logging.DEBUG)
        setup_logging(logging.WARNING)
        assert restore_logger.level == logging.WARNING
        assert len(restore_logger.handlers) == 1

    def test_log_file(self, tmp_path, restore_logger):
        path = tmp_path / "log.txt"
        setup_logging(logging.INFO, str(path))
        logging.getLogger("src.csgtrace.scene.loader").info("loaded something")
        assert len(restore_logger.handlers) == 2
        text = path.read_text()
        assert "src.csgtrace.scene.loader - INFO - loaded something" in text

    def test_reconfiguring_closes_old_file(self, tmp_path, restore_logger):
        setup_logging(logging.INFO, str(tmp_path / "first.txt"))
        old_file = [h for h in restore_logger.handlers if isinstance(h, logging.FileHandler)][0]

        setup_logging(logging.INFO)

        assert old_file not in restore_logger.handlers
        assert old_file.stream is None
        assert len(restore_logger.handlers) == 1

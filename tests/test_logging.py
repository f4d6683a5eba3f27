"""Tests for claudia.logging module."""

import io
import logging

from claudia import enable_debug, get_delay
from claudia.logging import disable_debug, logger


class TestEnableDebug:
    def test_enable_debug_sets_level(self):
        """Test that enable_debug sets DEBUG level."""
        try:
            enable_debug()
            assert logger.level == logging.DEBUG
        finally:
            disable_debug()

        assert logger.level == logging.NOTSET

    def test_enable_debug_is_idempotent(self):
        before = len(logger.handlers)
        try:
            enable_debug()
            enable_debug()
            assert len(logger.handlers) == before + 1
        finally:
            disable_debug()

        assert len(logger.handlers) == before

    def test_output_format(self):
        stream = io.StringIO()
        try:
            enable_debug(stream)
            get_delay(0, 2)
        finally:
            disable_debug()

        assert stream.getvalue().startswith("[claudia] DEBUG: Retry delay")

    def test_logger_name(self):
        """Test that logger has correct name."""
        assert logger.name == "claudia"

    def test_silent_by_default(self):
        assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)

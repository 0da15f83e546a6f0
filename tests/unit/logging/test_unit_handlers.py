# tests/unit/logging/test_unit_handlers.py — v2
"""Tests for logging/handlers.py — size-rotated file handler."""

from __future__ import annotations

import pytest

from newsweaver.logging.handlers import create_rotating_handler, parse_size


class TestParseSize:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("10MB", 10 * 1024 * 1024),
            ("512KB", 512 * 1024),
            ("1GB", 1024 * 1024 * 1024),
            ("10mb", 10 * 1024 * 1024),
            ("4096", 4096),
            ("20 KB", 20 * 1024),
        ],
    )
    def test_valid_sizes(self, text, expected):
        assert parse_size(text) == expected

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("10bytes")

    def test_empty_string(self):
        with pytest.raises(ValueError):
            parse_size("")


class TestCreateRotatingHandler:
    def test_creates_handler(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "app.log", rotation="1MB", retention=5)
        try:
            assert handler.maxBytes == 1024 * 1024
            assert handler.backupCount == 5
        finally:
            handler.close()

    def test_creates_parent_dirs(self, tmp_path):
        log_file = tmp_path / "nested" / "logs" / "app.log"
        handler = create_rotating_handler(log_file)
        try:
            assert log_file.parent.is_dir()
        finally:
            handler.close()

    def test_negative_retention_clamped(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "app.log", retention=-3)
        try:
            assert handler.backupCount == 0
        finally:
            handler.close()

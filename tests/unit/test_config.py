"""Unit tests for build configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from dbffs.core.config import BuildConfig, ByteOrder, CompressionBackend, CompressionConfig, OffsetOrigin, load_config

pytestmark = pytest.mark.unit


class TestBuildConfig:
    """Tests for BuildConfig defaults and validation."""

    def test_defaults(self) -> None:
        """Test the default build settings."""
        cfg = BuildConfig()
        assert cfg.max_depth == 10
        assert cfg.compress is True
        assert cfg.include_hidden is False
        assert cfg.byte_order is ByteOrder.NATIVE
        assert cfg.next_offset_origin is OffsetOrigin.FIELD
        assert cfg.compression == CompressionConfig()

    def test_struct_prefixes(self) -> None:
        """Test the struct prefix of each byte order."""
        assert [o.struct_prefix for o in ByteOrder] == ["=", "<", ">"]

    @pytest.mark.parametrize("field,value", [("max_depth", 0), ("byte_order", "middle")])
    def test_rejects_invalid_values(self, field: str, value: object) -> None:
        """Test that out-of-range settings fail validation."""
        with pytest.raises(ValueError):
            BuildConfig.model_validate({field: value})

    def test_window_bits_range(self) -> None:
        """Test that the compression window is bounded."""
        with pytest.raises(ValueError):
            CompressionConfig(window_bits=8)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_dbffs_toml(self, tmp_path: Path) -> None:
        """Test loading a standalone config with a compression table."""
        path = tmp_path / "dbffs.toml"
        path.write_text(
            'byte_order = "big"\nnext_offset_origin = "record"\n\n[compression]\nwindow_bits = 12\n',
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.byte_order is ByteOrder.BIG
        assert cfg.next_offset_origin is OffsetOrigin.RECORD
        assert cfg.compression.window_bits == 12
        assert cfg.compression.level == 9

    def test_compression_backend(self, tmp_path: Path) -> None:
        """Test selecting the payload format and heatshrink parameters."""
        path = tmp_path / "dbffs.toml"
        path.write_text(
            '[compression]\nbackend = "heatshrink"\nwindow_sz2 = 10\nlookahead_sz2 = 5\n', encoding="utf-8"
        )
        cfg = load_config(path).compression
        assert (cfg.backend, cfg.window_sz2, cfg.lookahead_sz2) == (CompressionBackend.HEATSHRINK, 10, 5)

    def test_pyproject_table(self, tmp_path: Path) -> None:
        """Test that pyproject.toml is read from tool.dbffs."""
        path = tmp_path / "pyproject.toml"
        path.write_text('[project]\nname = "site"\n\n[tool.dbffs]\ncompress = false\n', encoding="utf-8")
        assert load_config(path).compress is False

    def test_pyproject_without_table(self, tmp_path: Path) -> None:
        """Test that a pyproject.toml without the table gives defaults."""
        path = tmp_path / "pyproject.toml"
        path.write_text('[project]\nname = "site"\n', encoding="utf-8")
        assert load_config(path) == BuildConfig()

    def test_overrides_win(self, tmp_path: Path) -> None:
        """Test that overrides replace file values."""
        path = tmp_path / "dbffs.toml"
        path.write_text("max_depth = 4\ninclude_hidden = true\n", encoding="utf-8")
        cfg = load_config(path, max_depth=7)
        assert cfg.max_depth == 7
        assert cfg.include_hidden is True

    def test_unknown_key(self, tmp_path: Path) -> None:
        """Test that misspelled settings are rejected."""
        path = tmp_path / "dbffs.toml"
        path.write_text("max_dept = 4\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Test that malformed TOML is reported."""
        path = tmp_path / "dbffs.toml"
        path.write_text("max_depth = \n", encoding="utf-8")
        with pytest.raises(ValueError, match="Failed to parse TOML"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that an unreadable file is reported."""
        with pytest.raises(ValueError, match="Failed to read config file"):
            load_config(tmp_path / "missing.toml")

"""Unit tests for gtfs_etl.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from gtfs_etl.config import (
    ConfigValidationError,
    LoaderConfig,
    load_loader_config,
    validate_loader_config,
)

PROJECT_ROOT = Path(__file__).parent.parent.parent


def write_yaml(tmp_path, text):
    path = tmp_path / "loader.yml"
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# load_loader_config
# ---------------------------------------------------------------------------

class TestLoadLoaderConfig:
    def test_sample_file_loads(self):
        config = load_loader_config(PROJECT_ROOT / "config" / "loader.yml")
        assert config.write_mode == "copy"
        assert config.batch_size == 500
        assert config.create_indexes is True

    def test_empty_file_uses_defaults(self, tmp_path):
        assert load_loader_config(write_yaml(tmp_path, "")) == LoaderConfig()

    def test_values_read(self, tmp_path):
        config = load_loader_config(write_yaml(
            tmp_path, "write_mode: insert\nbatch_size: 50\ncreate_indexes: false\nlog_level: debug\n"
        ))
        assert config.write_mode == "insert"
        assert config.batch_size == 50
        assert config.create_indexes is False
        assert config.log_level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_loader_config(tmp_path / "nope.yml")


# ---------------------------------------------------------------------------
# validate_loader_config
# ---------------------------------------------------------------------------

class TestValidateLoaderConfig:
    def test_root_must_be_mapping(self):
        with pytest.raises(ConfigValidationError, match="mapping"):
            validate_loader_config(["copy"])

    def test_unknown_key(self):
        with pytest.raises(ConfigValidationError, match="Unknown"):
            validate_loader_config({"batchsize": 10})

    def test_bad_write_mode(self):
        with pytest.raises(ConfigValidationError, match="write_mode"):
            validate_loader_config({"write_mode": "bulk"})

    @pytest.mark.parametrize("value", [0, -5, "100", True])
    def test_bad_batch_size(self, value):
        with pytest.raises(ConfigValidationError):
            validate_loader_config({"batch_size": value})

    def test_bad_log_level(self):
        with pytest.raises(ConfigValidationError, match="log_level"):
            validate_loader_config({"log_level": "chatty"})

    def test_error_is_value_error(self):
        assert issubclass(ConfigValidationError, ValueError)


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------

class TestOverrides:
    def test_none_keeps_file_value(self):
        config = LoaderConfig(write_mode="insert").with_overrides(write_mode=None, batch_size=10)
        assert config.write_mode == "insert"
        assert config.batch_size == 10

    def test_invalid_override_rejected(self):
        with pytest.raises(ConfigValidationError):
            LoaderConfig().with_overrides(batch_size=0)

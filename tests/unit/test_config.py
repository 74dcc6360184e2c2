"""
Unit tests for settings, logging configuration and asset caching.
"""

from __future__ import annotations

import json
import logging

import pytest
from pydantic import ValidationError

from activity_sense.config.settings import (
    Settings,
    get_test_settings,
    load_settings_from_file,
    validate_settings,
)
from activity_sense.logger import (
    ColoredFormatter,
    StructuredFormatter,
    build_logging_config,
)
from activity_sense.utils.assets import load_asset_from_cache


# ===========================================================================
# Settings tests
# ===========================================================================

class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.frame_size == 50
        assert settings.sampling_interval_us == 20000
        assert settings.sampling_rate_hz == pytest.approx(50.0)
        assert settings.frame_duration_seconds == pytest.approx(1.0)
        assert settings.backpressure_policy == "drop"
        assert settings.classifier_backend == "onnx"

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ACTIVITY_SENSE_FRAME_SIZE", "128")
        monkeypatch.setenv("ACTIVITY_SENSE_BACKPRESSURE_POLICY", "BLOCK")
        settings = Settings(_env_file=None)
        assert settings.frame_size == 128
        assert settings.backpressure_policy == "block"

    def test_load_from_file(self, tmp_path):
        env_file = tmp_path / "sense.env"
        env_file.write_text(
            "ACTIVITY_SENSE_CLASSIFIER_BACKEND=threshold\n"
            "ACTIVITY_SENSE_LOG_LEVEL=debug\n"
        )
        settings = load_settings_from_file(str(env_file))
        assert settings.classifier_backend == "threshold"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("field,value", [
        ("environment", "staging"),
        ("log_level", "LOUD"),
        ("classifier_backend", "tensorflow"),
        ("backpressure_policy", "spill"),
        ("frame_size", 0),
        ("max_pending_frames", 0),
        ("inference_timeout_seconds", 0.0),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_test_settings(self):
        settings = get_test_settings()
        assert settings.environment == "testing"
        assert settings.classifier_backend == "threshold"

    def test_validate_settings_reports_issues(self, tmp_path):
        settings = Settings(
            _env_file=None,
            environment="production",
            debug=True,
            walking_variance_threshold=10.0,
            running_variance_threshold=5.0,
            asset_directory=str(tmp_path / "assets"),
            cache_directory=str(tmp_path / "cache"),
        )
        issues = validate_settings(settings)
        assert any("production" in issue for issue in issues)
        assert any("threshold" in issue for issue in issues)
        assert any("Model asset not found" in issue for issue in issues)

    def test_validate_settings_clean(self, tmp_path):
        settings = get_test_settings().model_copy(update={"cache_directory": str(tmp_path / "cache")})
        assert validate_settings(settings) == []
        assert (tmp_path / "cache").is_dir()


# ===========================================================================
# Logging tests
# ===========================================================================

class TestLogging:
    def test_console_only_without_log_file(self):
        config = build_logging_config(get_test_settings())
        assert set(config["handlers"]) == {"console"}
        assert config["loggers"]["activity_sense"]["level"] == "DEBUG"

    def test_file_handlers_with_log_file(self, tmp_path):
        settings = get_test_settings().model_copy(update={"log_file": str(tmp_path / "sense.log")})
        config = build_logging_config(settings)
        assert config["handlers"]["structured"]["filename"].endswith("sense.json")
        assert "file" in config["loggers"]["activity_sense"]["handlers"]

    def test_structured_formatter_emits_json_with_extras(self):
        record = logging.LogRecord(
            "activity_sense.sensing.pipeline", logging.WARNING, __file__, 10,
            "Dropped frame %d", (4,), None,
        )
        record.frame_index = 4
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["message"] == "Dropped frame 4"
        assert entry["level"] == "WARNING"
        assert entry["frame_index"] == 4

    def test_colored_formatter_restores_levelname(self):
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", (), None)
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[31m" in output
        assert record.levelname == "ERROR"


# ===========================================================================
# Asset cache tests
# ===========================================================================

class TestAssetCache:
    def test_copies_on_first_use(self, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "model.onnx").write_bytes(b"weights")

        cached = load_asset_from_cache(assets, tmp_path / "cache", "model.onnx")
        assert cached == tmp_path / "cache" / "model.onnx"
        assert cached.read_bytes() == b"weights"
        assert not (tmp_path / "cache" / "model.onnx.partial").exists()

    def test_existing_cache_is_reused(self, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "model.onnx").write_bytes(b"new")
        cache = tmp_path / "cache"
        cache.mkdir()
        (cache / "model.onnx").write_bytes(b"old")

        cached = load_asset_from_cache(assets, cache, "model.onnx")
        assert cached.read_bytes() == b"old"

    def test_missing_asset(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_asset_from_cache(tmp_path / "assets", tmp_path / "cache", "model.onnx")

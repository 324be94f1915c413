"""Sanity checks for settings and logging scaffolding."""

from __future__ import annotations

import logging

import pytest

from config import Settings, load_settings
from src.report_splitter.logging_utils import configure_logging, get_logger


def test_load_settings_respects_environment(tmp_path, monkeypatch):
    output_dir = tmp_path / "outputs"
    temp_dir = tmp_path / "tmp"
    aliases = tmp_path / "aliases.yaml"
    aliases.write_text("name:\n  - pt name\n")

    monkeypatch.setenv("REPORT_SPLITTER_OUTPUT_DIR", str(output_dir))
    monkeypatch.setenv("REPORT_SPLITTER_TEMP_DIR", str(temp_dir))
    monkeypatch.setenv("REPORT_SPLITTER_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("REPORT_SPLITTER_DEBUG", "true")
    monkeypatch.setenv("REPORT_SPLITTER_MAX_PAGES_PER_PATIENT", "4")
    monkeypatch.setenv("REPORT_SPLITTER_CONFIDENCE_THRESHOLD", "92.5")
    monkeypatch.setenv("REPORT_SPLITTER_FORCED_SPLIT_POLICY", "carry_forward")
    monkeypatch.setenv("REPORT_SPLITTER_FIELD_ALIASES_PATH", str(aliases))
    monkeypatch.setenv("REPORT_SPLITTER_SPLIT_OUTPUT_DIR", str(tmp_path / "splits"))
    monkeypatch.setenv("REPORT_SPLITTER_SPLIT_METADATA_FORMAT", "yaml")

    load_settings.cache_clear()
    try:
        settings = load_settings()
    finally:
        load_settings.cache_clear()

    assert settings.output_dir == output_dir
    assert settings.temp_dir == temp_dir
    assert settings.log_level == "DEBUG"
    assert settings.debug is True
    assert settings.max_pages_per_patient == 4
    assert settings.confidence_threshold == 92.5
    assert settings.forced_split_policy == "carry_forward"
    assert settings.field_aliases_path == aliases
    assert settings.split_output_dir == str(tmp_path / "splits")
    assert settings.split_metadata_format == "yaml"
    assert settings.field_mapping().aliases_for("name") == ("pt name",)

    for directory in (output_dir, temp_dir):
        assert directory.exists()


def test_load_settings_rejects_invalid_values(monkeypatch, tmp_path):
    monkeypatch.setenv("REPORT_SPLITTER_OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("REPORT_SPLITTER_TEMP_DIR", str(tmp_path / "tmp"))
    monkeypatch.setenv("REPORT_SPLITTER_MAX_PAGES_PER_PATIENT", "0")

    load_settings.cache_clear()
    try:
        with pytest.raises(RuntimeError, match="Invalid application configuration"):
            load_settings()
    finally:
        load_settings.cache_clear()


def test_settings_defaults():
    settings = Settings()
    assert settings.max_pages_per_patient == 10
    assert settings.confidence_threshold == 80.0
    assert settings.forced_split_policy == "reset"
    assert settings.field_mapping().version == 1


def test_field_mapping_cache_follows_alias_path(tmp_path):
    first = tmp_path / "first.yaml"
    first.write_text("dob: [born]\n")
    second = tmp_path / "second.yaml"
    second.write_text("dob: [birthday]\n")

    settings = Settings(field_aliases_path=first)
    assert settings.field_mapping().aliases_for("dob") == ("born",)

    settings.field_aliases_path = second
    assert settings.field_mapping().aliases_for("dob") == ("birthday",)


def test_configure_logging_emit_debug(tmp_path):
    settings = Settings(
        output_dir=tmp_path / "outputs",
        temp_dir=tmp_path / "tmp",
        log_level="DEBUG",
        debug=True,
    )

    settings.ensure_directories()
    configure_logging(settings, force=True)

    logger = get_logger("report_splitter.test")
    logger.debug("debug message emitted")

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert any(isinstance(handler, logging.StreamHandler) for handler in root_logger.handlers)

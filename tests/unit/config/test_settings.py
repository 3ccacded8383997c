# tests/unit/config/test_settings.py - v2
"""Tests for config/settings.py - typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from fileorganizer.config.settings import ConfigurationError, Settings, load_settings
from fileorganizer.core.errors import ErrorKind, FileOrganizationError


class TestSettingsDefaults:
    def test_default_windows(self):
        s = Settings(_env_file=None)
        assert s.window_size == 5
        assert s.window_overlap == 1
        assert s.max_concurrent_windows == 4

    def test_default_merge(self):
        s = Settings(_env_file=None)
        assert s.group_confidence_threshold == 3
        assert s.adjacency_boundary_threshold == 2
        assert s.blank_page_handling == "join_previous"
        assert s.null_group_resolution_enabled is False

    def test_default_conversion_wait(self):
        s = Settings(_env_file=None)
        assert s.transcode_poll_interval_s == 5.0
        assert s.transcode_timeout_s == 120.0

    def test_default_provider(self):
        s = Settings(_env_file=None)
        assert s.llm_provider == "anthropic"
        assert s.store_backend == "local"
        assert s.output_path == Path("~/.fileorganizer")


class TestSettingsValidation:
    def test_window_size_too_small(self):
        with pytest.raises(ConfigurationError, match="WINDOW_SIZE"):
            Settings(_env_file=None, window_size=1)

    def test_window_size_too_large(self):
        with pytest.raises(ConfigurationError, match="WINDOW_SIZE"):
            Settings(_env_file=None, window_size=101)

    def test_overlap_gte_window_size(self):
        with pytest.raises(ConfigurationError, match="WINDOW_OVERLAP"):
            Settings(_env_file=None, window_size=4, window_overlap=4)

    def test_overlap_zero(self):
        with pytest.raises(ConfigurationError, match="WINDOW_OVERLAP"):
            Settings(_env_file=None, window_overlap=0)

    def test_low_max_above_high_min(self):
        with pytest.raises(ConfigurationError, match="LOW_CONFIDENCE_MAX"):
            Settings(_env_file=None, low_confidence_max=5, high_confidence_min=4)

    def test_errors_are_joined(self):
        with pytest.raises(ConfigurationError, match="WINDOW_SIZE.*;"):
            Settings(_env_file=None, window_size=1, transcode_timeout_s=0)

    def test_inconsistency_is_a_config_error(self):
        with pytest.raises(FileOrganizationError) as exc_info:
            Settings(_env_file=None, window_size=4, window_overlap=4)
        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.kind is ErrorKind.CONFIG
        assert exc_info.value.retryable is False

    def test_score_threshold_out_of_range(self):
        with pytest.raises(ValidationError, match="between 0 and 5"):
            Settings(_env_file=None, group_confidence_threshold=6)

    def test_similarity_out_of_range(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, name_similarity_threshold=1.5)

    def test_unknown_blank_mode(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, blank_page_handling="ignore")


class TestApiKey:
    def test_anthropic_key(self):
        s = Settings(_env_file=None, anthropic_api_key="sk-ant")
        assert s.llm_api_key == "sk-ant"

    def test_openai_key(self):
        s = Settings(_env_file=None, llm_provider="openai", openai_api_key="sk-oai")
        assert s.llm_api_key == "sk-oai"

    def test_unknown_provider_has_no_key(self):
        s = Settings(_env_file=None, llm_provider="other")
        assert s.llm_api_key == ""


class TestEnvLoading:
    def test_env_variables(self, monkeypatch):
        monkeypatch.setenv("WINDOW_SIZE", "8")
        monkeypatch.setenv("WINDOW_OVERLAP", "2")
        s = Settings(_env_file=None)
        assert s.window_size == 8
        assert s.window_overlap == 2

    def test_load_settings_overrides(self):
        s = load_settings(_env_file=None, window_size=10, blank_page_handling="discard")
        assert s.window_size == 10
        assert s.blank_page_handling == "discard"

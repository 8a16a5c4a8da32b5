"""
Tests for environment configuration.
"""

import os
from unittest.mock import patch

import pytest

from src.yorkiebook.config import get_env_int, get_env_str, load_config


class TestConfig:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_config()
        assert config["STORAGE_BACKEND"] == "sqlite"
        assert config["LLM_PROVIDER"] == "openai"
        assert config["PROVIDER_MAX_ATTEMPTS"] == 3
        assert config["PROVIDER_RETRY_DELAY_SECONDS"] == 1.0
        assert config["USE_BACKGROUND_JOBS"] is False
        assert config["RATELIMIT_STORAGE_URI"] == "memory://"

    def test_environment_overrides(self):
        env = {
            "STORAGE_BACKEND": "memory",
            "LLM_PROVIDER": "Gemini",
            "USE_BACKGROUND_JOBS": "true",
            "PROVIDER_MAX_ATTEMPTS": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config()
        assert config["STORAGE_BACKEND"] == "memory"
        assert config["LLM_PROVIDER"] == "gemini"
        assert config["USE_BACKGROUND_JOBS"] is True
        assert config["PROVIDER_MAX_ATTEMPTS"] == 5

    @pytest.mark.parametrize("raw, expected", [("abc", 3), ("0", 1), ("99", 10)])
    def test_get_env_int_bounds(self, raw, expected):
        with patch.dict(os.environ, {"PROVIDER_MAX_ATTEMPTS": raw}):
            assert get_env_int("PROVIDER_MAX_ATTEMPTS", 3, 1, 10) == expected

    def test_get_env_str_rejects_unknown_value(self):
        with patch.dict(os.environ, {"STORAGE_BACKEND": "postgres"}):
            assert get_env_str("STORAGE_BACKEND", "sqlite", ["sqlite", "memory"]) == "sqlite"

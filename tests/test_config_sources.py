"""Test configuration reading from multiple sources."""

import os
import tempfile
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

from repostalker.configs import config as config_module
from repostalker.configs.config import AppConfig, get_app_config, get_llm_config


class TestConfigSources:
    """Test configuration loading from multiple sources."""

    def test_defaults(self):
        config = AppConfig()

        assert config.rate_limit.per_client_per_minute == 10
        assert config.rate_limit.global_per_hour == 50
        assert config.rate_limit.global_per_day == 2000
        assert config.chat.max_iterations == 5
        assert config.chat.list_result_cap == 10
        assert config.llm.default_model in config.llm.supported_models

    def test_config_env_vars_work(self):
        env_vars = {
            "REPOSTALKER_RATE_LIMIT__PER_CLIENT_PER_MINUTE": "3",
            "REPOSTALKER_LLM__API_KEY": "sk-test",
            "REPOSTALKER_THIRD_PARTY__GITHUB_TIMEOUT": "PT5S",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            config = AppConfig()

            assert config.rate_limit.per_client_per_minute == 3
            assert config.llm.api_key == "sk-test"
            assert config.third_party.github_timeout == timedelta(seconds=5)

    def test_override_file_wins_over_env(self):
        with tempfile.TemporaryDirectory() as tmp:
            override = Path(tmp) / "override.yaml"
            override.write_text("rate_limit:\n  global_per_hour: 7\n")
            env_vars = {"REPOSTALKER_RATE_LIMIT__GLOBAL_PER_HOUR": "99"}

            with (
                patch.object(config_module, "OVERRIDE_CONFIG_FILE", override),
                patch.dict(os.environ, env_vars, clear=False),
            ):
                config = AppConfig()

            assert config.rate_limit.global_per_hour == 7

    def test_get_app_config_rereads(self):
        with patch.dict(
            os.environ, {"REPOSTALKER_CHAT__MAX_ITERATIONS": "2"}, clear=False
        ):
            assert get_app_config().chat.max_iterations == 2
        assert get_app_config() is not get_app_config()

    def test_get_llm_config(self):
        config = AppConfig()
        assert get_llm_config(config) is config.llm

from pathlib import Path

import pytest

from dsg.config import DEFAULT_DATAHUB_URL, DEFAULT_TIMEOUT, Settings, default_data_dir
from dsg.errors import ConfigError


def test_defaults_from_empty_env(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    settings = Settings.from_env({})

    assert settings.datahub_url == DEFAULT_DATAHUB_URL
    assert settings.datahub_token is None
    assert settings.model == "gpt-4o"
    assert settings.llm_provider == "openai"
    assert settings.use_azure is False
    assert settings.azure_api_version == "2023-05-15"
    assert settings.debug is False


def test_values_from_env(tmp_path):
    env = {
        "DATAHUB_GMS_URL": "http://gms:8080",
        "DATAHUB_GMS_TOKEN": "tok",
        "DATAHUB_TIMEOUT": "5",
        "OPENAI_API_KEY": "sk",
        "OPENAI_API_BASE": "https://llm/v1",
        "OPENAI_MODEL": "gpt-x",
        "OPENAI_USE_AZURE": "true",
        "AZURE_OPENAI_DEPLOYMENT": "dep",
        "DSG_LLM_PROVIDER": "MOCK",
        "DSG_DATA_DIR": str(tmp_path / "dsg"),
        "DSG_DEBUG": "1",
    }
    settings = Settings.from_env(env)

    assert settings.datahub_url == "http://gms:8080"
    assert settings.datahub_token == "tok"
    assert settings.datahub_timeout == 5.0
    assert settings.api_key == "sk"
    assert settings.api_base == "https://llm/v1"
    assert settings.model == "gpt-x"
    assert settings.use_azure is True
    assert settings.azure_deployment == "dep"
    assert settings.llm_provider == "mock"
    assert settings.data_dir == tmp_path / "dsg"
    assert settings.debug is True


def test_default_data_dir():
    assert default_data_dir({"XDG_DATA_HOME": "/xdg"}) == Path("/xdg/dsg")
    assert default_data_dir({}) == Path.home() / ".local" / "share" / "dsg"


def test_override_ignores_none():
    settings = Settings(model="a").override(model=None, datahub_url="http://x")
    assert settings.model == "a"
    assert settings.datahub_url == "http://x"


def test_timeout_defaults_when_empty():
    assert Settings.from_env({"DATAHUB_TIMEOUT": ""}).datahub_timeout == DEFAULT_TIMEOUT


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_timeout(value):
    with pytest.raises(ConfigError, match="DATAHUB_TIMEOUT"):
        Settings.from_env({"DATAHUB_TIMEOUT": value})

from pathlib import Path

import pytest

from genbatch.infrastructure.config import settings
from genbatch.infrastructure.config.settings import (
    get_airtable_token, get_config, get_downloads_dir, get_page_size, get_server_port, load_configuration,
    reset_configuration, set_config_for_testing,
)


@pytest.fixture(autouse=True)
def fresh_configuration(monkeypatch):
    # setenv first so values written by load_dotenv are removed again on teardown
    for name in ("AIRTABLE_TOKEN", "AIRTABLE_BASE_ID", "BATCH_PAGE_SIZE", "SERVER_PORT", "DOWNLOADS_DIR"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    reset_configuration()
    yield
    reset_configuration()


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "airtable:\n"
        "  token: yaml-token\n"
        "  base_id: appYAML\n"
        "batch.page_size: 25\n"
    )
    return path


def test_default_when_missing():
    assert get_config("nothing.here", "fallback") == "fallback"


def test_nested_and_flat_yaml_keys(yaml_file, tmp_path):
    load_configuration(config_file=yaml_file, env_file=tmp_path / "missing.env")

    assert get_airtable_token() == "yaml-token"
    assert get_config("airtable.base_id") == "appYAML"
    assert get_page_size() == 25


def test_environment_overrides_yaml(yaml_file, tmp_path, monkeypatch):
    monkeypatch.setenv("AIRTABLE_TOKEN", "env-token")
    monkeypatch.setenv("SERVER_PORT", "8080")
    load_configuration(config_file=yaml_file, env_file=tmp_path / "missing.env")

    assert get_airtable_token() == "env-token"
    assert get_server_port() == 8080


def test_dotenv_file_loaded(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("AIRTABLE_BASE_ID=appDOTENV\n")
    load_configuration(config_file=tmp_path / "none.yaml", env_file=env_file)

    assert get_config("airtable.base_id") == "appDOTENV"


def test_environment_values_coerced(monkeypatch):
    monkeypatch.setenv("FEATURE_ENABLED", "true")
    monkeypatch.setenv("BATCH_PAGE_SIZE", "50")

    assert get_config("feature.enabled") is True
    assert get_config("batch.page_size") == 50


def test_test_overrides_win(monkeypatch):
    monkeypatch.setenv("AIRTABLE_TOKEN", "env-token")
    set_config_for_testing({"airtable.token": "test-token"})
    assert get_airtable_token() == "test-token"


@pytest.mark.parametrize("value", [0, -5, "many"])
def test_invalid_page_size_falls_back(value):
    set_config_for_testing({"batch.page_size": value})
    assert get_page_size() == 100


def test_downloads_dir_resolved(tmp_path):
    set_config_for_testing({"downloads.dir": str(tmp_path / "dl")})
    assert get_downloads_dir() == (tmp_path / "dl").resolve()


def test_load_is_idempotent(yaml_file, tmp_path):
    load_configuration(config_file=yaml_file, env_file=tmp_path / "missing.env")
    yaml_file.write_text("airtable:\n  token: changed\n")
    load_configuration(config_file=yaml_file, env_file=tmp_path / "missing.env")

    assert get_airtable_token() == "yaml-token"
    assert settings.DEFAULT_CONFIG_FILE == Path.home() / ".genbatch" / "config.yaml"

import pytest
import yaml

from runstore.config import ENV_VARS, Settings, as_bool, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("RUNSTORE_CONFIG", raising=False)
    for var in ENV_VARS.values():
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings == Settings()
    assert settings.db_url == "sqlite:///runs.db"
    assert settings.backend == "sqlite"
    assert settings.serializer == "msgpack"
    assert settings.save_post is False
    assert settings.query_timeout == 30.0


def test_yaml_file(tmp_path):
    path = tmp_path / "runstore.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "db_url": "postgresql://runs@db/runs",
                "backend": "PostgreSQL",
                "serializer": "json",
                "save_post": True,
                "query_timeout": 5,
            }
        )
    )
    settings = load_settings(path)
    assert settings.backend == "postgresql"
    assert settings.serializer == "json"
    assert settings.save_post is True
    assert settings.query_timeout == 5.0


def test_config_file_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "runstore.yaml"
    path.write_text("server_id: web-7\n")
    monkeypatch.setenv("RUNSTORE_CONFIG", str(path))
    assert load_settings().server_id == "web-7"


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "runstore.yaml"
    path.write_text("serializer: json\nsave_post: false\n")
    monkeypatch.setenv("RUNSTORE_SERIALIZER", "msgpack")
    monkeypatch.setenv("RUNSTORE_SAVE_POST", "yes")
    monkeypatch.setenv("RUNSTORE_QUERY_TIMEOUT", "none")
    settings = load_settings(path)
    assert settings.serializer == "msgpack"
    assert settings.save_post is True
    assert settings.query_timeout is None


def test_unknown_setting(tmp_path):
    path = tmp_path / "runstore.yaml"
    path.write_text("dbhost: localhost\n")
    with pytest.raises(ValueError, match="dbhost"):
        load_settings(path)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"backend": "oracle"},
        {"serializer": "php"},
        {"save_post": "maybe"},
        {"query_timeout": 0},
    ],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        Settings(**kwargs)


def test_as_bool():
    assert as_bool("True") is True
    assert as_bool("0") is False
    assert as_bool(False) is False

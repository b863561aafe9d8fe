"""Tests for the persisted configuration store."""
import json

import pytest

from bunkr_uploader.errors import ConfigError
from bunkr_uploader.models import DEFAULT_API_URL, UploadConfig
from bunkr_uploader.services.config_store import ConfigStore


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.delenv("BUNKR_API_URL", raising=False)
    return ConfigStore(tmp_path / "conf" / "config.json")


def test_missing_file_yields_defaults(store):
    assert store.load() == UploadConfig()


def test_set_value_persists(store):
    store.set_value("default_batch_size", "4")
    store.set_value("default_album_name", "Trips")
    store.set_value("preprocess_videos", "false")

    config = store.load()
    assert config.default_batch_size == 4
    assert config.default_album_name == "Trips"
    assert config.preprocess_videos is False

    data = json.loads(store.path.read_text(encoding="utf-8"))
    assert data["default_batch_size"] == 4
    assert "api_base_url" not in data


def test_none_clears_optional_value(store):
    store.set_value("default_album_id", "12")
    assert store.get_value("default_album_id") == "12"

    store.set_value("default_album_id", "none")
    assert store.load().default_album_id is None
    assert store.get_value("default_album_id") == "none"


def test_unknown_key_is_rejected(store):
    with pytest.raises(ConfigError):
        store.set_value("colour", "blue")
    with pytest.raises(ConfigError):
        store.get_value("colour")


@pytest.mark.parametrize(
    "key, value",
    [
        ("default_batch_size", "0"),
        ("default_batch_size", "many"),
        ("preprocess_videos", "maybe"),
        ("max_retries", "-1"),
    ],
)
def test_invalid_value_is_rejected(store, key, value):
    with pytest.raises(ConfigError):
        store.set_value(key, value)
    assert not store.path.exists()


def test_corrupt_file_falls_back_to_defaults(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() == UploadConfig()


def test_invalid_persisted_values_are_ignored(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(
        json.dumps({"default_batch_size": -3, "max_retries": 5, "unknown": 1}),
        encoding="utf-8",
    )
    config = store.load()
    assert config.default_batch_size == 1
    assert config.max_retries == 5


def test_items_lists_current_and_default(store):
    store.set_value("default_batch_size", "3")
    rows = {key: (value, default) for key, value, default in store.items()}
    assert rows["default_batch_size"] == ("3", "1")
    assert rows["default_album_id"] == ("none", "none")
    assert rows["preprocess_videos"] == ("true", "true")


def test_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "env-config.json"
    monkeypatch.setenv("BUNKR_UPLOADER_CONFIG", str(path))
    monkeypatch.setenv("BUNKR_API_URL", "https://mirror.example")

    store = ConfigStore()
    assert store.path == path
    assert store.load().api_base_url == "https://mirror.example"

    monkeypatch.delenv("BUNKR_API_URL")
    assert store.load().api_base_url == DEFAULT_API_URL

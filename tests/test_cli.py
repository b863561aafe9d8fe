"""Tests for bunkr_uploader CLI helpers."""
import logging
import os
from pathlib import Path

import pytest

from bunkr_uploader import cli
from bunkr_uploader.cli import _load_env_file, _parse_args, _setup_logging, _write_failures, run_cli
from bunkr_uploader.errors import ErrorKind, UploadError
from bunkr_uploader.models import UploadOutcome
from bunkr_uploader.orchestrator.models import BatchResult
from bunkr_uploader.services.credentials import StaticCredentialStore


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    monkeypatch.setenv("BUNKR_UPLOADER_CONFIG", str(path))
    monkeypatch.delenv("BUNKR_API_URL", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    yield path
    logging.disable(logging.NOTSET)


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# comment",
                "BUNKR_TOKEN='abc123'",
                "export BUNKR_API_URL=https://dash.example",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.delenv("BUNKR_TOKEN", raising=False)
    monkeypatch.delenv("BUNKR_API_URL", raising=False)

    _load_env_file(env_path)

    assert os.environ["BUNKR_TOKEN"] == "abc123"
    assert os.environ["BUNKR_API_URL"] == "https://dash.example"


def test_setup_logging_defaults_to_silent(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False
    logging.disable(logging.NOTSET)


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True
    assert logging.getLogger("httpx").level == logging.WARNING
    logging.disable(logging.NOTSET)


def test_parse_args_routes_commands():
    args = _parse_args(["save-token", "abc"])
    assert args.command == "save-token"
    assert args.token == "abc"

    args = _parse_args(["config", "set", "default_batch_size", "3"])
    assert (args.command, args.action, args.key, args.value) == ("config", "set", "default_batch_size", "3")

    args = _parse_args(["create-album", "Trips", "--private"])
    assert args.command == "create-album"
    assert args.private is True


def test_parse_args_skips_option_values_when_routing():
    args = _parse_args(["-n", "config", "a.jpg"])
    assert args.command is None
    assert args.album_name == "config"
    assert args.paths == [Path("a.jpg")]

    args = _parse_args(["--token", "save-token", "a.jpg"])
    assert args.command is None
    assert args.token == "save-token"

    args = _parse_args(["--log-level", "DEBUG", "config", "get"])
    assert (args.command, args.action, args.log_level) == ("config", "get", "DEBUG")


def test_parse_args_upload_form():
    args = _parse_args(["a.jpg", "b.mp4", "-t", "tok", "--album-name", "Trips", "-b", "4"])
    assert args.command is None
    assert args.paths == [Path("a.jpg"), Path("b.mp4")]
    assert args.token == "tok"
    assert args.album_name == "Trips"
    assert args.batch_size == 4


def test_config_set_and_get(config_path, capsys):
    assert run_cli(["config", "set", "default_batch_size", "5"]) == 0
    assert config_path.exists()
    capsys.readouterr()

    assert run_cli(["config", "get", "default_batch_size"]) == 0
    assert capsys.readouterr().out.strip() == "5"


def test_config_set_rejects_unknown_key(config_path, capsys):
    assert run_cli(["config", "set", "nope", "1"]) == 1
    assert "Unknown key" in capsys.readouterr().err


def test_save_token_uses_credential_store(config_path, monkeypatch):
    store = StaticCredentialStore()
    monkeypatch.setattr(cli, "_credential_store", lambda: store)

    assert run_cli(["save-token", "abc123"]) == 0
    assert store.get_token().reveal() == "abc123"


def test_upload_without_token_fails(config_path, tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("BUNKR_TOKEN", raising=False)
    monkeypatch.setattr(cli, "_credential_store", lambda: StaticCredentialStore())
    photo = tmp_path / "a.jpg"
    photo.write_bytes(b"x")

    assert run_cli([str(photo)]) == 1
    assert "No token" in capsys.readouterr().err


def test_upload_missing_path_fails(config_path, tmp_path, capsys):
    assert run_cli([str(tmp_path / "missing.jpg")]) == 1
    assert "Invalid path" in capsys.readouterr().err


class _FakeBunkrClient:
    """Stands in for BunkrClient inside ``async with``."""

    failing = set()

    def __init__(self, base_url=None, timeout=None):
        self.max_file_size = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    async def upload(self, file_path, token, album_id=None):
        if file_path.name in self.failing:
            raise UploadError.permanent("rejected", status_code=415)
        return f"https://cdn.example/{file_path.name}"

    async def find_album_by_name(self, name, token):
        return "8"

    async def create_album(self, name, description, token, download=True, public=True):
        return "9"


def test_upload_end_to_end(config_path, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "BunkrClient", _FakeBunkrClient)
    monkeypatch.setattr(_FakeBunkrClient, "failing", {"bad.jpg"})
    monkeypatch.setattr(cli, "_credential_store", lambda: StaticCredentialStore("tok"))
    good = tmp_path / "good.jpg"
    bad = tmp_path / "bad.jpg"
    good.write_bytes(b"x")
    bad.write_bytes(b"y")

    assert run_cli([str(good), "--no-preprocess"]) == 0
    assert not (tmp_path / "failed_uploads.txt").exists()

    assert run_cli([str(good), str(bad), "-n", "Trips", "-b", "2"]) == 1
    lines = (tmp_path / "failed_uploads.txt").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert lines[0].startswith(f"File: {bad}, Kind: permanent, Error: rejected")
    assert "Status: 415" in lines[0]


def test_write_failures_appends(tmp_path):
    target = tmp_path / "failed.txt"
    result = BatchResult(outcomes=[
        UploadOutcome.ok(tmp_path / "ok.jpg", ["u"]),
        UploadOutcome.fail(tmp_path / "gone.jpg", ErrorKind.TRANSIENT, "timeout", retries_used=3),
    ])

    _write_failures(result, target)
    _write_failures(result, target)

    lines = target.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert "Kind: transient" in lines[0]
    assert "Size: 0" in lines[0]
    assert "Retries: 3" in lines[0]

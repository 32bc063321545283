from __future__ import annotations

import json

from tailserve import config


def test_load_config_defaults_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "CONFIG_FILE", tmp_path / "missing" / "config.json")

    assert config.load_config() == {"tailscale_binary": "tailscale", "port": 8080}


def test_load_config_merges_over_defaults(monkeypatch, tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"port": 9000}), encoding="utf-8")
    monkeypatch.setattr(config, "CONFIG_FILE", path)

    assert config.load_config() == {"tailscale_binary": "tailscale", "port": 9000}


def test_load_config_ignores_malformed_file(monkeypatch, tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    monkeypatch.setattr(config, "CONFIG_FILE", path)

    assert config.load_config() == config.DEFAULT_CONFIG


def test_save_config_creates_directory(monkeypatch, tmp_path):
    path = tmp_path / "nested" / "config.json"
    monkeypatch.setattr(config, "CONFIG_FILE", path)

    config.save_config({"tailscale_binary": "/usr/bin/tailscale", "port": 8443})

    assert json.loads(path.read_text(encoding="utf-8"))["port"] == 8443
    assert config.load_config()["tailscale_binary"] == "/usr/bin/tailscale"


def test_load_config_defaults_when_unreadable(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "CONFIG_FILE", tmp_path)

    assert config.load_config() == config.DEFAULT_CONFIG

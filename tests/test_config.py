"""Tests for GenerationConfig construction and environment loading."""

import json

import pytest

from figurine.core.errors import ConfigError
from figurine.image.provider_config import DEFAULT_PRESETS, GenerationConfig, load_key


def test_defaults():
    config = GenerationConfig(api_key="k")

    assert config.cooldown_seconds == 30
    assert config.poll_interval_seconds == 3
    assert config.max_poll_attempts == 40
    assert config.presets == DEFAULT_PRESETS
    assert config.style_count == 4
    assert config.max_image_size_bytes == 10 * 1024 * 1024


@pytest.mark.parametrize(
    "overrides",
    [
        {"api_key": "  "},
        {"cooldown_seconds": 4},
        {"api_timeout_seconds": 601},
        {"poll_interval_seconds": 0},
        {"max_poll_attempts": 101},
        {"max_image_size_mb": 51},
        {"presets": ()},
        {"default_style": 5},
    ],
)
def test_out_of_range_values_rejected(overrides):
    kwargs = {"api_key": "k", **overrides}

    with pytest.raises(ConfigError):
        GenerationConfig(**kwargs)


def test_from_env(monkeypatch):
    monkeypatch.setenv("YUNWU_API_KEY", "env-key")
    monkeypatch.setenv("FIGURINE_COOLDOWN_SECONDS", "60")
    monkeypatch.setenv("FIGURINE_MAX_POLL_ATTEMPTS", "20")
    monkeypatch.setenv("FIGURINE_ENABLE_LOG", "false")
    monkeypatch.setenv("FIGURINE_PRESETS", json.dumps(["one", "two"]))
    monkeypatch.setenv("FIGURINE_DEFAULT_STYLE", "2")

    config = GenerationConfig.from_env()

    assert config.api_key == "env-key"
    assert config.cooldown_seconds == 60
    assert config.max_poll_attempts == 20
    assert config.enable_log is False
    assert config.presets == ("one", "two")
    assert config.default_style == 2


def test_from_env_requires_key(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("YUNWU_API_KEY", raising=False)

    with pytest.raises(ConfigError):
        GenerationConfig.from_env()


@pytest.mark.parametrize("name, value", [("FIGURINE_POLL_INTERVAL_SECONDS", "fast"), ("FIGURINE_PRESETS", "{bad")])
def test_from_env_rejects_malformed_values(monkeypatch, name, value):
    monkeypatch.setenv("YUNWU_API_KEY", "env-key")
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError):
        GenerationConfig.from_env()


def test_fractional_poll_interval_from_env(monkeypatch):
    monkeypatch.setenv("YUNWU_API_KEY", "env-key")
    monkeypatch.setenv("FIGURINE_POLL_INTERVAL_SECONDS", "1.5")

    assert GenerationConfig.from_env().poll_interval_seconds == 1.5


def test_load_key_reads_file_when_env_missing(monkeypatch, tmp_path):
    key_file = tmp_path / "yunwu.key"
    key_file.write_text("file-key\n")
    monkeypatch.delenv("YUNWU_API_KEY", raising=False)

    assert load_key(str(key_file)) == "file-key"
    assert load_key(None) is None
    assert load_key(str(tmp_path / "missing.key")) is None

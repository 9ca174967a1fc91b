"""Tests for configuration loading."""

import json

import pytest

from giveaway_dashboard.utils.config import (
    ConfigError,
    get_backoff,
    get_config_value,
    get_int,
    load_config,
    redact_config,
    validate_config,
)

FULL_ENV = {
    "TWITCH_CHANNEL": "streamer",
    "TWITCH_BOT": "giveawaybot",
    "TWITCH_OAUTH": "oauth:abc",
    "SHEET_WEBHOOK": "https://sheet.example/exec",
}


class TestLoadConfig:
    """File and environment layering."""

    def test_env_only(self, tmp_path):
        config = load_config(tmp_path / "missing.conf", environ=FULL_ENV)

        assert config["twitch"] == {"channel": "streamer", "bot": "giveawaybot", "oauth": "oauth:abc"}
        assert config["ledger"]["webhook"] == "https://sheet.example/exec"

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "giveaway.conf"
        path.write_text(json.dumps({"twitch": {"channel": "from_file", "bot": "filebot"}, "giveaway": {"max_entrants": 10}}))

        config = load_config(path, environ={"TWITCH_CHANNEL": "from_env"})

        assert config["twitch"]["channel"] == "from_env"
        assert config["twitch"]["bot"] == "filebot"
        assert config["giveaway"]["max_entrants"] == 10

    def test_explicit_env_names(self, tmp_path):
        config = load_config(
            tmp_path / "missing.conf",
            environ={"SHEET_KEY": "k", "ADMIN_TOKEN": "adm", "MOD_NAME": "modbot", "PORT": "9000"},
        )

        assert config["ledger"]["key"] == "k"
        assert config["server"]["admin_token"] == "adm"
        assert config["giveaway"]["mod_name"] == "modbot"
        assert get_int(config, "server.port", 8080) == 9000

    def test_unrelated_env_is_ignored(self, tmp_path):
        config = load_config(tmp_path / "missing.conf", environ={"HOME": "/root", "GIVEAWAY_CONFIG": "x"})

        assert config == {}

    def test_config_path_from_env(self, tmp_path):
        path = tmp_path / "custom.conf"
        path.write_text(json.dumps({"server": {"host": "127.0.0.1"}}))

        config = load_config(environ={"GIVEAWAY_CONFIG": str(path)})

        assert config["server"]["host"] == "127.0.0.1"

    def test_malformed_file_raises(self, tmp_path):
        path = tmp_path / "giveaway.conf"
        path.write_text("{not json")

        with pytest.raises(ConfigError):
            load_config(path, environ={})


class TestValidateConfig:
    def test_complete_config_passes(self, tmp_path):
        validate_config(load_config(tmp_path / "missing.conf", environ=FULL_ENV))

    def test_lists_every_missing_setting(self):
        with pytest.raises(ConfigError) as excinfo:
            validate_config({"twitch": {"channel": "streamer"}})

        message = str(excinfo.value)
        assert "TWITCH_BOT" in message
        assert "TWITCH_OAUTH" in message
        assert "SHEET_WEBHOOK" in message
        assert "TWITCH_CHANNEL" not in message


class TestAccessors:
    def test_get_config_value_default(self):
        assert get_config_value({"a": {"b": 1}}, "a.b") == 1
        assert get_config_value({"a": {"b": 1}}, "a.c", "x") == "x"
        assert get_config_value({"a": "flat"}, "a.b", None) is None

    def test_get_int_rejects_garbage(self):
        with pytest.raises(ConfigError):
            get_int({"giveaway": {"max_entrants": "lots"}}, "giveaway.max_entrants", 7500)

    def test_get_backoff_accepts_list_and_string(self):
        assert get_backoff({"ledger": {"backoff": [0.5, 1]}}, "ledger.backoff", [2.0]) == [0.5, 1.0]
        assert get_backoff({"ledger": {"backoff": "0.5, 1, 2"}}, "ledger.backoff", [2.0]) == [0.5, 1.0, 2.0]
        assert get_backoff({}, "ledger.backoff", [2.0]) == [2.0]

    @pytest.mark.parametrize("raw", ["", "a,b", []])
    def test_get_backoff_rejects_bad_values(self, raw):
        with pytest.raises(ConfigError):
            get_backoff({"ledger": {"backoff": raw}}, "ledger.backoff", [1.0])

    def test_redact_config_masks_secrets(self):
        redacted = redact_config({"twitch": {"oauth": "oauth:abc", "channel": "streamer"}, "server": {"admin_token": ""}})

        assert redacted == {"twitch": {"oauth": "set", "channel": "streamer"}, "server": {"admin_token": "missing"}}

"""Tests for configuration loading, the board marker and the error log sink."""
import logging
from pathlib import Path

import pytest

from cardscan.config import Config, ConfigError, REQUIRED_ENV
from cardscan.log import configure_logging
from cardscan.marker import BoardMarker

CREDS = {
    "OPENAI_API_KEY": "sk-test",
    "TRELLO_API_KEY": "trello-key",
    "TRELLO_API_TOKEN": "trello-token",
}


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name, value in CREDS.items():
        monkeypatch.setenv(name, value)
    return tmp_path


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestConfig:

    def test_defaults_without_file(self, env):
        cfg = Config.load(env_file=None)

        assert cfg.openai_model == "gpt-4o-mini"
        assert cfg.max_tokens == 100
        assert cfg.db_path == str(env.resolve() / "trello_scraper.db")
        assert cfg.error_log_path == str(env.resolve() / "logs" / "errors.log")
        assert cfg.credentials == CREDS

    def test_yaml_overrides_and_unknown_keys(self, env):
        (env / "custom.yaml").write_text(
            "db_path: data/contacts.db\n"
            "openai_model: gpt-4o\n"
            "request_timeout: 5\n"
            "webhook_url: ignored\n"
        )

        cfg = Config.load("custom.yaml", env_file=None)

        assert cfg.db_path == str(env.resolve() / "data" / "contacts.db")
        assert cfg.openai_model == "gpt-4o"
        assert cfg.request_timeout == 5
        assert not hasattr(cfg, "webhook_url")

    def test_default_file_picked_up(self, env):
        (env / "cardscan.yaml").write_text("log_level: DEBUG\n")
        assert Config.load(env_file=None).log_level == "DEBUG"

    def test_explicit_missing_file(self, env):
        with pytest.raises(ConfigError, match="not found"):
            Config.load("nope.yaml", env_file=None)

    def test_invalid_yaml(self, env):
        (env / "cardscan.yaml").write_text("db_path: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            Config.load(env_file=None)

    def test_non_mapping_yaml(self, env):
        (env / "cardscan.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            Config.load(env_file=None)

    def test_missing_credentials_named(self, env, monkeypatch):
        monkeypatch.delenv("TRELLO_API_TOKEN")
        with pytest.raises(ConfigError) as exc:
            Config.load(env_file=None)
        assert "TRELLO_API_TOKEN" in str(exc.value)
        assert "OPENAI_API_KEY" not in str(exc.value)

    def test_dotenv_file_loaded(self, env, monkeypatch):
        for name in REQUIRED_ENV:
            monkeypatch.delenv(name)
        (env / ".env").write_text("".join(f"{k}={v}\n" for k, v in CREDS.items()))

        cfg = Config.load()

        assert cfg.credentials == CREDS

    def test_environment_wins_over_dotenv(self, env):
        (env / ".env").write_text("OPENAI_API_KEY=from-dotenv\n")
        assert Config.load().credentials["OPENAI_API_KEY"] == "sk-test"

    def test_credentials_hidden_from_repr(self, env):
        assert "sk-test" not in repr(Config.load(env_file=None))

    def test_load_credentials_from_mapping(self):
        cfg = Config()
        cfg.load_credentials(env=CREDS)
        assert cfg.credentials == CREDS

    def test_blank_credential_counts_as_missing(self):
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            Config().load_credentials(env=dict(CREDS, OPENAI_API_KEY=""))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Board marker
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_marker_missing_file_reads_none(tmp_path):
    assert BoardMarker(str(tmp_path / "last_board.txt")).read() is None


def test_marker_write_then_read(tmp_path):
    marker = BoardMarker(str(tmp_path / "state" / "last_board.txt"))
    marker.write("b1")
    marker.write("b2")
    assert marker.read() == "b2"
    assert not Path(str(marker.path) + ".tmp").exists()


def test_marker_blank_file_reads_none(tmp_path):
    path = tmp_path / "last_board.txt"
    path.write_text("  \n")
    assert BoardMarker(str(path)).read() is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Error log
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_error_log_truncated_per_run(tmp_path, restore_logging):
    path = tmp_path / "logs" / "errors.log"
    path.parent.mkdir()
    path.write_text("stale line from the previous run\n")

    sink = configure_logging(str(path))
    log = logging.getLogger("cardscan.sync")
    log.info("Processing List: New leads")
    log.warning("Failed to parse JSON for card c1. Content: 'nope'")
    sink.flush()

    lines = path.read_text().splitlines()
    assert len(lines) == 1
    assert "Failed to parse JSON for card c1" in lines[0]
    assert "[WARNING]" in lines[0]

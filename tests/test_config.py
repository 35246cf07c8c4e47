"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from lunchmoney_sync.config import (
    Config,
    FintocConfig,
    GmailConfig,
    LunchMoneyConfig,
    create_default_config,
    load_config,
)
from lunchmoney_sync.errors import redact

ENV_VARS = [
    "LUNCHMONEY_TOKEN",
    "LUNCHMONEY_ASSET_ID",
    "LM_ASSET_ID",
    "FINTOC_API_KEY",
    "FINTOC_LINK_ID",
    "GMAIL_CLIENT_ID",
    "GMAIL_CLIENT_SECRET",
    "GMAIL_REFRESH_TOKEN",
    "SYNC_SOURCE",
    "DAYS_TO_SYNC",
    "CURRENCY_CODE",
    "MEMORY_PATH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


SAMPLE_YAML = """
lunchmoney:
  token: "file-token"
  asset_id: 42
fintoc:
  api_key: "sk_file"
  link_id: "acc_file"
sync:
  source: "fintoc"
  days_to_sync: 14
  currency: "USD"
  category_rules:
    "uber": "Transport"
    "lider": "Groceries"
memory_path: "state/memory.json"
"""


class TestLoadConfig:
    """Tests for YAML loading and environment overrides."""

    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")

        assert config.lunchmoney.token == ""
        assert config.lunchmoney.asset_id is None
        assert config.sync.source == "fintoc"
        assert config.sync.days_to_sync == 7
        assert config.sync.currency == "CLP"
        assert config.sync.batch_size == 50
        assert config.sync.history_start_date == "2023-01-01"
        assert config.memory_path == Path("data/categorization_memory.json")

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(SAMPLE_YAML)

        config = load_config(path)

        assert config.lunchmoney.token == "file-token"
        assert config.lunchmoney.asset_id == 42
        assert config.fintoc.link_id == "acc_file"
        assert config.sync.days_to_sync == 14
        assert config.sync.currency == "USD"
        assert list(config.sync.category_rules) == ["uber", "lider"]
        assert config.memory_path == Path("state/memory.json")

    def test_environment_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(SAMPLE_YAML)
        monkeypatch.setenv("LUNCHMONEY_TOKEN", "env-token")
        monkeypatch.setenv("LM_ASSET_ID", "99")
        monkeypatch.setenv("FINTOC_API_KEY", "sk_env")
        monkeypatch.setenv("SYNC_SOURCE", "GMAIL")
        monkeypatch.setenv("DAYS_TO_SYNC", "3")
        monkeypatch.setenv("CURRENCY_CODE", "EUR")
        monkeypatch.setenv("MEMORY_PATH", str(tmp_path / "m.json"))

        config = load_config(path)

        assert config.lunchmoney.token == "env-token"
        assert config.lunchmoney.asset_id == 99
        assert config.fintoc.api_key == "sk_env"
        assert config.fintoc.link_id == "acc_file"
        assert config.sync.source == "gmail"
        assert config.sync.days_to_sync == 3
        assert config.sync.currency == "EUR"
        assert config.memory_path == tmp_path / "m.json"

    def test_invalid_days_env_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DAYS_TO_SYNC", "soon")
        assert load_config(tmp_path / "missing.yaml").sync.days_to_sync == 7

    def test_invalid_asset_id_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LUNCHMONEY_ASSET_ID", "main")
        assert load_config(tmp_path / "missing.yaml").lunchmoney.asset_id is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).sync.days_to_sync == 7

    def test_default_config_loads(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        create_default_config(path)

        config = load_config(path)

        assert config.lunchmoney.token == "YOUR_LUNCHMONEY_TOKEN"
        assert config.sync.category_rules == {"uber": "Transport", "lider": "Groceries"}
        assert config.validate() == []


class TestValidate:
    """Tests for configuration validation."""

    def test_valid(self, config):
        assert config.validate() == []

    def test_missing_token(self):
        errors = Config(fintoc=FintocConfig(api_key="k", link_id="l")).validate()
        assert len(errors) == 1
        assert "LUNCHMONEY_TOKEN" in errors[0]

    def test_missing_fintoc_credentials(self):
        config = Config(lunchmoney=LunchMoneyConfig(token="t"))
        assert any("FINTOC_API_KEY" in e for e in config.validate())
        assert config.validate(require_source=False) == []

    def test_missing_gmail_credentials(self, config):
        config.sync.source = "gmail"
        assert any("GMAIL_REFRESH_TOKEN" in e for e in config.validate())

        config.gmail = GmailConfig(client_id="id", client_secret="s", refresh_token="r")
        assert config.validate() == []

    def test_unknown_source(self, config):
        config.sync.source = "plaid"
        assert any("sync.source" in e for e in config.validate(require_source=False))

    def test_ranges(self, config):
        config.sync.days_to_sync = 0
        config.sync.batch_size = 51
        errors = config.validate()
        assert len(errors) == 2


class TestRedact:
    """Tests for secret redaction in log context."""

    def test_redacts_secrets(self):
        context = {"token": "lm-secret", "base_url": "https://x", "asset_id": 1}
        assert redact(context) == {
            "token": "[REDACTED]",
            "base_url": "https://x",
            "asset_id": 1,
        }

    def test_empty_secret_kept(self):
        assert redact({"api_key": ""}) == {"api_key": ""}

    def test_original_untouched(self):
        context = {"refresh_token": "r"}
        redact(context)
        assert context == {"refresh_token": "r"}

from __future__ import annotations

from activity_history.config import load_settings


def _config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "account: yaml-acct\n"
        "recent_limit: 5\n"
        "base_token:\n"
        "  ticker: NAT\n"
        "  decimals: 6\n",
        encoding="utf-8",
    )
    return path


def test_defaults(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings()
    assert settings.account == ""
    assert settings.base_token.ticker == "KTA"
    assert settings.base_token.decimals == 9
    assert settings.recent_limit == 3


def test_yaml_values(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings(_config(tmp_path))
    assert settings.account == "yaml-acct"
    assert settings.recent_limit == 5
    assert settings.base_token.ticker == "NAT"
    assert settings.base_token.field_type == "decimalPlaces"


def test_precedence(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ACTIVITY_ACCOUNT", "env-acct")
    config = _config(tmp_path)
    assert load_settings(config).account == "env-acct"
    assert load_settings(config, {"account": "cli-acct"}).account == "cli-acct"

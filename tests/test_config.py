import pytest

from config import SolverConfig, TelegramConfig
from errors import SolverConfigError, TelegramConfigError


def test_solver_config_requires_key(monkeypatch):
    monkeypatch.delenv("CAPSOLVER_KEY", raising=False)

    with pytest.raises(SolverConfigError):
        SolverConfig.from_env()


def test_solver_config_from_env(monkeypatch):
    monkeypatch.setenv("CAPSOLVER_KEY", " CAP-123 ")

    solver_config = SolverConfig.from_env()

    assert solver_config.api_key == "CAP-123"
    assert solver_config.poll_interval == 3
    assert solver_config.timeout == 300


def test_telegram_config_reports_missing_fields(monkeypatch):
    monkeypatch.setenv("APP_ID", "12345")
    monkeypatch.delenv("API_HASH", raising=False)
    monkeypatch.delenv("SESSION", raising=False)

    with pytest.raises(TelegramConfigError) as excinfo:
        TelegramConfig.from_env()

    assert "api_hash" in str(excinfo.value)
    assert "session" in str(excinfo.value)


def test_telegram_config_rejects_non_numeric_app_id(monkeypatch):
    monkeypatch.setenv("APP_ID", "abc")

    with pytest.raises(TelegramConfigError):
        TelegramConfig.from_env()


def test_telegram_config_defaults_channel(monkeypatch):
    monkeypatch.setenv("APP_ID", "1")
    monkeypatch.setenv("API_HASH", "h")
    monkeypatch.setenv("SESSION", "s")
    monkeypatch.delenv("TELEGRAM_CHANNEL", raising=False)

    assert TelegramConfig.from_env().channel == "TikTokModCloud"

import pytest
from pydantic import ValidationError

from plan_pilot.config import Settings

ENV_KEYS = (
    "PLAN_PILOT_MODEL", "PLAN_PILOT_BASE_URL", "PLAN_PILOT_PROFILE", "PLAN_PILOT_HEADLESS",
    "PLAN_PILOT_AUTO_APPROVE", "PLAN_PILOT_LLM_LOG", "PLAN_PILOT_MIN_ACTION_INTERVAL_MS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()
    assert settings.profile == "conservative"
    assert settings.min_action_interval_ms == 250
    assert settings.headless is False

def test_env_overrides(clean_env):
    clean_env.setenv("PLAN_PILOT_MODEL", "qwen2.5")
    clean_env.setenv("PLAN_PILOT_PROFILE", "mobile")
    clean_env.setenv("PLAN_PILOT_HEADLESS", "yes")
    clean_env.setenv("PLAN_PILOT_MIN_ACTION_INTERVAL_MS", "0")
    settings = Settings.from_env()
    assert settings.model == "qwen2.5"
    assert settings.profile == "mobile"
    assert settings.headless is True
    assert settings.min_action_interval_ms == 0

def test_invalid_log_mode(clean_env):
    clean_env.setenv("PLAN_PILOT_LLM_LOG", "verbose")
    with pytest.raises(ValidationError):
        Settings.from_env()

def test_cookie_dismiss_flag(clean_env):
    assert Settings.from_env().cookie_dismiss is False
    clean_env.setenv("PLAN_PILOT_COOKIE_DISMISS", "1")
    assert Settings.from_env().cookie_dismiss is True

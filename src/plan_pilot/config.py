# config.py
# Runtime settings read from the environment (and a local .env file).

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _flag(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    model: str = "llama3.1"
    base_url: str = "http://localhost:11434/v1"
    api_key: str | None = None
    profile: str = "conservative"
    guardrails_path: str | None = Field(default=None, description="YAML guardrail document.")
    prompt_variant: str | None = None
    headless: bool = False
    artifacts_dir: str = "artifacts"
    min_action_interval_ms: int = Field(default=250, ge=0)
    llm_log: Literal["off", "snippet", "full"] = "snippet"
    auto_approve: bool = False
    cookie_dismiss: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        values = {
            "model": env.get("PLAN_PILOT_MODEL"),
            "base_url": env.get("PLAN_PILOT_BASE_URL"),
            "api_key": env.get("PLAN_PILOT_API_KEY"),
            "profile": env.get("PLAN_PILOT_PROFILE"),
            "guardrails_path": env.get("PLAN_PILOT_GUARDRAILS"),
            "prompt_variant": env.get("PLAN_PILOT_PROMPT_VARIANT"),
            "artifacts_dir": env.get("PLAN_PILOT_ARTIFACTS_DIR"),
            "min_action_interval_ms": env.get("PLAN_PILOT_MIN_ACTION_INTERVAL_MS"),
            "llm_log": env.get("PLAN_PILOT_LLM_LOG"),
        }
        settings = cls.model_validate({key: value for key, value in values.items() if value})
        return settings.model_copy(
            update={
                "headless": _flag(env.get("PLAN_PILOT_HEADLESS"), settings.headless),
                "auto_approve": _flag(env.get("PLAN_PILOT_AUTO_APPROVE"), settings.auto_approve),
                "cookie_dismiss": _flag(env.get("PLAN_PILOT_COOKIE_DISMISS"), settings.cookie_dismiss),
            }
        )

"""
Config + factory for the screen guide.

This file intentionally stays *thin*: all agent logic lives in
`screenpilot.agent.guide`. It only turns a config (and environment overrides)
into a wired `GuideOrchestrator`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from screenpilot.agent.guide import (
    DEFAULT_PROFILE,
    GuideLLM,
    GuideModelConfig,
    GuideOrchestrator,
    GuidePromptProfile,
    OpenAIGuideLLM,
    ScreenChangeSource,
    ScreenshotProvider,
)

# Configuration (priority: env vars > config > defaults)
DEFAULT_VLLM_API_URL = "http://localhost:8080/v1"
DEFAULT_VLLM_API_KEY = "EMPTY"
DEFAULT_MODEL_NAME = "Qwen/Qwen3-VL-30B-A3B-Instruct"


@dataclass
class GuideAgentCfg:
    model_name: str = DEFAULT_MODEL_NAME
    base_url: str = DEFAULT_VLLM_API_URL
    api_key: str = DEFAULT_VLLM_API_KEY
    models: GuideModelConfig = field(default_factory=GuideModelConfig)

    max_retries: int = 2
    retry_delay_s: float = 1.0
    request_timeout_s: float = 60.0
    max_tokens: int = 1000

    history_capacity: int = 10
    debounce_s: float = 1.5
    poll_interval_s: float = 1.0
    # Avoid sharing a mutable profile instance across agents.
    profile: GuidePromptProfile = field(default_factory=lambda: GuidePromptProfile(**DEFAULT_PROFILE.__dict__))
    dump_dir: Optional[str] = None

    def with_env(self, environ: Optional[Dict[str, str]] = None) -> "GuideAgentCfg":
        env = os.environ if environ is None else environ
        cfg = GuideAgentCfg(**self.__dict__)
        cfg.base_url = env.get("VLLM_API_URL") or cfg.base_url
        cfg.api_key = env.get("VLLM_API_KEY") or cfg.api_key
        cfg.model_name = env.get("MODEL_NAME") or cfg.model_name
        return cfg

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "GuideAgentCfg":
        """
        Build from a flat settings dict (e.g. loaded from a config file).

        Unknown keys are rejected; role models use `planner_model` etc.
        """
        settings = dict(settings)
        role_keys = ("planner_model", "navigator_model", "watcher_model", "summarizer_model")
        models = GuideModelConfig(**{k: str(settings.pop(k)) for k in role_keys if k in settings})
        profile_settings = settings.pop("profile", None) or {}
        unknown = set(settings) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown guide settings: {sorted(unknown)}")
        cfg = cls(**settings)
        cfg.models = models
        if profile_settings:
            cfg.profile = GuidePromptProfile(**{**DEFAULT_PROFILE.__dict__, **profile_settings})
        return cfg


def build_llm(cfg: GuideAgentCfg) -> OpenAIGuideLLM:
    return OpenAIGuideLLM(
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        models=cfg.models.with_defaults(fallback_model=cfg.model_name),
        max_retries=int(cfg.max_retries),
        retry_delay_s=float(cfg.retry_delay_s),
        request_timeout_s=float(cfg.request_timeout_s),
        max_tokens=int(cfg.max_tokens),
        dump_dir=cfg.dump_dir,
    )


def build_guide_orchestrator(
    cfg: GuideAgentCfg,
    screenshots: ScreenshotProvider,
    screen_changes: Optional[ScreenChangeSource] = None,
    llm: Optional[GuideLLM] = None,
) -> GuideOrchestrator:
    return GuideOrchestrator(
        llm=llm or build_llm(cfg),
        screenshots=screenshots,
        screen_changes=screen_changes,
        profile=cfg.profile,
        history_capacity=int(cfg.history_capacity),
        debounce_s=float(cfg.debounce_s),
    )

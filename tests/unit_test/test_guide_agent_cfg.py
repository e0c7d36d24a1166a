import pytest

from screenpilot.agent import GuideAgentCfg, GuideOrchestrator, build_guide_orchestrator
from screenpilot.agent.guide_agent import DEFAULT_VLLM_API_URL, build_llm


def test_env_overrides_connection_settings():
    cfg = GuideAgentCfg().with_env(
        {"VLLM_API_URL": "http://gpu-box:8000/v1", "VLLM_API_KEY": "secret", "MODEL_NAME": "my-vl"}
    )
    assert cfg.base_url == "http://gpu-box:8000/v1"
    assert cfg.api_key == "secret"
    assert cfg.model_name == "my-vl"


def test_empty_env_keeps_defaults():
    base = GuideAgentCfg(model_name="from-config")
    cfg = base.with_env({"VLLM_API_URL": ""})
    assert cfg.base_url == DEFAULT_VLLM_API_URL
    assert cfg.model_name == "from-config"
    assert cfg is not base


def test_profiles_are_not_shared():
    a, b = GuideAgentCfg(), GuideAgentCfg()
    a.profile.platform = "web browser"
    assert b.profile.platform == "desktop"


def test_from_settings_maps_role_models_and_profile():
    cfg = GuideAgentCfg.from_settings(
        {
            "model_name": "base-vl",
            "summarizer_model": "small-text",
            "debounce_s": 0.5,
            "profile": {"platform": "web browser", "max_milestones": 4},
        }
    )
    assert cfg.debounce_s == 0.5
    assert cfg.profile.platform == "web browser"
    assert cfg.profile.max_milestones == 4
    assert cfg.profile.min_milestones == 3

    llm = build_llm(cfg)
    assert llm.models.summarizer_model == "small-text"
    assert llm.models.planner_model == "base-vl"


def test_from_settings_rejects_unknown_keys():
    with pytest.raises(ValueError, match="debounce"):
        GuideAgentCfg.from_settings({"debounce": 2})


def test_factory_wires_given_llm(llm, screens, screen_source):
    cfg = GuideAgentCfg(history_capacity=3, debounce_s=0.1)
    guide = build_guide_orchestrator(cfg, screens, screen_source, llm=llm)
    assert isinstance(guide, GuideOrchestrator)
    assert guide.context.history_capacity == 3
    assert guide.screen_changes is screen_source
    assert guide.planner.llm is llm

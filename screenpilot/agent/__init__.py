"""
Agent package entrypoints.

Keep `screenpilot.agent` import-light: the OpenAI client and imaging stack are
only imported when one of the names below is first used.
"""

from __future__ import annotations

__all__ = [
    "GuideAgentCfg",
    "GuideOrchestrator",
    "build_guide_orchestrator",
]


def __getattr__(name: str):
    # Lazy imports to avoid importing optional dependencies at package import time.
    if name == "GuideAgentCfg":
        from screenpilot.agent.guide_agent import GuideAgentCfg

        return GuideAgentCfg
    if name == "build_guide_orchestrator":
        from screenpilot.agent.guide_agent import build_guide_orchestrator

        return build_guide_orchestrator
    if name == "GuideOrchestrator":
        from screenpilot.agent.guide.orchestrator import GuideOrchestrator

        return GuideOrchestrator

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

from __future__ import annotations

"""
Planner role: (goal + history + screenshot) -> ordered milestone list.

One model call per plan. The strict `{"goals": [...]}` schema is tried first;
if the model returned a bare array of goals instead, that is accepted too.
Anything else is `NoPlanGenerated`.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List

from .errors import NoPlanGenerated, ResponseFormatError
from .imaging import encode_image
from .llm import GuideLLM
from .parsing import parse_planner_bare_array, parse_planner_strict, renumber_goals
from .prompt_profiles import DEFAULT_PROFILE, GuidePromptProfile, build_planner_prompt
from .schemas import MesoGoal

logger = logging.getLogger(__name__)


def parse_plan(raw: str) -> List[MesoGoal]:
    try:
        goals = parse_planner_strict(raw)
    except ResponseFormatError as strict_err:
        logger.warning("[Planner] Strict parse failed (%s); trying bare array.", strict_err)
        try:
            goals = parse_planner_bare_array(raw)
        except ResponseFormatError as e:
            raise NoPlanGenerated(f"unparseable plan: {e}") from e

    if not goals:
        raise NoPlanGenerated("model returned an empty plan")
    return renumber_goals(goals)


@dataclass
class GuidePlanner:
    llm: GuideLLM
    profile: GuidePromptProfile = field(default_factory=lambda: DEFAULT_PROFILE)

    async def plan(self, user_goal: str, history: str, image: Any) -> List[MesoGoal]:
        if not user_goal or not user_goal.strip():
            raise NoPlanGenerated("empty goal")
        # PNG encoding of a full screen is CPU-bound; keep it off the event loop.
        image_b64 = await asyncio.to_thread(encode_image, image)
        prompt = build_planner_prompt(self.profile, user_goal.strip(), history or "No previous actions.")

        logger.info("[Planner] Generating plan for goal=%r", user_goal)
        raw = await self.llm.plan(prompt, image_b64)
        logger.debug("[Planner] Raw response (trunc): %s", raw[:400])

        goals = parse_plan(raw)
        logger.info("[Planner] Parsed %d milestones: %s", len(goals), [g.title for g in goals])
        return goals

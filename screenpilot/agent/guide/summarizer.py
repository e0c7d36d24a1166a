from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .llm import GuideLLM
from .parsing import clean_summary
from .prompt_profiles import DEFAULT_PROFILE, GuidePromptProfile, build_summarizer_prompt
from .schemas import MesoGoal

logger = logging.getLogger(__name__)


@dataclass
class GuideSummarizer:
    """Compresses one finished milestone into a single history line."""

    llm: GuideLLM
    profile: GuidePromptProfile = field(default_factory=lambda: DEFAULT_PROFILE)

    async def summarize(self, meso: MesoGoal, actions: Sequence[str]) -> str:
        prompt = build_summarizer_prompt(self.profile, meso, list(actions))
        logger.info("[Summarizer] Summarizing milestone #%d %r (%d actions)", meso.id, meso.title, len(actions))
        summary = clean_summary(await self.llm.summarize(prompt))
        if not summary:
            summary = f"Completed: {meso.title}"
        logger.info("[Summarizer] %s", summary)
        return summary

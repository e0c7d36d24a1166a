from __future__ import annotations

"""
Watcher role: (success criteria + screenshot) -> WatcherResult.

`reasoning` is informational only. When the strict schema fails, the verdict
comes from `parsing.watcher_heuristic`, which is a keyword scan and is flagged
with `heuristic=True`.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import ResponseFormatError
from .imaging import encode_image
from .llm import GuideLLM
from .parsing import parse_watcher_strict, watcher_heuristic
from .prompt_profiles import DEFAULT_PROFILE, GuidePromptProfile, build_watcher_prompt
from .schemas import WatcherResult

logger = logging.getLogger(__name__)


def parse_verdict(raw: str) -> WatcherResult:
    try:
        return parse_watcher_strict(raw)
    except ResponseFormatError as e:
        logger.warning("[Watcher] Format error (%s); falling back to keyword heuristic.", e)
        return watcher_heuristic(raw)


@dataclass
class GuideWatcher:
    llm: GuideLLM
    profile: GuidePromptProfile = field(default_factory=lambda: DEFAULT_PROFILE)

    async def check(self, criteria: str, image: Any) -> WatcherResult:
        image_b64 = await asyncio.to_thread(encode_image, image)
        prompt = build_watcher_prompt(self.profile, criteria)

        raw = await self.llm.watch(prompt, image_b64)
        result = parse_verdict(raw)
        logger.info(
            "[Watcher] complete=%s heuristic=%s reasoning=%s",
            result.is_complete,
            result.heuristic,
            result.reasoning[:200],
        )
        return result

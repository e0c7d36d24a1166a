from __future__ import annotations

"""
Navigator role: (current milestone + screenshot + blackboard) -> one micro-instruction.

Malformed JSON from a successful call degrades to a fallback instruction that
shows the raw text and waits for the user to confirm. Encoding and transport
failures are raised unchanged.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import ResponseFormatError
from .imaging import encode_image
from .llm import GuideLLM
from .parsing import navigator_fallback, parse_navigator_strict
from .prompt_profiles import DEFAULT_PROFILE, GuidePromptProfile, build_navigator_prompt
from .schemas import MesoGoal, MicroInstruction
from .state import format_blackboard

logger = logging.getLogger(__name__)


def parse_instruction(raw: str) -> MicroInstruction:
    try:
        return parse_navigator_strict(raw)
    except ResponseFormatError as e:
        logger.warning("[Navigator] Format error (%s); using raw text as instruction.", e)
        return navigator_fallback(raw)


@dataclass
class GuideNavigator:
    llm: GuideLLM
    profile: GuidePromptProfile = field(default_factory=lambda: DEFAULT_PROFILE)

    async def next_instruction(self, meso: MesoGoal, image: Any, blackboard: Mapping[str, str]) -> MicroInstruction:
        image_b64 = await asyncio.to_thread(encode_image, image)
        prompt = build_navigator_prompt(self.profile, meso, format_blackboard(dict(blackboard)))

        logger.info("[Navigator] Next step for milestone #%d %r", meso.id, meso.title)
        raw = await self.llm.navigate(prompt, image_b64)
        logger.debug("[Navigator] Raw response (trunc): %s", raw[:400])

        instruction = parse_instruction(raw)
        logger.info("[Navigator] Instruction: %s", instruction.instruction[:140])
        return instruction

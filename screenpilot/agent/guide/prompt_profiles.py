from __future__ import annotations

"""
Prompt profiles for the guide roles.

Task adaptation should be a matter of swapping a `GuidePromptProfile`
(target platform, milestone count, summary length), not editing role code.
"""

from dataclasses import dataclass
from typing import Sequence

from .schemas import MesoGoal


@dataclass
class GuidePromptProfile:
    name: str = "default"
    platform: str = "desktop"
    min_milestones: int = 3
    max_milestones: int = 5
    summary_max_words: int = 50


DEFAULT_PROFILE = GuidePromptProfile()


def build_planner_prompt(profile: GuidePromptProfile, goal: str, history: str) -> str:
    return f"""You are an expert {profile.platform} automation planner. Look at the screenshot and split the user's goal into milestones.

User goal: {goal}

Previous actions:
{history}

Instructions:
1) Work out the current state of the screen from the screenshot.
2) Skip anything the previous actions already accomplished.
3) Split the REMAINING work into {profile.min_milestones}-{profile.max_milestones} sequential milestones.
4) Each milestone must be a checkpoint that can be verified visually.

Return ONLY valid JSON, no other text:
{{"goals": [{{"id": 1, "title": "Milestone title", "description": "What needs to be done"}}]}}
"""


def build_navigator_prompt(profile: GuidePromptProfile, meso: MesoGoal, blackboard: str) -> str:
    return f"""You are a precise {profile.platform} navigator. Tell the user the NEXT IMMEDIATE STEP towards the current milestone.

Current milestone: {meso.title}
Milestone description: {meso.description}

Stored information (blackboard): {blackboard}

Instructions:
1) Read the screenshot.
2) Pick the single next action; name the exact UI element (button, menu item, text field).
3) success_criteria describes what the screen looks like AFTER the step is done.
4) Put important data visible on screen (IDs, URLs, keys) into memory_to_save.
5) If the user must type a value stored on the blackboard, put it in value_to_copy.
6) Merge trivial sequential clicks into one step (e.g. "Go to File > New").

Return ONLY valid JSON, no other text:
{{"instruction": "What the user should do", "success_criteria": "What the screen looks like when done", "memory_to_save": {{}}, "value_to_copy": null}}
"""


def build_watcher_prompt(profile: GuidePromptProfile, criteria: str) -> str:
    return f"""You are a strict boolean judge. Decide whether the current screen satisfies the success criteria.

Success criteria:
{criteria}

Minor visual differences are fine if the core of the criteria is met.

Return ONLY valid JSON, no other text:
{{"is_complete": true, "reasoning": "Why you decided this"}}
"""


def build_summarizer_prompt(profile: GuidePromptProfile, meso: MesoGoal, actions: Sequence[str]) -> str:
    if actions:
        action_lines = "\n".join(f"{i + 1}. {a}" for i, a in enumerate(actions))
    else:
        action_lines = "(no recorded actions)"
    return f"""You are a concise summarizer. Write one history line for a completed milestone.

Completed milestone: {meso.title}
Description: {meso.description}

Actions taken:
{action_lines}

Write a single sentence under {profile.summary_max_words} words, keeping any important data that was encountered.
Return ONLY the summary text, no JSON or formatting.
"""

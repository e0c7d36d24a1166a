from __future__ import annotations

"""
Session state store (non-LLM).

`SessionContext` is the aggregate root of one guided session:
- the user goal and a bounded, FIFO history of milestone summaries
- the blackboard (facts extracted from the screen, last write wins)
- the milestone list and its cursor
- the pending micro-instruction

It is owned and mutated exclusively by the orchestrator. `reset` never edits an
instance in place; the orchestrator builds a fresh one instead.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .schemas import MesoGoal, MicroInstruction

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 10


def _new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass
class SessionContext:
    user_goal: str = ""
    session_id: str = field(default_factory=_new_session_id)
    start_time: float = field(default_factory=time.time)

    history_summary: List[str] = field(default_factory=list)
    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    blackboard: Dict[str, str] = field(default_factory=dict)

    # Milestones
    current_meso_goals: List[MesoGoal] = field(default_factory=list)
    current_meso_index: int = 0
    completed_meso_count: int = 0

    current_instruction: Optional[MicroInstruction] = None

    @property
    def current_meso_goal(self) -> Optional[MesoGoal]:
        if 0 <= self.current_meso_index < len(self.current_meso_goals):
            return self.current_meso_goals[self.current_meso_index]
        return None

    @property
    def has_more_meso_goals(self) -> bool:
        return self.current_meso_index < len(self.current_meso_goals)

    @property
    def is_active(self) -> bool:
        return bool(self.user_goal)

    def add_to_history(self, summary: str) -> None:
        self.history_summary.append(summary)
        while len(self.history_summary) > self.history_capacity:
            self.history_summary.pop(0)

    def update_blackboard(self, entries: Mapping[str, str]) -> None:
        for key, value in entries.items():
            self.blackboard[key] = value
        if entries:
            logger.debug("[Guide] Blackboard updated: keys=%s", sorted(entries))

    def install_plan(self, goals: List[MesoGoal]) -> None:
        self.current_meso_goals = list(goals)
        self.current_meso_index = 0
        self.completed_meso_count = sum(1 for g in self.current_meso_goals if g.is_completed)
        self.current_instruction = None

    def advance_to_next_meso(self) -> None:
        goal = self.current_meso_goal
        if goal is None:
            raise IndexError("no current milestone to advance past")
        goal.mark_completed()
        self.completed_meso_count += 1
        self.current_meso_index += 1
        self.current_instruction = None

    @property
    def formatted_history(self) -> str:
        if not self.history_summary:
            return "No previous actions."
        return "\n".join(f"{i + 1}. {line}" for i, line in enumerate(self.history_summary))

    @property
    def formatted_blackboard(self) -> str:
        return format_blackboard(self.blackboard)


def format_blackboard(blackboard: Mapping[str, str]) -> str:
    if not blackboard:
        return "Empty"
    return ", ".join(f"{k}: {v}" for k, v in blackboard.items())

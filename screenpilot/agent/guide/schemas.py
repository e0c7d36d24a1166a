from __future__ import annotations

"""
Shared schemas for the guide engine.

Role contracts:
  Planner    -> List[MesoGoal]
  Navigator  -> MicroInstruction
  Watcher    -> WatcherResult
  Summarizer -> str

`AgentState` and `GuideSnapshot` are what the UI observes; nothing else leaves
the orchestrator.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

AgentPhase = Literal["idle", "planning", "navigating", "watching", "summarizing", "completed", "error"]

_PHASES = {"idle", "planning", "navigating", "watching", "summarizing", "completed", "error"}


@dataclass
class MesoGoal:
    """
    A milestone between the overall user goal and a single micro-instruction.
    Only the orchestrator mutates it (via `SessionContext.advance_to_next_meso`).
    """

    id: int
    title: str
    description: str = ""
    is_completed: bool = False
    completed_actions: List[str] = field(default_factory=list)

    def mark_completed(self) -> None:
        self.is_completed = True

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> "MesoGoal":
        title = obj.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError("goal title must be a non-empty string")
        raw_id = obj.get("id", 0)
        if isinstance(raw_id, bool) or not isinstance(raw_id, (int, str)):
            raise ValueError(f"goal id has unsupported type: {type(raw_id).__name__}")
        return cls(
            id=int(raw_id),
            title=title.strip(),
            description=str(obj.get("description", "") or "").strip(),
        )


@dataclass(frozen=True)
class MicroInstruction:
    instruction: str
    success_criteria: str
    memory_to_save: Optional[Dict[str, str]] = None
    value_to_copy: Optional[str] = None


@dataclass(frozen=True)
class WatcherResult:
    is_complete: bool
    reasoning: str = ""
    # True when produced by the keyword heuristic rather than the strict schema.
    heuristic: bool = False


@dataclass(frozen=True)
class AgentState:
    phase: AgentPhase = "idle"
    message: Optional[str] = None

    def __post_init__(self) -> None:
        if self.phase not in _PHASES:
            raise ValueError(f"unknown agent phase: {self.phase!r}")
        if self.phase == "error" and not self.message:
            raise ValueError("error state requires a message")
        if self.phase != "error" and self.message is not None:
            raise ValueError("only the error state carries a message")

    @classmethod
    def failed(cls, message: str) -> "AgentState":
        return cls(phase="error", message=message)

    @property
    def is_terminal(self) -> bool:
        return self.phase in ("idle", "completed", "error")

    def __str__(self) -> str:
        if self.phase == "error":
            return f"error({self.message})"
        return self.phase


@dataclass(frozen=True)
class GuideSnapshot:
    """Read-only view published to subscribers after every transition."""

    state: AgentState
    instruction_text: str
    value_to_copy: Optional[str]
    progress: Tuple[int, int]
    milestone_title: Optional[str]
    error_message: Optional[str] = None
    is_processing: bool = False
    session_id: str = ""
    user_goal: str = ""
    history: Tuple[str, ...] = ()
    blackboard: Dict[str, str] = field(default_factory=dict)

"""
Guide engine: a human-in-the-loop agent that walks a user through a task on
their own screen.

Modules:
- `state`: the session aggregate (goal, bounded history, blackboard, milestones)
- `planner`: goal + screenshot -> milestone list
- `navigator`: milestone + screenshot -> one micro-instruction
- `watcher`: success criteria + screenshot -> completion verdict
- `summarizer`: finished milestone -> one history line
- `orchestrator`: the state machine that runs the roles, single-flight
"""

from .errors import GuideError, ImageEncodingFailed, MaxRetriesExceeded, NoPlanGenerated, SessionNotActive
from .schemas import AgentState, GuideSnapshot, MesoGoal, MicroInstruction, WatcherResult
from .state import SessionContext
from .llm import GuideLLM, GuideModelConfig, OpenAIGuideLLM
from .prompt_profiles import DEFAULT_PROFILE, GuidePromptProfile
from .debounce import Debouncer, LoopDebouncer
from .providers import DirectoryScreenshotProvider, PollingScreenChangeSource, ScreenChangeSource, ScreenshotProvider
from .orchestrator import GuideOrchestrator

__all__ = [
    "AgentState",
    "DEFAULT_PROFILE",
    "Debouncer",
    "DirectoryScreenshotProvider",
    "GuideError",
    "GuideLLM",
    "GuideModelConfig",
    "GuideOrchestrator",
    "GuidePromptProfile",
    "GuideSnapshot",
    "ImageEncodingFailed",
    "LoopDebouncer",
    "MaxRetriesExceeded",
    "MesoGoal",
    "MicroInstruction",
    "NoPlanGenerated",
    "OpenAIGuideLLM",
    "PollingScreenChangeSource",
    "ScreenChangeSource",
    "ScreenshotProvider",
    "SessionContext",
    "SessionNotActive",
    "WatcherResult",
]

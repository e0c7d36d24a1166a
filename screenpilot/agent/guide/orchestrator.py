from __future__ import annotations

"""
Guide orchestrator (state machine).

Wires the four roles around one live `SessionContext`:

    idle -> planning -> navigating -> watching -> summarizing -> navigating ... -> completed
                 \\            \\            \\            \\
                  +------------+------------+------------+--> error(message)

Concurrency rules:
- at most one step call in flight (`is_processing`); triggers that arrive while
  one is running are dropped, never queued
- commands schedule an asyncio task and return it (or None when dropped), so
  callers on the event loop are never blocked
- every task is tagged with the session id it started under; results that come
  back after `reset()` are discarded

The UI sees only `snapshot()` / `subscribe()`; step exceptions are converted to
`AgentState("error", message)` here and never propagate.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Coroutine, List, Optional, Tuple

from .debounce import LoopDebouncer
from .errors import GuideError, SessionNotActive
from .llm import GuideLLM
from .navigator import GuideNavigator
from .planner import GuidePlanner
from .prompt_profiles import DEFAULT_PROFILE, GuidePromptProfile
from .providers import ScreenChangeSource, ScreenshotProvider
from .schemas import AgentState, GuideSnapshot
from .state import DEFAULT_HISTORY_CAPACITY, SessionContext
from .summarizer import GuideSummarizer
from .watcher import GuideWatcher

logger = logging.getLogger(__name__)

READY_TEXT = "Ready to assist..."
PLANNING_TEXT = "Analyzing your request and creating a plan..."
COMPLETED_TEXT = "All tasks completed!"

SnapshotListener = Callable[[GuideSnapshot], None]


class GuideOrchestrator:
    def __init__(
        self,
        llm: GuideLLM,
        screenshots: ScreenshotProvider,
        screen_changes: Optional[ScreenChangeSource] = None,
        *,
        profile: GuidePromptProfile = DEFAULT_PROFILE,
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
        debounce_s: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.planner = GuidePlanner(llm=llm, profile=profile)
        self.navigator = GuideNavigator(llm=llm, profile=profile)
        self.watcher = GuideWatcher(llm=llm, profile=profile)
        self.summarizer = GuideSummarizer(llm=llm, profile=profile)
        self.screenshots = screenshots
        self.screen_changes = screen_changes
        self.history_capacity = history_capacity

        self._context = SessionContext(history_capacity=history_capacity)
        self._state = AgentState()
        self._instruction_text = READY_TEXT
        self._value_to_copy: Optional[str] = None
        self._error_message: Optional[str] = None
        self._is_processing = False
        # Instructions issued while the current milestone is active.
        self._actions: List[str] = []

        self._task: Optional[asyncio.Task] = None
        self._listeners: List[SnapshotListener] = []
        self._screen_subscribed = False
        self._debouncer: LoopDebouncer[Any] = LoopDebouncer(debounce_s, self._on_screen_settled, clock)

    # ------------------------------------------------------------ read-only view

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def context(self) -> SessionContext:
        """The live session. Callers must treat it as read-only."""
        return self._context

    @property
    def instruction_text(self) -> str:
        return self._instruction_text

    @property
    def value_to_copy(self) -> Optional[str]:
        return self._value_to_copy

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def progress(self) -> Tuple[int, int]:
        return self._context.completed_meso_count, len(self._context.current_meso_goals)

    @property
    def milestone_title(self) -> Optional[str]:
        goal = self._context.current_meso_goal
        return goal.title if goal else None

    @property
    def pending_actions(self) -> List[str]:
        return list(self._actions)

    def snapshot(self) -> GuideSnapshot:
        ctx = self._context
        return GuideSnapshot(
            state=self._state,
            instruction_text=self._instruction_text,
            value_to_copy=self._value_to_copy,
            progress=self.progress,
            milestone_title=self.milestone_title,
            error_message=self._error_message,
            is_processing=self._is_processing,
            session_id=ctx.session_id,
            user_goal=ctx.user_goal,
            history=tuple(ctx.history_summary),
            blackboard=dict(ctx.blackboard),
        )

    def subscribe(self, listener: SnapshotListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("[Guide] Snapshot listener failed")

    def _set_state(self, state: AgentState) -> None:
        if state != self._state:
            logger.info("[Guide] %s -> %s", self._state, state)
        self._state = state
        self._publish()

    # ------------------------------------------------------------ commands

    def start_session(self, goal: str, image: Any) -> asyncio.Task:
        if self._state.phase != "idle" or self._is_processing:
            logger.info("[Guide] start_session while %s; resetting first.", self._state)
            self.reset()

        self._context = SessionContext(user_goal=(goal or "").strip(), history_capacity=self.history_capacity)
        self._actions = []
        self._error_message = None
        logger.info("[Guide] Session %s started: goal=%r", self._context.session_id, self._context.user_goal)
        self._subscribe_screen()
        return self._launch(self._run_next_step, image)

    def process_next_step(self, image: Any) -> Optional[asyncio.Task]:
        if self._is_processing:
            logger.debug("[Guide] process_next_step dropped: already processing")
            return None
        if not self._context.is_active:
            self._note_inactive("process_next_step")
            return None
        if self._state.phase not in ("idle", "error", "watching"):
            logger.info("[Guide] process_next_step ignored in state %s", self._state)
            return None
        return self._launch(self._run_next_step, image)

    def check_step_completion(self, image: Any) -> Optional[asyncio.Task]:
        if self._is_processing:
            logger.debug("[Guide] Watcher trigger dropped: already processing")
            return None
        instruction = self._context.current_instruction
        if self._state.phase != "watching" or instruction is None:
            return None
        return self._launch(self._run_watch, image, instruction.success_criteria)

    def mark_step_complete(self) -> Optional[asyncio.Task]:
        if self._is_processing:
            logger.debug("[Guide] mark_step_complete dropped: already processing")
            return None
        if not self._context.is_active:
            self._note_inactive("mark_step_complete")
            return None
        if self._state.phase != "watching" or self._context.current_meso_goal is None:
            logger.info("[Guide] mark_step_complete ignored in state %s", self._state)
            return None
        logger.info("[Guide] User marked step complete")
        return self._launch(self._run_manual_complete)

    def reset(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._debouncer.cancel()
        self._unsubscribe_screen()

        old_id = self._context.session_id
        self._context = SessionContext(history_capacity=self.history_capacity)
        self._actions = []
        self._instruction_text = READY_TEXT
        self._value_to_copy = None
        self._error_message = None
        self._is_processing = False
        logger.info("[Guide] Reset (discarded session %s)", old_id)
        self._set_state(AgentState())

    # ------------------------------------------------------------ screen events

    def _subscribe_screen(self) -> None:
        if self.screen_changes is not None and not self._screen_subscribed:
            self.screen_changes.subscribe(self._on_screen_changed)
            self._screen_subscribed = True

    def _unsubscribe_screen(self) -> None:
        if self.screen_changes is not None and self._screen_subscribed:
            self.screen_changes.unsubscribe(self._on_screen_changed)
            self._screen_subscribed = False

    def _on_screen_changed(self, image: Any) -> None:
        self._debouncer.push(image)

    def _on_screen_settled(self, image: Any) -> None:
        self.check_step_completion(image)

    # ------------------------------------------------------------ task plumbing

    def _launch(self, step: Callable[..., Coroutine[Any, Any, None]], *args: Any) -> asyncio.Task:
        # Must be called on the event loop thread.
        loop = asyncio.get_running_loop()
        session_id = self._context.session_id
        self._is_processing = True
        task = loop.create_task(self._guarded(session_id, step(session_id, *args)))
        self._task = task
        return task

    async def _guarded(self, session_id: str, step: Coroutine[Any, Any, None]) -> None:
        try:
            await step
        except asyncio.CancelledError:
            logger.info("[Guide] Step for session %s cancelled", session_id)
            raise
        except Exception as e:
            self._fail(session_id, e)
        finally:
            if self._is_current(session_id):
                self._is_processing = False
                if self._task is asyncio.current_task():
                    self._task = None

    def _is_current(self, session_id: str) -> bool:
        return self._context.session_id == session_id

    def _discarded(self, session_id: str, what: str) -> bool:
        if self._is_current(session_id):
            return False
        logger.info("[Guide] Discarding late %s result for session %s", what, session_id)
        return True

    def _fail(self, session_id: str, err: Exception) -> None:
        if not self._is_current(session_id):
            return
        if isinstance(err, GuideError):
            message = str(err)
            logger.error("[Guide] Step failed: %s (%s)", message, err.detail)
        else:
            message = f"Unexpected error: {err}"
            logger.exception("[Guide] Step failed unexpectedly")
        self._error_message = message
        self._instruction_text = f"Error: {message} Please try again."
        self._value_to_copy = None
        self._set_state(AgentState.failed(message))

    def _note_inactive(self, command: str) -> None:
        logger.warning("[Guide] %s without an active session", command)
        self._error_message = str(SessionNotActive())
        self._publish()

    # ------------------------------------------------------------ steps

    async def _run_next_step(self, session_id: str, image: Any) -> None:
        ctx = self._context
        if not ctx.has_more_meso_goals:
            self._instruction_text = PLANNING_TEXT
            self._error_message = None
            self._set_state(AgentState("planning"))
            goals = await self.planner.plan(ctx.user_goal, ctx.formatted_history, image)
            if self._discarded(session_id, "planner"):
                return
            ctx.install_plan(goals)
            self._actions = []
            logger.info("[Guide] Plan installed: %d milestones", len(goals))
        await self._navigate(session_id, image)

    async def _navigate(self, session_id: str, image: Any) -> None:
        ctx = self._context
        meso = ctx.current_meso_goal
        if meso is None:
            self._complete_session()
            return

        self._error_message = None
        self._set_state(AgentState("navigating"))
        instruction = await self.navigator.next_instruction(meso, image, dict(ctx.blackboard))
        if self._discarded(session_id, "navigator"):
            return

        # Blackboard writes land before the instruction is visible.
        if instruction.memory_to_save:
            ctx.update_blackboard(instruction.memory_to_save)
        ctx.current_instruction = instruction
        self._actions.append(instruction.instruction)
        self._instruction_text = instruction.instruction
        self._value_to_copy = instruction.value_to_copy
        self._set_state(AgentState("watching"))

    async def _run_watch(self, session_id: str, image: Any, criteria: str) -> None:
        result = await self.watcher.check(criteria, image)
        if self._discarded(session_id, "watcher"):
            return
        if not result.is_complete:
            logger.debug("[Guide] Step not yet complete")
            return
        await self._summarize_and_advance(session_id, image)

    async def _run_manual_complete(self, session_id: str) -> None:
        await self._summarize_and_advance(session_id, None)

    async def _summarize_and_advance(self, session_id: str, image: Any) -> None:
        ctx = self._context
        meso = ctx.current_meso_goal
        if meso is None:
            self._complete_session()
            return

        self._set_state(AgentState("summarizing"))
        summary = await self.summarizer.summarize(meso, list(self._actions))
        if self._discarded(session_id, "summarizer"):
            return

        meso.completed_actions.extend(self._actions)
        ctx.add_to_history(summary)
        ctx.advance_to_next_meso()
        self._actions = []
        self._value_to_copy = None
        logger.info("[Guide] Milestone #%d done (%d/%d)", meso.id, *self.progress)

        if not ctx.has_more_meso_goals:
            self._complete_session()
            return
        if image is None:
            image = await asyncio.to_thread(self.screenshots.capture)
            if self._discarded(session_id, "screenshot"):
                return
        await self._navigate(session_id, image)

    def _complete_session(self) -> None:
        self._instruction_text = COMPLETED_TEXT
        self._value_to_copy = None
        self._debouncer.cancel()
        self._unsubscribe_screen()
        self._set_state(AgentState("completed"))

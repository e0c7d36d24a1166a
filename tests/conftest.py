import asyncio
import sys
from collections import defaultdict
from pathlib import Path

import pytest
from PIL import Image


# Ensure the repo root is on PYTHONPATH so `import screenpilot` works in tests
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))


class ScriptedLLM:
    """
    Fake `GuideLLM`. Each role pops scripted responses in order; the last one is
    sticky so a role can answer the same thing forever. An Exception instance in
    the script is raised instead of returned.

    `gates[role]` (an asyncio.Event) holds calls for that role until set.
    With `ignore_cancel=True` a held call keeps waiting through cancellation,
    like a client that cannot be interrupted.
    """

    ROLES = ("plan", "navigate", "watch", "summarize")

    def __init__(self):
        self.responses = {role: [] for role in self.ROLES}
        self.calls = defaultdict(list)
        self.gates = {}
        self.ignore_cancel = False

    def script(self, role, *responses):
        self.responses[role].extend(responses)
        return self

    @property
    def total_calls(self):
        return sum(len(v) for v in self.calls.values())

    async def _next(self, role, prompt, image_b64=None):
        self.calls[role].append((prompt, image_b64))
        gate = self.gates.get(role)
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                if not self.ignore_cancel:
                    raise
                await gate.wait()
        queue = self.responses[role]
        if not queue:
            raise AssertionError(f"no scripted response for {role}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def plan(self, prompt, image_b64):
        return await self._next("plan", prompt, image_b64)

    async def navigate(self, prompt, image_b64):
        return await self._next("navigate", prompt, image_b64)

    async def watch(self, prompt, image_b64):
        return await self._next("watch", prompt, image_b64)

    async def summarize(self, prompt):
        return await self._next("summarize", prompt)


class FakeScreens:
    """ScreenshotProvider returning solid-color frames."""

    def __init__(self, color=(255, 255, 255)):
        self.color = color
        self.captures = 0

    def capture(self):
        self.captures += 1
        return Image.new("RGB", (8, 8), self.color)


class FakeScreenSource:
    def __init__(self):
        self.listeners = []

    def subscribe(self, listener):
        self.listeners.append(listener)

    def unsubscribe(self, listener):
        self.listeners.remove(listener)

    def emit(self, image):
        for listener in list(self.listeners):
            listener(image)


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def screens():
    return FakeScreens()


@pytest.fixture
def screen_source():
    return FakeScreenSource()


@pytest.fixture
def image():
    return Image.new("RGB", (8, 8), (10, 20, 30))

from __future__ import annotations

"""
Error taxonomy for the guide engine.

`GuideError` subclasses are step failures with no safe local default; the
orchestrator turns them into `AgentState("error", message)`.

`ResponseFormatError` is deliberately *not* a `GuideError`: it only signals that
an otherwise-successful model call returned text that does not match the strict
schema. Navigator and Watcher recover from it locally.
"""

from typing import Optional


class GuideError(Exception):
    user_message = "Something went wrong."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail

    def __str__(self) -> str:
        return self.user_message


class NoPlanGenerated(GuideError):
    user_message = "Could not generate a plan. Please try rephrasing your goal."


class ImageEncodingFailed(GuideError):
    user_message = "Could not read the current screen image."


class MaxRetriesExceeded(GuideError):
    user_message = "The AI service did not respond after several attempts."

    def __init__(self, detail: str = "", last_error: Optional[BaseException] = None):
        super().__init__(detail)
        self.last_error = last_error


class SessionNotActive(GuideError):
    user_message = "No active session. Please start a new task."


class ResponseFormatError(ValueError):
    """Raised by strict parsers; carries the raw text for fallback parsing."""

    def __init__(self, reason: str, raw: str = ""):
        super().__init__(reason)
        self.raw = raw

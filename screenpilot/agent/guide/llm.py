from __future__ import annotations

"""
LLM / VLM capability used by the guide roles.

The roles only see the `GuideLLM` protocol: four logical operations that take a
prompt (plus an optional base64 screenshot) and return raw text. Parsing is the
caller's job. Any transport problem (timeout, HTTP error, empty completion) is
retried a bounded number of times and then surfaces as `MaxRetriesExceeded`.
"""

import asyncio
import copy
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from openai import AsyncOpenAI

from .errors import MaxRetriesExceeded

logger = logging.getLogger(__name__)


class GuideLLM(Protocol):
    async def plan(self, prompt: str, image_b64: str) -> str: ...

    async def navigate(self, prompt: str, image_b64: str) -> str: ...

    async def watch(self, prompt: str, image_b64: str) -> str: ...

    async def summarize(self, prompt: str) -> str: ...


@dataclass
class GuideModelConfig:
    """
    Per-role model names. Empty means "use the fallback model".

    The summarizer is text-only, so a cheaper non-vision model can be used there.
    """

    planner_model: str = ""
    navigator_model: str = ""
    watcher_model: str = ""
    summarizer_model: str = ""

    def with_defaults(self, fallback_model: str) -> "GuideModelConfig":
        cfg = GuideModelConfig(**self.__dict__)
        cfg.planner_model = cfg.planner_model or fallback_model
        cfg.navigator_model = cfg.navigator_model or fallback_model
        cfg.watcher_model = cfg.watcher_model or fallback_model
        cfg.summarizer_model = cfg.summarizer_model or fallback_model
        return cfg


def _redact_image_urls(obj):
    if isinstance(obj, dict):
        for k, v in obj.items():
            if k == "image_url":
                obj[k] = "<image>"
            else:
                _redact_image_urls(v)
    elif isinstance(obj, list):
        for item in obj:
            _redact_image_urls(item)
    return obj


def build_messages(prompt: str, image_b64: Optional[str] = None) -> List[Dict[str, Any]]:
    if image_b64 is None:
        return [{"role": "user", "content": prompt}]
    content: List[Dict[str, Any]] = [
        {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image_b64}"}},
        {"type": "text", "text": prompt},
    ]
    return [{"role": "user", "content": content}]


class OpenAIGuideLLM:
    """`GuideLLM` backed by any OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        models: GuideModelConfig,
        *,
        max_retries: int = 2,
        retry_delay_s: float = 1.0,
        request_timeout_s: float = 60.0,
        max_tokens: int = 1000,
        dump_dir: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.models = models
        self.max_retries = max_retries
        self.retry_delay_s = retry_delay_s
        self.max_tokens = max_tokens
        self.dump_dir = dump_dir
        self._dump_count = 0
        # Retries are counted here, not inside the SDK.
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=request_timeout_s, max_retries=0
        )

    async def plan(self, prompt: str, image_b64: str) -> str:
        return await self._complete("planner", self.models.planner_model, build_messages(prompt, image_b64))

    async def navigate(self, prompt: str, image_b64: str) -> str:
        return await self._complete("navigator", self.models.navigator_model, build_messages(prompt, image_b64))

    async def watch(self, prompt: str, image_b64: str) -> str:
        return await self._complete("watcher", self.models.watcher_model, build_messages(prompt, image_b64))

    async def summarize(self, prompt: str) -> str:
        return await self._complete("summarizer", self.models.summarizer_model, build_messages(prompt))

    async def _complete(self, role: str, model: str, messages: List[Dict[str, Any]]) -> str:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                completion = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=0.1,
                )
                text = (completion.choices[0].message.content or "").strip()
                if not text:
                    raise ValueError("empty completion")
                self._dump(role, model, messages, text)
                return text
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                logger.warning("[LLM] %s attempt %d/%d failed: %s", role, attempt, self.max_retries, e)
                if attempt < self.max_retries and self.retry_delay_s > 0:
                    await asyncio.sleep(attempt * self.retry_delay_s)

        logger.error("[LLM] %s failed after %d attempts: %s", role, self.max_retries, last_error)
        raise MaxRetriesExceeded(f"{role}: {last_error}", last_error=last_error)

    def _dump(self, role: str, model: str, messages: List[Dict[str, Any]], response_text: str) -> None:
        if not self.dump_dir:
            return
        try:
            os.makedirs(self.dump_dir, exist_ok=True)
            self._dump_count += 1
            payload = {
                "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
                "role": role,
                "model": model,
                "response_text": response_text,
                "messages": _redact_image_urls(copy.deepcopy(messages)),
            }
            path = os.path.join(self.dump_dir, f"{self._dump_count:04d}_{role}.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.warning("Failed to dump %s messages: %s", role, e)

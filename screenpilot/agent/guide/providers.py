from __future__ import annotations

"""
Screen providers consumed by the orchestrator.

- `ScreenshotProvider`: one still image per request.
- `ScreenChangeSource`: pushes an image whenever the screen changed.

The orchestrator never captures the screen itself. The directory-backed
implementations below let an external capture tool (or a test) feed screenshots
by writing image files.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol, Sequence

from PIL import Image

from .imaging import encode_image, image_signature

logger = logging.getLogger(__name__)

ScreenListener = Callable[[Any], None]

IMAGE_SUFFIXES: Sequence[str] = (".png", ".jpg", ".jpeg", ".bmp", ".webp")


class ScreenshotProvider(Protocol):
    def capture(self) -> Any: ...


class ScreenChangeSource(Protocol):
    def subscribe(self, listener: ScreenListener) -> None: ...

    def unsubscribe(self, listener: ScreenListener) -> None: ...


class DirectoryScreenshotProvider:
    """Returns the most recently modified image in `directory`, or None when there is none."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def latest_path(self) -> Optional[Path]:
        if not self.directory.is_dir():
            return None
        candidates = [p for p in self.directory.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES and p.is_file()]
        if not candidates:
            return None
        return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))

    def capture(self) -> Optional[Image.Image]:
        path = self.latest_path()
        if path is None:
            return None
        try:
            with Image.open(path) as img:
                return img.convert("RGB")
        except OSError as e:
            # The capture tool may still be writing the file.
            logger.warning("Could not read screenshot %s: %s", path, e)
            return None


class PollingScreenChangeSource:
    """
    Polls a `ScreenshotProvider` and notifies listeners when the image signature
    changes. Events are raw; debouncing is the subscriber's job.
    """

    def __init__(self, provider: ScreenshotProvider, interval_s: float = 1.0):
        self.provider = provider
        self.interval_s = interval_s
        self._listeners: List[ScreenListener] = []
        self._last_sig: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    def subscribe(self, listener: ScreenListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ScreenListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _changed_frame(self) -> Optional[Any]:
        """Capture and fingerprint one frame; return it only if it differs from the last one."""
        image = self.provider.capture()
        if image is None:
            return None
        sig = image_signature(encode_image(image))
        if sig == self._last_sig:
            return None
        first = self._last_sig is None
        self._last_sig = sig
        if first:
            # Baseline frame, not a change.
            return None
        return image

    def _notify(self, image: Any) -> None:
        for listener in list(self._listeners):
            listener(image)

    def poll_once(self) -> bool:
        """Capture once; notify listeners if the screen changed. Returns True on change."""
        image = self._changed_frame()
        if image is None:
            return False
        self._notify(image)
        return True

    async def run(self) -> None:
        logger.info("[Screen] Polling every %.1fs", self.interval_s)
        while True:
            try:
                # Capture and hashing run in a worker; listeners are called on the loop.
                image = await asyncio.to_thread(self._changed_frame)
                if image is not None:
                    self._notify(image)
            except Exception as e:
                logger.warning("[Screen] Poll failed: %s", e)
            await asyncio.sleep(self.interval_s)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

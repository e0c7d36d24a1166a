import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class _MaxLengthFilter(logging.Filter):
    """Keep single log lines bounded; raw model responses can be very long."""

    def __init__(self, max_chars: int):
        super().__init__()
        self._max_chars = max_chars

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        msg = record.getMessage()
        if len(msg) > self._max_chars:
            record.msg = msg[: self._max_chars] + "...(truncated)"
            record.args = None
        return True


def setup_logging(
    output_path: Optional[str] = None,
    *,
    level: int = logging.INFO,
    log_name: str = "guide",
    log_subdir: str = "logs",
    max_line_chars: int = 2000,
    stream: Optional[object] = None,
) -> Optional[str]:
    """
    Configure process logging for the guide:
    - stream to console (stdout by default)
    - if `output_path` is given, also append to {output_path}/{log_subdir}/{log_name}.log

    Returns the absolute log file path, or None when logging only to the console.
    Safe to call twice; handlers are not duplicated.
    """
    if stream is None:
        stream = sys.stdout

    fmt = logging.Formatter(LOG_FORMAT)
    length_filter = _MaxLengthFilter(max_line_chars)

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_screenpilot", False) and not isinstance(h, logging.FileHandler) for h in root.handlers):
        stream_handler = logging.StreamHandler(stream=stream)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(fmt)
        stream_handler.addFilter(length_filter)
        stream_handler._screenpilot = True  # type: ignore[attr-defined]
        root.addHandler(stream_handler)

    # Common noisy libs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    if not output_path:
        return None

    log_dir = os.path.join(output_path, log_subdir)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.abspath(os.path.join(log_dir, f"{log_name}.log"))

    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and os.path.abspath(getattr(h, "baseFilename", "")) == log_file:
            return log_file

    file_handler = logging.FileHandler(log_file, mode="a")
    file_handler.setLevel(level)
    file_handler.setFormatter(fmt)
    file_handler.addFilter(length_filter)
    file_handler._screenpilot = True  # type: ignore[attr-defined]
    root.addHandler(file_handler)
    return log_file

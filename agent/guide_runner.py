"""
Run a guided session against a live screenshot directory.

An external capture tool writes screenshots into --screens_dir; the runner polls
it for changes, feeds the Watcher (debounced) and prints every state change.

Keyboard commands on stdin:
  d / done   mark the current step complete
  n / next   ask for a fresh instruction for the current milestone (or retry after an error)
  r / reset  abandon the session
  q / quit   exit
"""

import argparse
import asyncio
import logging
import sys

from screenpilot.agent.guide import DirectoryScreenshotProvider, GuideSnapshot, PollingScreenChangeSource
from screenpilot.agent.guide_agent import GuideAgentCfg, build_guide_orchestrator
from screenpilot.utils.logging_utils import setup_logging

logger = logging.getLogger("GuideRunner")


def print_snapshot(snap: GuideSnapshot) -> None:
    done, total = snap.progress
    line = f"[{snap.state}] {done}/{total}"
    if snap.milestone_title:
        line += f" | milestone: {snap.milestone_title}"
    print(line)
    print(f"    >> {snap.instruction_text}")
    if snap.value_to_copy:
        print(f"    copy: {snap.value_to_copy}")


async def read_line() -> str:
    loop = asyncio.get_running_loop()
    return (await loop.run_in_executor(None, sys.stdin.readline)).strip().lower()


async def run(args) -> int:
    cfg = GuideAgentCfg(
        model_name=args.model_name,
        base_url=args.base_url,
        api_key=args.api_key,
        debounce_s=args.debounce,
        poll_interval_s=args.poll_interval,
        dump_dir=args.dump_dir,
    ).with_env()

    provider = DirectoryScreenshotProvider(args.screens_dir)
    source = PollingScreenChangeSource(provider, interval_s=cfg.poll_interval_s)
    guide = build_guide_orchestrator(cfg, provider, source)
    guide.subscribe(print_snapshot)

    image = provider.capture()
    if image is None:
        logger.error("No screenshot found in %s", args.screens_dir)
        return 2

    logger.info("[LOOP] Starting guide -> goal='%s', vlm_url=%s", args.goal, cfg.base_url)
    source.start()
    guide.start_session(args.goal, image)
    try:
        while True:
            cmd = await read_line()
            if cmd in ("q", "quit"):
                break
            if cmd in ("d", "done"):
                guide.mark_step_complete()
            elif cmd in ("n", "next"):
                guide.process_next_step(provider.capture())
            elif cmd in ("r", "reset"):
                guide.reset()
            elif cmd:
                print("commands: done | next | reset | quit")
    finally:
        guide.reset()
        source.stop()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--goal", type=str, required=True, help="High level user goal")
    parser.add_argument("--screens_dir", type=str, required=True, help="Directory the capture tool writes screenshots to")
    parser.add_argument("--base_url", default=GuideAgentCfg.base_url)
    parser.add_argument("--api_key", default=GuideAgentCfg.api_key)
    parser.add_argument("--model_name", default=GuideAgentCfg.model_name)
    parser.add_argument("--poll_interval", type=float, default=1.0, help="Screen poll interval in seconds")
    parser.add_argument("--debounce", type=float, default=1.5, help="Quiet period before the Watcher runs")
    parser.add_argument("--output_path", type=str, default=None, help="Directory for log files")
    parser.add_argument("--dump_dir", type=str, default=None, help="Dump model requests/responses as JSON")
    args = parser.parse_args()

    setup_logging(args.output_path)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Guide stopped by user")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())

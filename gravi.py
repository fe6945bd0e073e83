#!/usr/bin/env python3
"""Gravi Agent - Prompt queue runner for AI agent panels.

Single entry point for the application.

Usage:
    python gravi.py                  # Switch on unless GRAVI_AUTO_START=false
    python gravi.py --queue          # Run the prompt queue headless
    python gravi.py --interval       # Send the interval prompt on a period
    python gravi.py --prompt "..."   # Send one prompt and exit
    python gravi.py --status         # Show transport and config readiness
    python gravi.py --version        # Show version

Send SIGHUP to a running agent to reload .env / --env-file settings.
"""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path
from types import FrameType
from typing import Any, Callable, Optional

from src import __version__
from src.automation.cdp import CDPClient
from src.autonomous.agent import GraviAgent
from src.core.config import (
    load_config,
    load_prompts_file,
    load_scheduler_config,
    validate_config,
    validate_scheduler_config,
)
from src.core.exceptions import ConfigurationError
from src.core.logging import get_logger, setup_logging
from src.scheduler.scheduler import Scheduler


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for Gravi Agent.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    parser = argparse.ArgumentParser(
        description="Gravi Agent - run prompt queues against an AI agent panel"
    )
    parser.add_argument("--queue", action="store_true", help="Run the prompt queue headless")
    parser.add_argument("--interval", action="store_true", help="Run interval mode headless")
    parser.add_argument("--prompt", metavar="TEXT", help="Send a single prompt and exit")
    parser.add_argument(
        "--prompts-file",
        type=Path,
        metavar="PATH",
        help="Queue prompts from a file, one per line",
    )
    parser.add_argument("--env-file", type=Path, metavar="PATH", help="Alternate .env file")
    parser.add_argument("--status", action="store_true", help="Show readiness report and exit")
    parser.add_argument("--dry-run", action="store_true", help="Log prompts instead of sending")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    args = parser.parse_args(argv)

    if args.version:
        print(f"Gravi Agent v{__version__}")
        return 0

    try:
        config = load_config(args.env_file)
        schedule = load_scheduler_config(args.env_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        log_dir=config.log_path,
        console_level=logging.DEBUG if (args.debug or config.debug) else logging.INFO,
    )
    logger = get_logger("main")
    logger.info(f"Gravi Agent v{__version__} starting...")

    issues = validate_config(config) + validate_scheduler_config(schedule)
    for issue in issues:
        if issue.startswith("CRITICAL:"):
            logger.error(f"Configuration: {issue}")
        else:
            logger.warning(f"Configuration issue: {issue}")
    if any(issue.startswith("CRITICAL:") for issue in issues):
        return 2

    client = CDPClient(
        host=config.cdp_host,
        port=config.cdp_port,
        dry_run=args.dry_run or config.dry_run,
    )

    if args.status:
        available = client.is_available()
        print(f"\nGravi Agent v{__version__} - Readiness\n")
        print(f"  Transport {client.base_url}: {'available' if available else 'UNAVAILABLE'}")
        print(f"  Mode: {schedule.mode.value}")
        print(f"  Queue prompts: {len(schedule.prompts)}")
        print(f"  Silence timeout: {schedule.silence_timeout_seconds:g}s")
        print(f"  Interval: {schedule.interval_minutes:g} min, prompt {'set' if schedule.interval_prompt else 'empty'}")
        if issues:
            print(f"\nConfiguration issues ({len(issues)}):")
            for issue in issues:
                print(f"  ! {issue}")
        print()
        return 0

    scheduler = Scheduler(client, config_loader=lambda: load_scheduler_config(args.env_file))
    agent = GraviAgent(
        client,
        scheduler,
        config=config,
        config_provider=lambda: load_config(args.env_file),
    )

    if args.prompt:
        if not client.is_available():
            logger.error("Transport unavailable, prompt not sent")
            return 1
        return 0 if agent.send_prompt(args.prompt) else 1

    prompts = None
    if args.prompts_file:
        try:
            prompts = load_prompts_file(args.prompts_file)
        except ConfigurationError as e:
            logger.error(str(e))
            return 2

    if args.queue:
        if not agent.enable(start_schedule=False):
            return 1
        if not agent.start_queue(prompts):
            agent.shutdown()
            return 1
        return _run_until(agent, lambda: scheduler.get_status().is_running, logger)

    if args.interval:
        if not agent.enable(start_schedule=False):
            return 1
        if not agent.start_interval():
            agent.shutdown()
            return 1
        return _run_until(agent, lambda: True, logger)

    if not config.auto_start:
        logger.info("Gravi Agent is OFF (GRAVI_AUTO_START=false)")
        return 0

    if not agent.enable():
        return 1
    return _run_until(agent, lambda: True, logger)


def install_reload_handler(agent: GraviAgent, logger: logging.Logger) -> Optional[Any]:
    """Reload configuration on SIGHUP.

    Returns:
        The previous handler, or None where SIGHUP does not exist
    """
    if not hasattr(signal, "SIGHUP"):
        return None

    def on_hangup(signum: int, frame: Optional[FrameType]) -> None:
        logger.info("SIGHUP received, reloading configuration")
        try:
            agent.on_config_changed()
        except ConfigurationError as e:
            logger.error(f"Configuration not reloaded: {e}")

    return signal.signal(signal.SIGHUP, on_hangup)


def _run_until(agent: GraviAgent, keep_going: Callable[[], bool], logger: logging.Logger) -> int:
    """Block until keep_going() is False or Ctrl+C, then shut down."""
    previous = install_reload_handler(agent, logger)
    try:
        while keep_going():
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by keyboard")
    finally:
        if previous is not None:
            signal.signal(signal.SIGHUP, previous)
        agent.shutdown()
    logger.info("Gravi Agent shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())

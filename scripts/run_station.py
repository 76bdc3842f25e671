#!/usr/bin/env python3
"""Run the station playback loop.

Plays the configured pattern locally or into the live broadcast until
the uptime budget runs out or the process is signalled.

Signals:
    SIGINT/SIGTERM: stop after the current clip (a second one kills
                    all child processes immediately)
    SIGUSR1:        stop after the next RADIO_STOP_AFTER_CATEGORY item

Usage:
    ./scripts/run_station.py [--uptime HOURS] [--uptime-mode cycle|track] [--mode local|live]

Exit codes:
    0: Station stopped normally
    1: Live broadcast pipeline failed or startup error (including
       missing API or stream keys in live mode)
"""

import argparse
import logging
import signal
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from radio_station.config import config
from radio_station.errors import PipelineFatalError
from radio_station.scheduler import build_scheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the station playback loop")
    parser.add_argument("--uptime", type=float, default=None, help="Runtime budget in hours")
    parser.add_argument("--uptime-mode", choices=["cycle", "track"], default=None)
    parser.add_argument("--mode", choices=["local", "live"], default=None, help="Delivery mode")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


def configure_logging(log_file: Path | None, debug: bool) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_file, args.debug)

    if args.uptime is not None:
        if args.uptime < 0:
            logger.error("--uptime must be non-negative")
            return 1
        config.schedule.uptime_hours = args.uptime
    if args.uptime_mode is not None:
        config.schedule.uptime_mode = args.uptime_mode
    if args.mode is not None:
        config.streaming.stream_mode = args.mode

    try:
        # Going on air needs every key; local runs degrade instead
        if config.streaming.stream_mode == "live":
            config.validate_production_config()
        scheduler = build_scheduler()
    except ValueError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    interrupted = {"count": 0}

    def handle_stop(signum, frame):
        interrupted["count"] += 1
        if interrupted["count"] == 1:
            logger.info("Stop signal received; finishing current clip")
            scheduler.request_stop()
        else:
            logger.warning("Second stop signal; terminating all processes")
            scheduler.shutdown()

    def handle_graceful(signum, frame):
        logger.info(f"Graceful stop requested; will stop after next '{config.schedule.stop_after_category}'")
        scheduler.request_stop_after()

    signal.signal(signal.SIGINT, handle_stop)
    signal.signal(signal.SIGTERM, handle_stop)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, handle_graceful)

    try:
        scheduler.start()
    except PipelineFatalError as e:
        logger.error(f"Live broadcast failed: {e}")
        return 1
    finally:
        scheduler.shutdown()

    return 0


if __name__ == "__main__":
    sys.exit(main())

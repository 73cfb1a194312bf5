#!/usr/bin/env python3
"""
Daydream OPI client

Connects to a Daydream perimeter, sets the background and fixation for one
eye, presents the stimuli listed in the config file and logs each response.

Usage:
    python main.py [--config CONFIG_PATH] [--ip IP] [--port PORT] [--eye L|R]

Phone setup:
    1. Start the OPI server app on the phone
    2. Put the phone on the same network (or adb forward tcp:50008 tcp:50008)
    3. Run this script with the phone's address
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from opi_daydream import Stimulus, choose_opi
from opi_daydream.config import DaydreamConfig, load_config
from opi_daydream.core.contracts import PresentResult
from opi_daydream.core.errors import DeviceConnectionError, DeviceUnreachableError


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    file_level: str = "DEBUG",
) -> List[int]:
    """Replace loguru's default sink with a console sink and an optional file sink.

    The file sink keeps its own level so wire traffic (DEBUG) can be kept on
    disk while the console shows only the session lifecycle.

    Returns:
        Handler ids of the installed sinks
    """
    logger.remove()
    handlers = [logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT, colorize=True)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logger.add(
                log_file,
                level=file_level,
                format=FILE_FORMAT,
                rotation="10 MB",
                retention="7 days",
            )
        )
    return handlers


# ============================================================
# SESSION RUNNER
# ============================================================

class DaydreamRunner:
    """Runs one configured session against the phone."""

    def __init__(self, config: DaydreamConfig, eye: str = "L"):
        self.config = config
        self.eye = eye
        self.machine = choose_opi("Daydream", config=config)
        self.results: List[PresentResult] = []

    def run(self) -> int:
        """Initialise, set background, present every stimulus, close.

        Returns:
            Process exit code
        """
        try:
            self.machine.initialise()
        except DeviceUnreachableError as e:
            logger.error(str(e))
            return 1
        except (DeviceConnectionError, TimeoutError) as e:
            logger.error(f"Phone handshake failed: {e}")
            return 1

        try:
            err = self.machine.set_background(
                lum=self.config.background_level,
                fixation=self.config.fixation,
                fixation_size=self.config.fixation_size,
                fixation_color=self.config.fixation_color,
                eye=self.eye,
            )
            if err:
                logger.error(err)
                return 2

            stimuli = [Stimulus.from_dict({"eye": self.eye, **s}) for s in self.config.stimuli]
            logger.info(f"Presenting {len(stimuli)} stimuli to eye {self.eye}")
            for stimulus in stimuli:
                result = self.machine.present(stimulus)
                self.results.append(result)
                if result.err:
                    logger.warning(f"({stimulus.x}, {stimulus.y}) {stimulus.level} cd/m2: {result.err}")
                else:
                    logger.info(
                        f"({stimulus.x}, {stimulus.y}) {stimulus.level} cd/m2: "
                        f"{'seen' if result.seen else 'not seen'} {result.time:.0f} ms"
                    )
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            closed = self.machine.close()
            if closed.err:
                logger.error(closed.err)

        seen = sum(1 for r in self.results if r.err is None and r.seen)
        logger.info(f"Done: {seen}/{len(self.results)} seen")
        return 0


# ============================================================
# ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Open Perimetry Interface client for the Daydream headset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--ip",
        type=str,
        default=None,
        help="Phone IP address (overrides config)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Phone OPI server port (overrides config)",
    )

    parser.add_argument(
        "--eye",
        type=str,
        default="L",
        choices=["L", "R"],
        help="Eye to test (default: L)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, INFO)",
    )

    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (default: from config)",
    )

    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.ip:
        config.ip = args.ip
    if args.port:
        config.port = args.port

    # Setup logging
    setup_logging(
        args.log_level or config.log_level,
        args.log_file or config.log_file,
        file_level=config.log_file_level,
    )

    runner = DaydreamRunner(config, eye=args.eye)
    return runner.run()


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Distraction Detection - Main Entry Point

Streams webcam frames to a remote classification service and keeps
running totals of focused and distracted time.

Usage:
    python main.py                  # Production: launch backend, then connect
    python main.py --local          # Local testing: simulated launch, localhost backend
    python main.py --backend-url http://host:5000
"""

import sys
import asyncio
import logging
import argparse

import config
from core.engine import SessionController
from display.console import ConsoleDisplay

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Suppress noisy third-party library logs (HTTP requests, socket frames)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("socketio").setLevel(logging.WARNING)
logging.getLogger("engineio").setLevel(logging.WARNING)


async def read_commands(controller: SessionController, display: ConsoleDisplay) -> None:
    """
    Read start/stop/status/reconnect/quit commands from stdin until quit or EOF.

    Args:
        controller: The mounted session controller.
        display: Console sink used for command feedback.
    """
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            return  # EOF

        command = line.strip().lower()
        if command in ("start", "s"):
            result = controller.start()
            if not result["success"]:
                display.write_line(f"Cannot start: {result['error']}")
        elif command in ("stop", "x"):
            result = controller.stop()
            if not result["success"]:
                display.write_line("Not tracking")
        elif command == "status":
            display.show_summary()
        elif command in ("reconnect", "r"):
            result = controller.reconnect()
            if not result["success"]:
                display.write_line(f"Cannot reconnect: {result['error']}")
        elif command in ("quit", "q", "exit"):
            return
        elif command:
            display.write_line("Commands: start, stop, status, reconnect, quit")


async def run(backend_url: str, local: bool) -> None:
    """Mount the controller, run until the user quits, then tear down."""
    logger.info(f"Environment: {'Local testing' if local else 'Production'}")

    controller = SessionController(backend_url=backend_url, local=local)
    display = ConsoleDisplay(controller)

    display.start()
    controller.mount()
    try:
        await read_commands(controller, display)
    finally:
        display.stop()
        await controller.dispose()


def main():
    """Main entry point — parses arguments and runs the client."""
    parser = argparse.ArgumentParser(
        description="Distraction Detection - webcam focus tracking client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                       Production backend from BACKEND_URL
  python main.py --local               Local testing against localhost:5000
        """
    )
    parser.add_argument(
        "--local",
        action="store_true",
        default=config.LOCAL_MODE,
        help="Local testing mode: simulated server launch, localhost fallback",
    )
    parser.add_argument(
        "--backend-url",
        default=None,
        help="Backend address (overrides BACKEND_URL)",
    )

    args = parser.parse_args()
    backend_url = args.backend_url or config.get_backend_url(args.local)

    try:
        asyncio.run(run(backend_url, args.local))
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

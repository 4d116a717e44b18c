# DevinRelay/devin_relay/main.py
# @ai-rules:
# 1. [Constraint]: GEMINI_API_KEY checked BEFORE any connection attempt. Missing -> exit 1.
# 2. [Pattern]: .env loaded first (python-dotenv), then logging, then settings.
# 3. [Pattern]: Exit 0 on SIGINT, console "exit", or the "Session terminated" sentinel. run_relay() returns the code.
# 4. [Gotcha]: console task is cancelled when the relay stops; the stdin thread is a daemon and is not joined.
"""
Devin Relay - process entry point.

Connects to a Devin session WebSocket and answers every Devin message
with a Gemini-generated reply.

Usage:
  GEMINI_API_KEY=... devin-relay [--url wss://...] [--debug]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from .client import create_relay
from .config import Settings, load_settings
from .console import OperatorConsole, StdinReader
from .errors import ConfigurationError
from .llm import ResponseGenerator, create_client

logger = logging.getLogger("devin_relay")


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Squelch transport noise; request URLs carry the API key.
    for noisy in ("httpx", "httpcore", "websockets.client"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def run_relay(settings: Settings, url: Optional[str] = None, reader: Optional[StdinReader] = None) -> int:
    """Run the relay until it is terminated. Returns the process exit code."""
    reader = reader or StdinReader()
    reader.start()
    console = OperatorConsole(reader)

    url = url or settings.websocket_url or await console.prompt_url()
    logger.info(f"Target: {url}")

    generator = ResponseGenerator(
        create_client(settings),
        gate=console,
        on_progress=console.report_progress,
    )
    relay = create_relay(
        url,
        generator,
        keepalive_interval=settings.keepalive_interval,
        reconnect_delay=settings.reconnect_delay,
    )
    console.attach(relay)

    console_task = asyncio.create_task(console.run())
    try:
        await relay.run()
    finally:
        console_task.cancel()
    logger.info("Relay stopped")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Answer a Devin session with Gemini-generated replies")
    parser.add_argument("--url", default=None, help="Devin session WebSocket URL (prompted if omitted)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    load_dotenv()
    _configure_logging(args.debug or bool(os.getenv("DEBUG")))

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"Error: {e}")
        logger.error("Set GEMINI_API_KEY in your environment or .env file")
        sys.exit(1)

    try:
        code = asyncio.run(run_relay(settings, url=args.url))
    except KeyboardInterrupt:
        logger.info("Interrupted -- exiting")
        code = 0
    except ConfigurationError as e:
        logger.error(f"Error: {e}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()

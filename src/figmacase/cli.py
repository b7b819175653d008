"""Command-line entry point: `figmacase` / `python -m figmacase`.

Loads settings from the environment, refuses to start without a credential,
then serves MCP over stdio until EOF, SIGINT or SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from typing import Sequence

from figmacase import __version__
from figmacase.ext.mcp import FigmaServer, ServerState
from figmacase.foundation.config import FigmacaseSettings, clear_settings_cache, get_settings
from figmacase.foundation.errors import ConfigurationError
from figmacase.runtime.observability import configure_logging, get_logger
from figmacase.tools import FigmaClient

log = get_logger("figmacase.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="figmacase", description="Figma MCP server (stdio)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and health reports")
    parser.add_argument("--verify-token", action="store_true", help="Check the access token against /me before serving")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def _verify_token(settings: FigmacaseSettings) -> bool:
    client = FigmaClient.from_settings(settings.api)
    try:
        outcome = await client.verify_token()
    finally:
        await client.aclose()
    if not outcome.ok:
        print(f"Error: Figma access token rejected: {outcome.error}", file=sys.stderr)
        return False
    user = outcome.data or {}
    log.info("token verified", handle=user.get("handle"), email=user.get("email"))
    return True


async def run(settings: FigmacaseSettings, *, verify_token: bool = False) -> int:
    """Serve until the transport closes or a termination signal arrives.

    Returns 1 when the server ended in `error`.
    """
    try:
        server = FigmaServer.from_settings(settings)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if verify_token and not await _verify_token(settings):
        return 1

    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, task.cancel)  # type: ignore[union-attr]

    try:
        await server.run_stdio()
    except asyncio.CancelledError:
        log.info("shutdown requested")
    except Exception as e:
        log.exception("server failed", error=str(e))
        await server.stop()
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)
    await server.stop()
    if server.state is ServerState.ERROR:
        log.error("server exited after a transport failure", connection_errors=server.connection_errors)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    clear_settings_cache()
    settings = get_settings()
    if args.debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(settings.logging.format, "DEBUG" if settings.debug else settings.logging.level)
    try:
        return asyncio.run(run(settings, verify_token=args.verify_token))
    except KeyboardInterrupt:
        return 130

"""Interactive text conversation loop.

Reads one utterance per line, prints the model's reply, and stops after a
turn that asks to end the conversation (an utterance starting with
"goodbye") or at end of input.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .config import load_config
from .handler import ChatTurnHandler, create_handler
from .llm import RemoteCallError

logger = logging.getLogger(__name__)

ReadLine = Callable[[], Awaitable[Optional[str]]]
WriteLine = Callable[[str], None]


async def _stdin_line() -> Optional[str]:
    try:
        return await asyncio.to_thread(input, "> ")
    except EOFError:
        return None


async def run_console(
    handler: ChatTurnHandler,
    read_line: ReadLine = _stdin_line,
    write_line: WriteLine = print,
) -> int:
    """Run turns until a termination request or EOF. Returns completed turns."""
    turns = 0
    while True:
        line = await read_line()
        if line is None:
            break
        try:
            result = await handler.handle_turn(line)
        except RemoteCallError as e:
            write_line(f"[error] {e}")
            continue
        if not result.response_text and not line.strip():
            continue
        turns += 1
        write_line(result.response_text)
        if result.termination_requested:
            break
    return turns


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Chat with the configured deployment.")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: $CHAT_TURN_CONFIG or config/default.yaml)",
    )
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    logging.basicConfig(level=str(cfg.get("logging", {}).get("level", "INFO")).upper())

    handler = create_handler(cfg)

    async def _run() -> None:
        try:
            await run_console(handler)
        finally:
            await handler.service.aclose()

    asyncio.run(_run())


if __name__ == "__main__":
    main()

from __future__ import annotations

import asyncio
from typing import List, Optional

from chat_turn.console import run_console
from chat_turn.handler import ChatTurnHandler
from chat_turn.llm import RemoteCallError

from conftest import FakeCompletionService, count_turn_markers


class Script:
    """Feeds canned lines to the console loop, then EOF."""

    def __init__(self, lines: List[str]):
        self.lines = list(lines)

    async def __call__(self) -> Optional[str]:
        return self.lines.pop(0) if self.lines else None


def test_console_stops_after_goodbye(turn_config):
    service = FakeCompletionService(replies=["hello!", "bye!"])
    handler = ChatTurnHandler(turn_config, service, estimate=count_turn_markers)
    out: List[str] = []
    script = Script(["hi", "", "goodbye", "never read"])

    turns = asyncio.run(run_console(handler, script, out.append))

    assert turns == 2
    assert out == ["hello!", "bye!"]
    assert script.lines == ["never read"]


def test_console_stops_at_eof(handler: ChatTurnHandler):
    out: List[str] = []
    turns = asyncio.run(run_console(handler, Script(["one"]), out.append))
    assert turns == 1
    assert out == ["Hi there"]


def test_console_reports_errors_and_continues(turn_config):
    service = FakeCompletionService(error=RemoteCallError("offline"))
    handler = ChatTurnHandler(turn_config, service, estimate=count_turn_markers)
    out: List[str] = []
    turns = asyncio.run(run_console(handler, Script(["a", "b"]), out.append))
    assert turns == 0
    assert len(out) == 2 and all("offline" in line for line in out)
    assert len(service.calls) == 2

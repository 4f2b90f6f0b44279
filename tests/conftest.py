"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chat_turn.config import TurnConfig  # noqa: E402
from chat_turn.handler import ChatTurnHandler  # noqa: E402
from chat_turn.llm import Completion, CompletionChoice, CompletionRequest  # noqa: E402
from chat_turn.prompt import IM_START  # noqa: E402


class FakeCompletionService:
    """Records requests and answers with canned replies (or raises)."""

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or ["ok"])
        self.error = error
        self.calls: List[tuple[str, CompletionRequest]] = []
        self.gate: Optional[asyncio.Event] = None

    async def complete(self, deployment: str, request: CompletionRequest) -> Completion:
        self.calls.append((deployment, request))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return Completion(choices=[CompletionChoice(text=text)])

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][1].prompt[0]


def count_turn_markers(prompt: str) -> int:
    """Toy estimator: one 'token' per ChatML turn marker."""
    return prompt.count(IM_START)


@pytest.fixture
def turn_config() -> TurnConfig:
    return TurnConfig(
        system_prompt="You are helpful.",
        max_tokens=1000,
        temperature=0.5,
        presence_penalty=0.1,
        frequency_penalty=0.2,
        model="gpt-35-turbo",
        deployment="chat-deploy",
    )


@pytest.fixture
def fake_service() -> FakeCompletionService:
    return FakeCompletionService(replies=["Hi there"])


@pytest.fixture
def handler(turn_config: TurnConfig, fake_service: FakeCompletionService) -> ChatTurnHandler:
    return ChatTurnHandler(turn_config, fake_service, estimate=count_turn_markers)


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Run with no config-related environment variables and an empty cwd."""
    for var in ["CHAT_TURN_CONFIG", "AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_API_KEY"]:
        monkeypatch.delenv(var, raising=False)
    for key in list(os.environ):
        if key.startswith("CHAT_TURN__"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield

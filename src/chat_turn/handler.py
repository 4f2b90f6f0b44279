"""Single conversational turn: render, trim, complete, record."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import TurnConfig, turn_config_from_dict
from .llm import CompletionRequest, CompletionService, RemoteCallError, create_from_config
from .prompt import TokenEstimator, render_prompt, tiktoken_estimator, trim_to_budget
from .transcript import Message, Role, Transcript

logger = logging.getLogger(__name__)

STOP_LISTENING_KEY = "StopListening"
TERMINATION_PREFIX = "goodbye"


@dataclass(frozen=True)
class TurnResult:
    response_text: str
    termination_requested: bool = False

    def context_vars(self) -> Dict[str, str]:
        """Termination flag as a boolean-as-text context variable."""
        return {STOP_LISTENING_KEY: "True" if self.termination_requested else ""}


def is_termination_request(text: str) -> bool:
    return text.lower().startswith(TERMINATION_PREFIX)


class ChatTurnHandler:
    """Owns the transcript and turns user text into model replies.

    One turn at a time; the handler does no locking of its own.
    """

    def __init__(
        self,
        config: TurnConfig,
        service: CompletionService,
        estimate: Optional[TokenEstimator] = None,
        transcript: Optional[Transcript] = None,
    ) -> None:
        self.config = config
        self.service = service
        self.estimate = estimate or tiktoken_estimator()
        self.transcript = transcript if transcript is not None else Transcript()
        self.stop_listening = False

    def build_request(self, prompt: str) -> CompletionRequest:
        cfg = self.config
        return CompletionRequest(
            prompt=[prompt],
            max_tokens=cfg.max_tokens,
            temperature=cfg.temperature,
            presence_penalty=cfg.presence_penalty,
            frequency_penalty=cfg.frequency_penalty,
            model=cfg.model,
            stop=[cfg.stop_sequence],
        )

    async def handle_turn(self, text: str) -> TurnResult:
        """Send ``text`` to the model and record the exchange.

        Raises
        ------
        RemoteCallError
            The completion call failed; nothing is appended to the transcript.
        asyncio.CancelledError
            The awaiting task was cancelled during the remote call.
        """
        if not text or not text.strip():
            return TurnResult("")

        self.stop_listening = is_termination_request(text)

        cfg = self.config
        trimmed = trim_to_budget(self.transcript, cfg.system_prompt, cfg.max_tokens, self.estimate)
        prompt = render_prompt(cfg.system_prompt, self.transcript.messages)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Turn with %d message(s) in view (%d trimmed), prompt ~%d tokens",
                len(self.transcript),
                trimmed,
                self.estimate(prompt),
            )

        try:
            completion = await self.service.complete(cfg.deployment, self.build_request(prompt))
            reply = completion.first_text()
        except RemoteCallError as e:
            logger.warning("Completion failed: %s", e)
            raise

        self.transcript.append(Message(Role.USER, text))
        self.transcript.append(Message(Role.ASSISTANT, reply))
        return TurnResult(reply, self.stop_listening)


def create_handler(cfg: Dict[str, Any]) -> ChatTurnHandler:
    """Build a handler wired to Azure OpenAI from a loaded config dict."""
    encoding = (cfg.get("tokenizer") or {}).get("encoding", "r50k_base")
    return ChatTurnHandler(
        turn_config_from_dict(cfg),
        create_from_config(cfg),
        estimate=tiktoken_estimator(encoding),
    )

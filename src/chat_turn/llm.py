"""Remote completion client for Azure OpenAI deployments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

import openai

from .config import AzureOpenAIOptions, azure_options_from_dict

logger = logging.getLogger(__name__)


# -----------------------------
# Errors
# -----------------------------

class RemoteCallError(Exception):
    """The remote completion call failed (auth, network, rate limit, timeout, status)."""


class EmptyCompletionError(RemoteCallError):
    """The remote service answered without any choices."""


# -----------------------------
# Request / response types
# -----------------------------

@dataclass
class CompletionRequest:
    prompt: List[str]
    max_tokens: int
    temperature: float
    presence_penalty: float
    frequency_penalty: float
    model: str
    stop: List[str] = field(default_factory=list)

    def to_kwargs(self) -> Dict[str, Any]:
        return dict(
            prompt=list(self.prompt),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            presence_penalty=self.presence_penalty,
            frequency_penalty=self.frequency_penalty,
            model=self.model,
            stop=list(self.stop),
        )


@dataclass
class CompletionChoice:
    text: str


@dataclass
class Completion:
    choices: List[CompletionChoice] = field(default_factory=list)

    def first_text(self) -> str:
        if not self.choices:
            raise EmptyCompletionError("Completion response contained no choices.")
        return self.choices[0].text


class CompletionService(Protocol):
    async def complete(self, deployment: str, request: CompletionRequest) -> Completion:
        ...


# -----------------------------
# Azure OpenAI implementation
# -----------------------------

ClientFactory = Callable[[str], Any]


class AzureCompletionService:
    """Thin wrapper around :class:`openai.AsyncAzureOpenAI` completions.

    One SDK client is created per deployment and reused. SDK errors are
    converted to :class:`RemoteCallError`; cancellation is left alone.
    """

    def __init__(
        self,
        options: AzureOpenAIOptions,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._options = options
        self._factory = client_factory or self._default_factory
        self._clients: Dict[str, Any] = {}

    def _default_factory(self, deployment: str) -> Any:
        return openai.AsyncAzureOpenAI(
            azure_endpoint=self._options.endpoint,
            api_key=self._options.api_key,
            api_version=self._options.api_version,
            azure_deployment=deployment,
            timeout=self._options.timeout,
            max_retries=0,
        )

    def _client_for(self, deployment: str) -> Any:
        client = self._clients.get(deployment)
        if client is None:
            client = self._factory(deployment)
            self._clients[deployment] = client
        return client

    async def complete(self, deployment: str, request: CompletionRequest) -> Completion:
        client = self._client_for(deployment)
        try:
            response = await client.completions.create(**request.to_kwargs())
        except openai.OpenAIError as e:
            raise RemoteCallError(f"Completion request to {deployment!r} failed: {e}") from e

        choices = [CompletionChoice(text=c.text or "") for c in (response.choices or [])]
        return Completion(choices=choices)

    async def aclose(self) -> None:
        for client in self._clients.values():
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        self._clients.clear()


# -----------------------------
# Convenience factory
# -----------------------------

def create_from_config(cfg: Dict[str, Any]) -> AzureCompletionService:
    """Create an AzureCompletionService from a config dict (e.g., loaded YAML)."""
    return AzureCompletionService(azure_options_from_dict(cfg))

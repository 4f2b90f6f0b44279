"""Conversational turn handler for ChatML-style completion deployments.

The handler keeps an in-memory transcript, renders it with ChatML
delimiters, trims history to the configured token budget and sends the
prompt to an Azure OpenAI completions deployment.

Typical usage
-------------
from chat_turn import ChatTurnHandler, create_handler, load_config
handler = create_handler(load_config())
result = await handler.handle_turn("Hello")

or, over HTTP:

python scripts/run_server.py --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

from .config import AzureOpenAIOptions, TurnConfig, load_config
from .handler import ChatTurnHandler, TurnResult, create_handler
from .llm import EmptyCompletionError, RemoteCallError
from .transcript import Message, Role, Transcript

__all__ = [
    "AzureOpenAIOptions",
    "ChatTurnHandler",
    "EmptyCompletionError",
    "Message",
    "RemoteCallError",
    "Role",
    "Transcript",
    "TurnConfig",
    "TurnResult",
    "create_app",
    "create_handler",
    "load_config",
    "__version__",
    "get_version",
]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"

def get_version() -> str:
    """Return the package version."""
    return __version__


def create_app(*args, **kwargs):
    """Return a configured FastAPI application.

    This forwards to :func:`chat_turn.server.create_app`; FastAPI is only
    imported when the app is actually built.
    """
    from .server import create_app as _create_app

    return _create_app(*args, **kwargs)

"""ChatML prompt rendering, token estimation and history trimming."""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from .transcript import Message, Transcript

logger = logging.getLogger(__name__)

IM_START = "<|im_start|>"
IM_END = "<|im_end|>"
ASSISTANT_CUE = f"\n{IM_START}assistant\n"

TokenEstimator = Callable[[str], int]


# -----------------------------
# Rendering
# -----------------------------
def to_chatml(system_prompt: str, messages: Iterable[Message]) -> str:
    """Serialize the system prompt and messages with ChatML delimiters."""
    parts = [f"{IM_START}system\n{system_prompt}\n{IM_END}"]
    for m in messages:
        parts.append(f"\n{IM_START}{m.role.value}\n{m.content}\n{IM_END}")
    return "".join(parts)


def render_prompt(system_prompt: str, messages: Iterable[Message]) -> str:
    """Full prompt text: ChatML transcript followed by the assistant-turn cue."""
    return to_chatml(system_prompt, messages) + ASSISTANT_CUE


# -----------------------------
# Token estimation
# -----------------------------
# Escaped as \uXXXX even though they are printable ASCII.
_HTML_SENSITIVE = frozenset("<>&'\"+`")
_SHORT_ESCAPES = {
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
    "\\": "\\\\",
}


def _unicode_escape(ch: str) -> str:
    code = ord(ch)
    if code > 0xFFFF:
        code -= 0x10000
        hi, lo = 0xD800 + (code >> 10), 0xDC00 + (code & 0x3FF)
        return f"\\u{hi:04X}\\u{lo:04X}"
    return f"\\u{code:04X}"


def escape_json_string(text: str) -> str:
    """Quote ``text`` as a JSON string literal with web-safe escaping.

    Only printable ASCII passes through. HTML-sensitive characters, controls
    without a short escape and all non-ASCII become upper-case ``\\uXXXX``
    (surrogate pairs above the BMP). ``json.dumps`` keeps ``<``, ``>``, ``&``
    and friends literal, so its counts come out shorter.
    """
    out = ['"']
    for ch in text:
        short = _SHORT_ESCAPES.get(ch)
        if short is not None:
            out.append(short)
        elif ch in _HTML_SENSITIVE or not (0x20 <= ord(ch) < 0x7F):
            out.append(_unicode_escape(ch))
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def count_prompt_tokens(prompt: str, encoder: Any) -> int:
    """Count tokens of the escaped JSON string literal of ``prompt``.

    The measured text is ``escape_json_string(prompt)``: surrounding quotes
    and every escape sequence are part of the count.
    """
    return len(encoder.encode(escape_json_string(prompt)))


def tiktoken_estimator(encoding_name: str = "r50k_base") -> TokenEstimator:
    """Build an estimator backed by a tiktoken encoding (r50k_base is GPT-3's BPE)."""
    import tiktoken

    encoding = tiktoken.get_encoding(encoding_name)

    def estimate(prompt: str) -> int:
        return count_prompt_tokens(prompt, encoding)

    return estimate


# -----------------------------
# Trimming
# -----------------------------
def trim_to_budget(
    transcript: Transcript,
    system_prompt: str,
    max_tokens: int,
    estimate: TokenEstimator,
) -> int:
    """Drop the oldest unpinned messages until the rendered prompt fits.

    Stops once the estimate is within ``max_tokens`` or the transcript is down
    to two messages. Returns how many messages were dropped.
    """
    dropped = 0
    tokens = estimate(render_prompt(system_prompt, transcript.messages))
    while tokens > max_tokens and len(transcript) > 2:
        transcript.drop_oldest_unpinned()
        dropped += 1
        tokens = estimate(render_prompt(system_prompt, transcript.messages))
    if dropped:
        logger.debug("Trimmed %d message(s); prompt now ~%d tokens", dropped, tokens)
    return dropped

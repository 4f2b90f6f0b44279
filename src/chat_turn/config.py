"""Configuration loading utilities for the turn handler.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable CHAT_TURN_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``CHAT_TURN__`` (e.g., CHAT_TURN__COMPLETION__MAX_TOKENS=800).
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHAT_TURN__"
DEFAULT_STOP = "<|im_end|>"

DEFAULTS: Dict[str, Any] = {
    "identity": {"system_prompt": "You are a helpful assistant."},
    "completion": {
        "max_tokens": 1500,
        "temperature": 0.7,
        "presence_penalty": 0.0,
        "frequency_penalty": 0.0,
        "model": "gpt-35-turbo",
        "deployment": "",
        "stop": DEFAULT_STOP,
    },
    "azure": {
        "endpoint": "",
        "api_key": "",
        "api_version": "2023-05-15",
        "timeout": 30.0,
    },
    "tokenizer": {"encoding": "r50k_base"},
    "server": {"cors_origins": ["*"]},
    "logging": {"level": "INFO"},
}


@dataclass(frozen=True)
class TurnConfig:
    """Per-turn generation settings. Immutable for the handler lifetime."""

    system_prompt: str
    max_tokens: int
    temperature: float
    presence_penalty: float
    frequency_penalty: float
    model: str
    deployment: str
    stop_sequence: str = DEFAULT_STOP


@dataclass(frozen=True)
class AzureOpenAIOptions:
    endpoint: str
    api_key: str
    api_version: str = "2023-05-15"
    timeout: float = 30.0


def _coerce(value: str) -> Any:
    # Attempt to parse simple types (bool, int, float)
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix CHAT_TURN__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., CHAT_TURN__AZURE__API_KEY -> cfg["azure"]["api_key"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the turn handler.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``CHAT_TURN_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Configuration merged over the built-in defaults, with environment
        overrides applied.
    """
    load_dotenv()

    if path is None:
        path = os.environ.get("CHAT_TURN_CONFIG", "config/default.yaml")

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides(copy.deepcopy(DEFAULTS))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(raw, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(_merge(DEFAULTS, raw))


def turn_config_from_dict(cfg: Dict[str, Any]) -> TurnConfig:
    """Build a :class:`TurnConfig` from a loaded config dict."""
    comp = {**DEFAULTS["completion"], **(cfg.get("completion") or {})}
    identity = cfg.get("identity") or {}

    deployment = str(comp.get("deployment") or "").strip()
    if not deployment:
        raise ValueError("completion.deployment is not configured.")

    return TurnConfig(
        system_prompt=str(identity.get("system_prompt") or DEFAULTS["identity"]["system_prompt"]),
        max_tokens=int(comp["max_tokens"]),
        temperature=float(comp["temperature"]),
        presence_penalty=float(comp["presence_penalty"]),
        frequency_penalty=float(comp["frequency_penalty"]),
        model=str(comp["model"]),
        deployment=deployment,
        stop_sequence=str(comp.get("stop") or DEFAULT_STOP),
    )


def azure_options_from_dict(cfg: Dict[str, Any]) -> AzureOpenAIOptions:
    """Build :class:`AzureOpenAIOptions`, falling back to the standard Azure env vars."""
    az = {**DEFAULTS["azure"], **(cfg.get("azure") or {})}
    endpoint = az.get("endpoint") or os.environ.get("AZURE_OPENAI_ENDPOINT", "")
    api_key = az.get("api_key") or os.environ.get("AZURE_OPENAI_API_KEY", "")
    if not endpoint:
        raise ValueError("azure.endpoint is not configured (or set AZURE_OPENAI_ENDPOINT).")
    return AzureOpenAIOptions(
        endpoint=str(endpoint),
        api_key=str(api_key),
        api_version=str(az["api_version"]),
        timeout=float(az["timeout"]),
    )


def redact(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``cfg`` safe to expose (API key removed)."""
    out = copy.deepcopy(cfg)
    az = out.get("azure")
    if isinstance(az, dict) and az.get("api_key"):
        az["api_key"] = "***"
    return out

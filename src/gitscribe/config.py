"""Runtime configuration for GitScribe, read from the environment (and .env)."""

import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv
from langchain_groq import ChatGroq

from gitscribe.errors import ConfigurationError

T = TypeVar("T")

DEFAULT_MODEL = "llama-3.3-70b-versatile"
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Settings for one generation run."""

    groq_api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_iterations: int = 10
    clone_timeout: float = 60.0
    force_json_output: bool = False
    summary_fallback_chars: int = 200


def _env(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e


def load_settings(model: Optional[str] = None) -> Settings:
    """Build Settings from environment variables.

    Raises ConfigurationError when GROQ_API_KEY is not set, so the failure
    happens before any repository or model work starts.
    """
    load_dotenv()
    groq_api_key = os.getenv("GROQ_API_KEY")
    if not groq_api_key:
        raise ConfigurationError("GROQ_API_KEY environment variable is not set")

    max_iterations = _env("GITSCRIBE_MAX_ITERATIONS", 10, int)
    if max_iterations < 1:
        raise ConfigurationError("GITSCRIBE_MAX_ITERATIONS must be at least 1")

    return Settings(
        groq_api_key=groq_api_key,
        model=model or _env("GITSCRIBE_MODEL", DEFAULT_MODEL, str),
        temperature=_env("GITSCRIBE_TEMPERATURE", 0.7, float),
        max_iterations=max_iterations,
        clone_timeout=_env("GITSCRIBE_CLONE_TIMEOUT", 60.0, float),
        force_json_output=_env("GITSCRIBE_FORCE_JSON", False, lambda v: v.lower() in _TRUTHY),
        summary_fallback_chars=_env("GITSCRIBE_SUMMARY_FALLBACK_CHARS", 200, int),
    )


def create_llm(settings: Settings) -> ChatGroq:
    """Construct the chat client once; the session receives it explicitly."""
    return ChatGroq(groq_api_key=settings.groq_api_key, model=settings.model, temperature=settings.temperature)

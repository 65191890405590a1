from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReturnLikelihoods = Literal["GENERATION", "ALL", "NONE"]

DEFAULT_MODEL = "command"
DEFAULT_MAX_TOKENS = 300
DEFAULT_TEMPERATURE = 0.9


@dataclass(slots=True, frozen=True)
class GenerationRequest:
    """One text generation call with the fixed parameter set used by the bot."""

    prompt: str
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    k: int = 0
    stop_sequences: tuple[str, ...] = ()
    return_likelihoods: ReturnLikelihoods = "NONE"


class GenerationError(RuntimeError):
    """Base error for generation failures detected by the bot itself."""


class NoCandidatesError(GenerationError):
    """Raised when the generation API answers without any candidate."""

    def __init__(self, model: str) -> None:
        super().__init__(f"model {model!r} returned no generation candidates")
        self.model = model

from __future__ import annotations

import logging
from collections.abc import Callable

import cohere

from telegram_cohere_bot.generation.models import DEFAULT_MODEL, GenerationRequest, NoCandidatesError

logger = logging.getLogger(__name__)


class CohereGenerationClient:
    """Single-call wrapper around the Cohere generate endpoint.

    The underlying ``cohere.AsyncClient`` is created once, when the wrapper is
    built. SDK errors (auth, quota, transport) reach the caller unchanged and
    no retries are attempted.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        client_factory: Callable[..., cohere.AsyncClient] | None = None,
    ) -> None:
        if not api_key.strip():
            raise ValueError("Cohere API key is empty")
        factory = client_factory or cohere.AsyncClient
        self._client = factory(api_key=api_key)
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def build_request(self, prompt: str) -> GenerationRequest:
        return GenerationRequest(prompt=prompt, model=self._model)

    async def generate(self, prompt: str) -> str:
        request = self.build_request(prompt)
        logger.debug("Generating with model=%s prompt_len=%d", request.model, len(request.prompt))
        response = await self._client.generate(
            model=request.model,
            prompt=request.prompt,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            k=request.k,
            stop_sequences=list(request.stop_sequences),
            return_likelihoods=request.return_likelihoods,
        )
        generations = response.generations or []
        if not generations:
            raise NoCandidatesError(request.model)
        return generations[0].text

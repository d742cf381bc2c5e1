"""Text generation backends (prompt in, text out).

Used by features that define or rewrite selected text. The index itself
never calls these.
"""

import logging
from typing import Protocol

import httpx

from space_command.config import Config

logger = logging.getLogger(__name__)

BACKENDS = ("ollama", "openai")


class GenerationError(Exception):
    """Raised when a backend fails to produce text."""

    pass


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class _HttpGenerator:
    def __init__(
        self,
        url: str,
        model: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = client

    async def _post(self, endpoint: str, payload: dict) -> dict:
        try:
            if self._client is not None:
                response = await self._client.post(
                    f"{self.url}{endpoint}", json=payload, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(f"{self.url}{endpoint}", json=payload)
        except httpx.HTTPError as e:
            logger.error("Generation request to %s failed: %s", self.url, e)
            raise GenerationError(f"Request failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "Generation request failed: status=%d model=%s url=%s",
                response.status_code,
                self.model,
                self.url,
            )
            raise GenerationError(f"Backend returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise GenerationError("Backend returned invalid JSON") from e


class OllamaGenerator(_HttpGenerator):
    """Ollama's /api/generate endpoint."""

    async def generate(self, prompt: str) -> str:
        data = await self._post(
            "/api/generate",
            {"model": self.model, "prompt": prompt, "stream": False},
        )
        text = data.get("response")
        if not isinstance(text, str):
            raise GenerationError("Missing 'response' in Ollama reply")
        return text.strip()


class OpenAICompatibleGenerator(_HttpGenerator):
    """Any server exposing /v1/chat/completions."""

    async def generate(self, prompt: str) -> str:
        data = await self._post(
            "/v1/chat/completions",
            {"model": self.model, "messages": [{"role": "user", "content": prompt}]},
        )
        try:
            return data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise GenerationError("Malformed chat completion reply") from e


def create_generator(
    config: Config, client: httpx.AsyncClient | None = None
) -> TextGenerator:
    """Build the generator selected by config.llm_backend."""
    if config.llm_backend == "ollama":
        cls: type[_HttpGenerator] = OllamaGenerator
    elif config.llm_backend == "openai":
        cls = OpenAICompatibleGenerator
    else:
        raise ValueError(
            f"Invalid llm_backend: {config.llm_backend}. Must be one of: {', '.join(BACKENDS)}"
        )
    return cls(config.llm_url, config.llm_model, config.llm_timeout, client=client)

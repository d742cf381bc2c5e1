"""Tests for text generation backends."""

import httpx
import pytest

from space_command.config import Config
from space_command.llm import (
    GenerationError,
    OllamaGenerator,
    OpenAICompatibleGenerator,
    create_generator,
)


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestOllamaGenerator:
    @pytest.mark.asyncio
    async def test_generate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={"response": "  A short definition. "})

        async with client_for(handler) as client:
            generator = OllamaGenerator("http://llm.local/", "llama3.2", client=client)
            text = await generator.generate("Define #todo")

        assert text == "A short definition."
        assert seen["url"] == "http://llm.local/api/generate"
        assert b'"stream": false' in seen["body"] or b'"stream":false' in seen["body"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        async with client_for(lambda request: httpx.Response(500)) as client:
            generator = OllamaGenerator("http://llm.local", "llama3.2", client=client)
            with pytest.raises(GenerationError, match="HTTP 500"):
                await generator.generate("x")

    @pytest.mark.asyncio
    async def test_missing_response_field(self):
        async with client_for(lambda request: httpx.Response(200, json={})) as client:
            generator = OllamaGenerator("http://llm.local", "llama3.2", client=client)
            with pytest.raises(GenerationError, match="Missing 'response'"):
                await generator.generate("x")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with client_for(lambda request: httpx.Response(200, text="not json")) as client:
            generator = OllamaGenerator("http://llm.local", "llama3.2", client=client)
            with pytest.raises(GenerationError, match="invalid JSON"):
                await generator.generate("x")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with client_for(handler) as client:
            generator = OllamaGenerator("http://llm.local", "llama3.2", client=client)
            with pytest.raises(GenerationError, match="Request failed"):
                await generator.generate("x")


class TestOpenAICompatibleGenerator:
    @pytest.mark.asyncio
    async def test_generate(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/chat/completions"
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "Rewritten text"}}]}
            )

        async with client_for(handler) as client:
            generator = OpenAICompatibleGenerator("http://llm.local", "gpt", client=client)
            assert await generator.generate("Rewrite") == "Rewritten text"

    @pytest.mark.asyncio
    async def test_malformed_reply(self):
        async with client_for(lambda request: httpx.Response(200, json={"choices": []})) as client:
            generator = OpenAICompatibleGenerator("http://llm.local", "gpt", client=client)
            with pytest.raises(GenerationError, match="Malformed"):
                await generator.generate("x")


class TestCreateGenerator:
    def test_selects_backend(self, tmp_path):
        assert isinstance(create_generator(Config(space_root=tmp_path)), OllamaGenerator)
        config = Config(space_root=tmp_path, llm_backend="openai", llm_url="http://x")
        generator = create_generator(config)
        assert isinstance(generator, OpenAICompatibleGenerator)
        assert generator.url == "http://x"

    def test_unknown_backend(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid llm_backend"):
            create_generator(Config(space_root=tmp_path, llm_backend="magic"))

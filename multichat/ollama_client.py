"""Ollama API client shared by every chat session."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .config import config
from .models import Host, ModelInfo, ModelListResponse, StreamRecord
from .stream import OllamaHTTPError, decode_response

logger = logging.getLogger(__name__)


class OllamaClient:
    """
    Async client for the Ollama API, addressed per host.

    One httpx.AsyncClient (and its connection pool) is shared by all
    hosts and sessions.

    Handles:
    - Streaming chat completions
    - Loaded-model and catalogue queries
    - Model warm-up and management calls
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.request_timeout, connect=config.connect_timeout)
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    async def _check(resp: httpx.Response) -> httpx.Response:
        if resp.is_error:
            await resp.aread()
            raise OllamaHTTPError(resp.status_code, resp.reason_phrase, resp.text)
        return resp

    async def list_loaded(self, host: Host) -> List[str]:
        """Names of models currently loaded on the host (/api/ps)."""
        resp = await self._check(await self.client.get(f"{host.url}/api/ps"))
        return ModelListResponse.model_validate(resp.json()).names

    async def list_tags(self, host: Host) -> List[str]:
        """Full model catalogue of the host (/api/tags)."""
        resp = await self._check(await self.client.get(f"{host.url}/api/tags"))
        return ModelListResponse.model_validate(resp.json()).names

    async def show(self, host: Host, model: str) -> ModelInfo:
        """Modelfile details of one installed model (/api/show)."""
        resp = await self._check(await self.client.post(f"{host.url}/api/show", json={"name": model}))
        return ModelInfo.model_validate(resp.json())

    async def warm(self, host: Host, model: str) -> None:
        """
        Load a model by issuing a minimal non-streaming generation.

        Any non-2xx response raises OllamaHTTPError.
        """
        payload = {"model": model, "prompt": ".", "stream": False}
        logger.info(f"Warming {model} on {host.name}")
        await self._check(await self.client.post(f"{host.url}/api/generate", json=payload))

    async def chat_stream(
        self,
        host: Host,
        model: str,
        messages: List[Dict[str, Any]],
    ) -> AsyncIterator[StreamRecord]:
        """
        Stream a chat completion from one host.

        Yields decoded StreamRecords until the record with done=true.
        Raises OllamaHTTPError on a non-2xx status, OllamaStreamError on
        an in-band error record, and httpx errors on transport failure.
        """
        payload = {
            "model": model,
            "messages": messages,
            "stream": True,
        }

        logger.info(f"Starting chat stream: host={host.name}, model={model}, messages={len(messages)}")

        async with self.client.stream(
            "POST",
            f"{host.url}/api/chat",
            json=payload,
        ) as response:
            await self._check(response)

            async for record in decode_response(response):
                yield record

    # ------------------------------------------------------------------
    # Model management
    # ------------------------------------------------------------------

    async def pull(self, host: Host, model: str) -> None:
        payload = {"name": model, "stream": False}
        await self._check(await self.client.post(f"{host.url}/api/pull", json=payload))

    async def delete(self, host: Host, model: str) -> None:
        await self._check(
            await self.client.request("DELETE", f"{host.url}/api/delete", json={"model": model})
        )

    async def unload(self, host: Host, model: str) -> None:
        """Unload a model by sending an empty chat with keep_alive=0."""
        await self._check(
            await self.client.post(f"{host.url}/api/chat", json={"model": model, "keep_alive": 0})
        )

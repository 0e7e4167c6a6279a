"""Test helpers: NDJSON builders and fake clients."""

import json
from typing import Any, Callable, Dict, List

import httpx

from multichat.models import Host, StreamRecord, TerminalMetadata
from multichat.ollama_client import OllamaClient


def ndjson(*records: Dict[str, Any]) -> bytes:
    return b"".join(json.dumps(r).encode() + b"\n" for r in records)


def fragment(text: str, model: str = "m") -> Dict[str, Any]:
    return {"model": model, "message": {"role": "assistant", "content": text}, "done": False}


def final(model: str = "m", **fields: Any) -> Dict[str, Any]:
    record = {
        "model": model,
        "message": {"role": "assistant", "content": ""},
        "done": True,
        "total_duration": 5_000_000_000,
        "load_duration": 1_000_000_000,
        "prompt_eval_count": 12,
        "prompt_eval_duration": 250_000_000,
        "eval_count": 40,
        "eval_duration": 2_000_000_000,
    }
    record.update(fields)
    return record


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> OllamaClient:
    return OllamaClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class ScriptedClient:
    """
    Stand-in for OllamaClient driven by per-host scripts.

    A script item is a str (fragment), TerminalMetadata (final record)
    or an Exception (raised at that point of the stream).
    """

    def __init__(self, scripts: Dict[str, List[Any]], warm_failures: Dict[str, Exception] = None):
        self.scripts = scripts
        self.warm_failures = warm_failures or {}
        self.requests: List[tuple] = []
        self.warmed: List[tuple] = []

    async def warm(self, host: Host, model: str) -> None:
        self.warmed.append((host.name, model))
        if host.name in self.warm_failures:
            raise self.warm_failures[host.name]

    async def chat_stream(self, host: Host, model: str, messages):
        self.requests.append((host.name, model, messages))
        for item in self.scripts.get(host.name, []):
            if isinstance(item, Exception):
                raise item
            if isinstance(item, TerminalMetadata):
                yield StreamRecord(done=True, **item.model_dump(exclude={"done"}))
                return
            yield StreamRecord(model=model, message={"role": "assistant", "content": item})



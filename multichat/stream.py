"""Decoder for Ollama's newline-delimited JSON chat stream."""

import json
import logging
from typing import AsyncIterable, AsyncIterator

import httpx
from pydantic import ValidationError

from .models import StreamRecord

logger = logging.getLogger(__name__)


class OllamaError(Exception):
    """Base error for Ollama API failures."""


class OllamaHTTPError(OllamaError):
    """Non-2xx response. The message carries status and body text."""

    def __init__(self, status_code: int, reason: str, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API returned non-200 status: {status_code} {reason}. Body: {body}")


class OllamaStreamError(OllamaError):
    """In-band {"error": ...} record inside an otherwise healthy stream."""


async def decode_stream(lines: AsyncIterable[str]) -> AsyncIterator[StreamRecord]:
    """
    Yield one StreamRecord per JSON line, in arrival order.

    Malformed lines are skipped. Stops as soon as the record with
    done=true has been yielded, without reading further. Errors raised
    by the underlying line iterator propagate.
    """
    async for line in lines:
        line = line.strip()
        if not line:
            continue

        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse chunk: {line[:100]}")
            continue

        if not isinstance(payload, dict):
            logger.warning(f"Skipping non-object chunk: {line[:100]}")
            continue

        try:
            record = StreamRecord.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Skipping invalid chunk ({e.error_count()} errors): {line[:100]}")
            continue

        if record.error:
            raise OllamaStreamError(record.error)

        yield record

        if record.done:
            return


async def decode_response(response: httpx.Response) -> AsyncIterator[StreamRecord]:
    """Decode a streamed httpx response body."""
    async for record in decode_stream(response.aiter_lines()):
        yield record

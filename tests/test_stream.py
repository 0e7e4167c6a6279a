"""Tests for the NDJSON stream decoder."""

import httpx
import pytest

from multichat.stream import OllamaStreamError, decode_response, decode_stream

from .helpers import final, fragment, ndjson


async def lines_of(*lines):
    for line in lines:
        yield line


async def collect(agen):
    return [item async for item in agen]


async def test_three_records_round_trip():
    body = ndjson(fragment("Hel"), fragment("lo"), final(model="llama3"))
    response = httpx.Response(200, content=body)

    records = await collect(decode_response(response))

    assert len(records) == 3
    assert [r.text for r in records] == ["Hel", "lo", ""]
    assert [r.done for r in records] == [False, False, True]

    meta = records[2].metadata()
    assert meta.model == "llama3"
    assert meta.done is True
    assert meta.total_duration == 5_000_000_000
    assert meta.load_duration == 1_000_000_000
    assert meta.prompt_eval_count == 12
    assert meta.prompt_eval_duration == 250_000_000
    assert meta.eval_count == 40
    assert meta.eval_duration == 2_000_000_000


async def test_malformed_records_are_skipped():
    records = await collect(decode_stream(lines_of(
        '{"message": {"role": "assistant", "content": "a"}}',
        "{not json",
        "[1, 2, 3]",
        "",
        '{"done": "maybe"}',
        '{"message": {"role": "assistant", "content": "b"}, "done": true}',
    )))

    assert [r.text for r in records] == ["a", "b"]
    assert records[-1].done


async def test_stops_reading_after_done():
    async def lines():
        yield '{"message": {"role": "assistant", "content": "x"}, "done": true}'
        raise AssertionError("decoder read past the final record")

    records = await collect(decode_stream(lines()))
    assert len(records) == 1


async def test_end_of_stream_without_done():
    records = await collect(decode_stream(lines_of(
        '{"message": {"role": "assistant", "content": "partial"}}',
    )))
    assert len(records) == 1
    assert not records[0].done


async def test_in_band_error_raises():
    lines = lines_of(
        '{"message": {"role": "assistant", "content": "x"}}',
        '{"error": "model ran out of memory"}',
    )
    received = []
    with pytest.raises(OllamaStreamError, match="out of memory"):
        async for record in decode_stream(lines):
            received.append(record.text)
    assert received == ["x"]


async def test_transport_failure_terminates_with_error():
    async def lines():
        yield '{"message": {"role": "assistant", "content": "x"}}'
        raise httpx.ReadError("connection reset")

    received = []
    with pytest.raises(httpx.ReadError):
        async for record in decode_stream(lines()):
            received.append(record.text)
    assert received == ["x"]

"""Tests for the read-only renderers."""

from rich.console import Console

from multichat.models import Host, TerminalMetadata
from multichat.orchestrator import Orchestrator
from multichat.registry import AssignmentRegistry
from multichat.session import ChatSession
from multichat.ui import format_meta, render_assignments, render_chat


def render(renderable) -> str:
    console = Console(width=160, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


def test_format_meta_seconds_and_tokens():
    meta = TerminalMetadata(
        done=True,
        load_duration=1_000_000_000,
        prompt_eval_duration=300_000_000,
        prompt_eval_count=18,
        eval_duration=4_040_000_000,
        eval_count=96,
        total_duration=5_700_000_000,
    )

    assert format_meta(meta) == (
        "  >>> [Model Load Duration: 1.0s] [Prompt Eval: 0.3s | 18 Tokens] "
        "[Response Eval: 4.0s | 96 Tokens] [Total Duration: 5.7s]"
    )


def test_assignment_view_shows_models_and_errors():
    hosts = [Host(name="H1", url="http://h1"), Host(name="H2", url="http://h2")]
    registry = AssignmentRegistry(hosts, client=None)
    registry.select(0, "llama3")

    text = render(render_assignments(registry, {1: "no such model"}))

    assert "llama3" in text
    assert "(no model assigned)" in text
    assert "no such model" in text


def test_chat_view_renders_without_mutating():
    host = Host(name="H1", url="http://h1")
    registry = AssignmentRegistry([host], client=None)
    registry.select(0, "m1")
    orchestrator = Orchestrator(registry, client=None)
    session = ChatSession(host=host, model="m1")
    session.start("hello", round=1)
    session.on_fragment("hi there")
    session.on_error("boom")
    orchestrator.sessions[0] = session
    before = [m.model_dump() for m in session.history]

    text = render(render_chat(orchestrator, debug=True))

    assert "hello" in text
    assert "hi there" in text
    assert "Error: boom" in text
    assert [m.model_dump() for m in session.history] == before


def test_single_host_header_names_host_and_model():
    host = Host(name="Local", url="http://local")
    registry = AssignmentRegistry([host], client=None)
    registry.select(0, "llama3")
    orchestrator = Orchestrator(registry, client=None)
    orchestrator.sessions[0] = ChatSession(host=host, model="llama3")

    single = render(render_chat(orchestrator, single=True))
    multi = render(render_chat(orchestrator))

    assert "Host: Local" in single
    assert "Model: llama3" in single
    assert "Multimodel Chat" not in single
    assert "Multimodel Chat" in multi

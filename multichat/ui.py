"""
Rich renderables for the assignment and chat views.

Renderers only read orchestrator and session state.
"""

from typing import Dict, List, Sequence

from rich.columns import Columns
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from .models import Role, TerminalMetadata
from .orchestrator import Orchestrator
from .registry import MAX_SESSIONS, AssignmentRegistry
from .session import ChatSession


def format_meta(meta: TerminalMetadata) -> str:
    """One-line timing summary of a finished response."""
    return (
        f"  >>> [Model Load Duration: {meta.load_duration / 1e9:.1f}s] "
        f"[Prompt Eval: {meta.prompt_eval_duration / 1e9:.1f}s | {meta.prompt_eval_count} Tokens] "
        f"[Response Eval: {meta.eval_duration / 1e9:.1f}s | {meta.eval_count} Tokens] "
        f"[Total Duration: {meta.total_duration / 1e9:.1f}s]"
    )


def render_assignments(registry: AssignmentRegistry, errors: Dict[int, str]) -> RenderableType:
    table = Table(title="Assign Models to Hosts", title_style="bold magenta")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Host", style="bold")
    table.add_column("URL", style="dim")
    table.add_column("Model")

    for i, a in enumerate(registry.assignments):
        model = Text(a.model, style="green") if a.assigned else Text("(no model assigned)", style="dim")
        if i in errors:
            model.append(f"  {errors[i]}", style="red")
        table.add_row(str(i + 1), a.host.name, a.host.url, model)

    help_text = Text(f"number: select model (up to {MAX_SESSIONS} hosts)   c: start chat   q: quit", style="dim")
    if registry.has_assignment:
        help_text.append("\nPress 'c' to start chat", style="black on green")
    return Group(table, help_text)


def render_models(host_name: str, models: Sequence[str], loaded: Sequence[str]) -> RenderableType:
    table = Table(title=f"Select Model for {host_name}", title_style="bold magenta")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Model")
    table.add_column("", style="green")

    loaded_set = set(loaded)
    for i, model in enumerate(models):
        table.add_row(str(i + 1), model, "Currently loaded" if model in loaded_set else "")
    table.caption = "0: clear this host"
    return table


def _render_session(session: ChatSession, debug: bool) -> Panel:
    body = Text()
    for msg in session.history:
        if msg.role == Role.ASSISTANT.value:
            body.append("Assistant: ", style="bold magenta")
        else:
            body.append("You: ", style="bold")
        body.append(f"{msg.content}\n")

    if session.error:
        body.append(f"Error: {session.error}\n", style="red")

    parts: List[RenderableType] = [body]
    if session.streaming:
        parts.append(Spinner("dots", text=f"Querying {session.model}... {session.elapsed:.1f}s"))
    elif debug and session.meta.done:
        parts.append(Text(format_meta(session.meta), style="grey50"))

    return Panel(
        Group(*parts),
        title=f"[bold]{session.host.name}[/bold]",
        subtitle=session.model,
        border_style="red" if session.error else "grey35",
    )


def render_chat(orchestrator: Orchestrator, debug: bool = False, single: bool = False) -> RenderableType:
    if single and orchestrator.sessions:
        session = next(iter(orchestrator.sessions.values()))
        header = Text(f" Host: {session.host.name} ", style="on dark_blue")
        header.append(" ")
        header.append(f" Model: {session.model} ", style="on dark_blue")
        header.append(" (/reassign to change, /quit to quit)", style="dim")
    else:
        header = Text(" Multimodel Chat ", style="on dark_blue")
        header.append(" (/reassign to change models, /quit to quit)", style="dim")

    panels = [_render_session(s, debug) for s in orchestrator.sessions.values()]
    return Group(header, Columns(panels, equal=True, expand=True))

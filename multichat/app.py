"""Interactive terminal loop: assignment view, then chat view."""

import logging
from typing import Optional

import httpx
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console
from rich.live import Live

from .models import HostsFile, OrchestratorState
from .ollama_client import OllamaClient
from .orchestrator import Orchestrator
from .registry import MAX_SESSIONS, AssignmentRegistry
from .stream import OllamaError
from .ui import render_assignments, render_chat, render_models

logger = logging.getLogger(__name__)


class ChatApp:
    """
    Terminal front end over the orchestrator.

    single=True is single-host mode: one host at a time, picking from
    the host's full /api/tags catalogue.
    """

    def __init__(
        self,
        hosts_file: HostsFile,
        client: OllamaClient,
        single: bool = False,
        console: Optional[Console] = None,
    ):
        self.debug = hosts_file.debug
        self.single = single
        self.console = console or Console()
        self.registry = AssignmentRegistry(hosts_file.hosts, client)
        self.orchestrator = Orchestrator(self.registry, client)
        self.prompt: PromptSession = PromptSession(history=InMemoryHistory())

    async def run(self) -> None:
        try:
            while await self._assignment_view() and await self._chat_view():
                pass
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            await self.orchestrator.aclose()

    async def _assignment_view(self) -> bool:
        """Returns True once the chat is ready, False to quit."""
        while True:
            self.console.print(render_assignments(self.registry, self.orchestrator.readiness_errors))
            choice = (await self.prompt.prompt_async("> ")).strip().lower()

            if choice == "q":
                return False

            if choice == "c":
                if not self.orchestrator.begin_chat():
                    self.console.print("[yellow]Assign a model to at least one host first[/yellow]")
                    continue
                with self.console.status("Loading models..."):
                    if await self.orchestrator.prepare():
                        return True
                continue

            if choice.isdigit() and 1 <= int(choice) <= len(self.registry):
                await self._pick_model(int(choice) - 1)

    async def _pick_model(self, index: int) -> None:
        host = self.registry[index].host
        try:
            with self.console.status(f"Fetching models from {host.name}..."):
                models = await self.registry.list_selectable(index, catalogue=self.single)
        except (OllamaError, httpx.HTTPError) as e:
            self.console.print(f"[red]Error: {e}[/red]")
            return

        if not models:
            self.console.print(f"[yellow]No models available on {host.name}[/yellow]")
            return

        self.console.print(render_models(host.name, models, self.registry.loaded.get(index, [])))
        choice = (await self.prompt.prompt_async("model> ")).strip()
        if choice == "0":
            self.registry.clear(index)
            return
        if not choice.isdigit() or not 1 <= int(choice) <= len(models):
            return

        if self.single:
            for i in range(len(self.registry)):
                self.registry.clear(i)
        if not self.registry.select(index, models[int(choice) - 1]):
            self.console.print(f"[yellow]At most {MAX_SESSIONS} hosts can chat at once; select 0 on a host to clear it[/yellow]")

    async def _chat_view(self) -> bool:
        """Returns True to go back to assignment, False to quit."""
        self.console.print(render_chat(self.orchestrator, self.debug, self.single))

        while self.orchestrator.state == OrchestratorState.CHAT_ACTIVE:
            text = await self.prompt.prompt_async("Ask Anything: ")
            command = text.strip()

            if command == "/quit":
                return False
            if command == "/reassign":
                self.orchestrator.reassign()
                return True

            if not self.orchestrator.submit(text):
                continue

            with Live(
                console=self.console,
                get_renderable=lambda: render_chat(self.orchestrator, self.debug, self.single),
                refresh_per_second=10,
            ) as live:
                async for _ in self.orchestrator.pump():
                    live.refresh()

        return True

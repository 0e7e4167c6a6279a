"""
Concurrent multi-session chat orchestrator.

One asyncio task per assigned session reads its stream and posts
events to a single queue. The orchestrator applies them one at a time
in dispatch(), which is the only code path that mutates session
state.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, AsyncIterator, Dict, List, Optional

from .events import Fragment, SessionEvent, StreamFailed, Terminal
from .models import Host, OrchestratorState, TerminalMetadata
from .ollama_client import OllamaClient
from .registry import MAX_SESSIONS, AssignmentRegistry
from .session import ChatSession

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


@dataclass
class SessionReply:
    """One session's contribution to a finished round."""
    host: str
    model: str
    text: str
    error: Optional[str] = None


@dataclass
class TranscriptEntry:
    """A finished round: the user prompt and every session's reply."""
    user: str
    replies: List[SessionReply] = field(default_factory=list)

    def combined(self) -> str:
        """All replies as one labeled block of text."""
        parts = [
            f"[{r.host} - {r.model}]: {r.text}\n\n"
            for r in self.replies
            if r.text
        ]
        return "".join(parts)


class Orchestrator:
    """
    Coordinates all active chat sessions.

    Handles:
    - Session creation from the assignment registry
    - Model warm-up before the first round
    - Concurrent stream tasks and their event queue
    - The aggregate loading flag and the shared transcript
    """

    def __init__(self, registry: AssignmentRegistry, client: OllamaClient):
        self.registry = registry
        self.client = client
        self.state = OrchestratorState.IDLE
        self.sessions: Dict[int, ChatSession] = {}
        self.is_loading = False
        self.transcript: List[TranscriptEntry] = []
        self.readiness_errors: Dict[int, str] = {}
        self.round_started_at: Optional[float] = None

        self._queue: asyncio.Queue = asyncio.Queue()
        self._tasks: Dict[int, asyncio.Task] = {}
        self._round = 0
        self._pending_prompt = ""

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def begin_chat(self) -> bool:
        """
        Build sessions for the assigned hosts and wait for readiness.

        Sessions for hosts that kept their model are reused so their
        history survives a reassignment. At most MAX_SESSIONS hosts, the
        first in host order, get a session. No-op without any assignment.
        """
        if self.state != OrchestratorState.IDLE or not self.registry.has_assignment:
            return False

        assigned = dict(islice(self.registry.assigned(), MAX_SESSIONS))

        for index in list(self.sessions):
            a = assigned.get(index)
            if a is None or a.model != self.sessions[index].model:
                logger.info(f"Dropping session {self.sessions[index].label}")
                del self.sessions[index]

        for index, a in assigned.items():
            if index not in self.sessions:
                self.sessions[index] = ChatSession(host=a.host, model=a.model)
                logger.info(f"Created session {self.sessions[index].label}")

        self.readiness_errors.clear()
        self.state = OrchestratorState.AWAITING_READY
        return True

    async def prepare(self) -> bool:
        """
        Warm every assigned model concurrently.

        Any failure is fatal for that host: the error is kept in
        readiness_errors and the orchestrator returns to IDLE.
        """
        if self.state != OrchestratorState.AWAITING_READY:
            return False

        indexes = list(self.sessions)
        results = await asyncio.gather(
            *(self.client.warm(self.sessions[i].host, self.sessions[i].model) for i in indexes),
            return_exceptions=True,
        )

        for index, result in zip(indexes, results):
            if isinstance(result, Exception):
                self.readiness_errors[index] = str(result) or type(result).__name__
                logger.error(f"Failed to load {self.sessions[index].label}: {result}")

        if self.readiness_errors:
            self.state = OrchestratorState.IDLE
            return False

        self.state = OrchestratorState.CHAT_ACTIVE
        logger.info(f"Chat ready with {len(self.sessions)} sessions")
        return True

    def reassign(self) -> None:
        """
        Leave the chat view.

        In-flight streams are cancelled; their sessions keep any partial
        text and record a cancelled error.
        """
        self._cancel_tasks()
        for session in self.sessions.values():
            session.on_error(CANCELLED)
        self._refresh_loading()
        self.state = OrchestratorState.IDLE

    async def aclose(self) -> None:
        """Cancel and await all stream tasks."""
        tasks = self._cancel_tasks()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for session in self.sessions.values():
            session.on_error(CANCELLED)
        self._refresh_loading()

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    def submit(self, user_text: str) -> bool:
        """
        Start one round: a stream task per assigned session.

        Ignored when the text is blank, the chat is not active, or the
        previous round is still streaming.
        """
        text = user_text.strip()
        if not text:
            return False

        if self.state != OrchestratorState.CHAT_ACTIVE or self.is_loading:
            logger.debug(f"Ignoring submit in state={self.state.value}, loading={self.is_loading}")
            return False

        self._round += 1
        self._pending_prompt = text
        self.round_started_at = time.monotonic()

        for index, session in self.sessions.items():
            if not self.registry[index].assigned:
                continue
            messages = session.start(text, self._round)
            self._tasks[index] = asyncio.create_task(
                self._stream_session(index, self._round, session.host, session.model, messages),
                name=f"stream-{session.label}-{self._round}",
            )

        self.is_loading = any(s.streaming for s in self.sessions.values())
        logger.info(f"Round {self._round} started on {len(self._tasks)} sessions")
        return self.is_loading

    async def _stream_session(
        self,
        index: int,
        round: int,
        host: Host,
        model: str,
        messages: List[Dict[str, Any]],
    ) -> None:
        """Read one stream to completion, posting events to the queue."""
        put = self._queue.put_nowait
        meta = TerminalMetadata()

        try:
            async for record in self.client.chat_stream(host, model, messages):
                if record.text:
                    put(Fragment(index=index, round=round, text=record.text))
                if record.done:
                    meta = record.metadata()
            put(Terminal(index=index, round=round, meta=meta))

        except asyncio.CancelledError:
            logger.info(f"Stream cancelled: {host.name}/{model}")
            raise
        except Exception as e:
            logger.error(f"Stream error on {host.name}/{model}: {e}")
            put(StreamFailed(index=index, round=round, error=str(e) or type(e).__name__))

    def dispatch(self, event: SessionEvent) -> bool:
        """
        Apply one event to the session it addresses.

        Returns True if session state changed. Events from a previous
        round are dropped.
        """
        session = self.sessions.get(event.index)
        if session is None:
            logger.warning(f"Event for unknown session index {event.index}")
            return False

        if event.round != session.round:
            logger.debug(f"Dropping stale event for {session.label} (round {event.round})")
            return False

        if isinstance(event, Fragment):
            applied = session.on_fragment(event.text)
        elif isinstance(event, Terminal):
            applied = session.on_terminal(event.meta)
            if applied:
                logger.info(f"{session.label} finished in {session.elapsed:.1f}s")
        elif isinstance(event, StreamFailed):
            applied = session.on_error(event.error)
        else:
            raise TypeError(f"Unknown session event: {type(event).__name__}")

        self._refresh_loading()
        return applied

    async def pump(self) -> AsyncIterator[SessionEvent]:
        """Dispatch queued events until the round ends, yielding each one."""
        while self.is_loading:
            event = await self._queue.get()
            self.dispatch(event)
            yield event

    async def run_until_idle(self) -> None:
        async for _ in self.pump():
            pass

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def round_elapsed(self) -> float:
        if self.round_started_at is None:
            return 0.0
        return time.monotonic() - self.round_started_at

    def _refresh_loading(self) -> None:
        was_loading = self.is_loading
        self.is_loading = any(s.streaming for s in self.sessions.values())
        if was_loading and not self.is_loading:
            self._fold_round()

    def _fold_round(self) -> None:
        replies = [
            SessionReply(host=s.host.name, model=s.model, text=s.last_reply, error=s.error)
            for s in self.sessions.values()
        ]
        self.transcript.append(TranscriptEntry(user=self._pending_prompt, replies=replies))
        failed = sum(1 for r in replies if r.error)
        logger.info(
            f"Round {self._round} complete in {self.round_elapsed:.1f}s "
            f"({len(replies) - failed} ok, {failed} failed)"
        )

    def _cancel_tasks(self) -> List[asyncio.Task]:
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        self._tasks.clear()
        return tasks

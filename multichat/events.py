"""Messages sent from session stream tasks to the orchestrator."""

from dataclasses import dataclass

from .models import TerminalMetadata


@dataclass(frozen=True)
class SessionEvent:
    """Base for all session events.

    index: assignment index of the originating session
    round: chat round the event belongs to; stale rounds are dropped
    """
    index: int
    round: int


@dataclass(frozen=True)
class Fragment(SessionEvent):
    text: str


@dataclass(frozen=True)
class Terminal(SessionEvent):
    meta: TerminalMetadata


@dataclass(frozen=True)
class StreamFailed(SessionEvent):
    error: str

"""Per host/model chat session state."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import ChatMessage, Host, Role, TerminalMetadata

logger = logging.getLogger(__name__)


@dataclass
class ChatSession:
    """
    One conversation with one model on one host.

    Tracks:
    - Conversation history (kept across rounds)
    - Streaming flag for the current round
    - Last error, terminal metadata and round start time

    Only the orchestrator's dispatch path calls the on_* methods, so
    no locking is needed.
    """
    host: Host
    model: str
    history: List[ChatMessage] = field(default_factory=list)
    streaming: bool = False
    error: Optional[str] = None
    meta: TerminalMetadata = field(default_factory=TerminalMetadata)
    round: int = 0
    started_at: Optional[float] = None

    def start(self, user_text: str, round: int) -> List[Dict[str, Any]]:
        """Open a new round. Returns the messages payload to send."""
        self.history.append(ChatMessage(role=Role.USER.value, content=user_text))
        self.streaming = True
        self.error = None
        self.meta = TerminalMetadata()
        self.round = round
        self.started_at = time.monotonic()
        return self.to_messages()

    def on_fragment(self, text: str) -> bool:
        if not self.streaming:
            return False

        if self.history and self.history[-1].role == Role.ASSISTANT.value:
            self.history[-1].content += text
        else:
            self.history.append(ChatMessage(role=Role.ASSISTANT.value, content=text))
        return True

    def on_terminal(self, meta: TerminalMetadata) -> bool:
        """Record final metadata. Returns False if the round was already closed."""
        if not self.streaming:
            logger.debug(f"Ignoring terminal event for idle session {self.label}")
            return False

        self.meta = meta
        self.streaming = False
        return True

    def on_error(self, error: str) -> bool:
        """Record a failure. Text received so far is kept."""
        if not self.streaming:
            logger.debug(f"Ignoring error for idle session {self.label}: {error}")
            return False

        self.error = error
        self.streaming = False
        return True

    @property
    def label(self) -> str:
        return f"{self.host.name}/{self.model}"

    @property
    def last_reply(self) -> str:
        """Assistant text of the latest round, empty if none arrived."""
        if self.history and self.history[-1].role == Role.ASSISTANT.value:
            return self.history[-1].content
        return ""

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at

    def to_messages(self) -> List[Dict[str, Any]]:
        return [m.model_dump() for m in self.history]

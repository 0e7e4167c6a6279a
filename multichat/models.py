"""Data models for multichat."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Configuration Models
# ============================================================================

class Host(BaseModel):
    """A configured Ollama backend and the models wanted on it."""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    models: List[str] = Field(default_factory=list)
    type: str = "ollama"

    @field_validator("url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")


class HostsFile(BaseModel):
    """Contents of the JSON hosts file."""
    hosts: List[Host] = Field(default_factory=list)
    debug: bool = False
    multimodel: bool = False
    unload_on_start: bool = True


# ============================================================================
# Ollama Wire Models
# ============================================================================

class ChatMessage(BaseModel):
    """Ollama chat message format."""
    role: str
    content: str = ""


class TerminalMetadata(BaseModel):
    """Timing and token counts reported on the final record of a stream.

    Durations are integer nanoseconds, as Ollama reports them.
    """
    model: str = ""
    done: bool = False
    total_duration: int = 0
    load_duration: int = 0
    prompt_eval_count: int = 0
    prompt_eval_duration: int = 0
    eval_count: int = 0
    eval_duration: int = 0

    @property
    def total_seconds(self) -> float:
        return self.total_duration / 1e9

    @property
    def tokens_per_second(self) -> float:
        if not self.eval_duration:
            return 0.0
        return self.eval_count / (self.eval_duration / 1e9)


class StreamRecord(BaseModel):
    """One newline-delimited record of an /api/chat stream."""
    model: str = ""
    message: Optional[ChatMessage] = None
    done: bool = False
    error: Optional[str] = None
    total_duration: int = 0
    load_duration: int = 0
    prompt_eval_count: int = 0
    prompt_eval_duration: int = 0
    eval_count: int = 0
    eval_duration: int = 0

    @property
    def text(self) -> str:
        return self.message.content if self.message else ""

    def metadata(self) -> TerminalMetadata:
        return TerminalMetadata(
            model=self.model,
            done=self.done,
            total_duration=self.total_duration,
            load_duration=self.load_duration,
            prompt_eval_count=self.prompt_eval_count,
            prompt_eval_duration=self.prompt_eval_duration,
            eval_count=self.eval_count,
            eval_duration=self.eval_duration,
        )


class ModelEntry(BaseModel):
    name: str


class ModelInfo(BaseModel):
    """Response of /api/show. parameters is the modelfile PARAMETER block as text."""
    license: str = ""
    modelfile: str = ""
    parameters: str = ""
    template: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)


class ModelListResponse(BaseModel):
    """Shape shared by /api/ps and /api/tags."""
    models: List[ModelEntry] = Field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [m.name for m in self.models]


# ============================================================================
# Internal State Models
# ============================================================================

class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class OrchestratorState(str, Enum):
    """Orchestrator view state."""
    IDLE = "idle"
    AWAITING_READY = "awaiting_ready"
    CHAT_ACTIVE = "chat_active"

"""Host to model assignments and the model selection policy."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .models import Host
from .ollama_client import OllamaClient

logger = logging.getLogger(__name__)

# Upper bound on concurrently chatting hosts
MAX_SESSIONS = 4


@dataclass
class Assignment:
    """The model chosen for one host."""
    host: Host
    model: Optional[str] = None
    assigned: bool = False


def order_selectable(models: Iterable[str], loaded: Iterable[str]) -> List[str]:
    """Loaded models first, keeping relative order inside each group."""
    loaded_set = set(loaded)
    models = list(models)
    return [m for m in models if m in loaded_set] + [m for m in models if m not in loaded_set]


class AssignmentRegistry:
    """
    Holds one Assignment per configured host.

    Assignments change only through select() and clear(); streaming
    activity never touches them.
    """

    def __init__(self, hosts: Iterable[Host], client: OllamaClient):
        self.assignments: List[Assignment] = [Assignment(host=h) for h in hosts]
        self.client = client
        # host index -> models reported loaded by the last list_selectable()
        self.loaded: Dict[int, List[str]] = {}

    def __len__(self) -> int:
        return len(self.assignments)

    def __getitem__(self, index: int) -> Assignment:
        return self.assignments[index]

    async def list_selectable(self, index: int, catalogue: bool = False) -> List[str]:
        """
        Candidate models for a host, loaded ones first.

        With catalogue=True the candidates come from the host's /api/tags
        instead of the configured list (single-host mode).
        """
        host = self.assignments[index].host
        loaded = await self.client.list_loaded(host)
        self.loaded[index] = loaded
        candidates = await self.client.list_tags(host) if catalogue else host.models
        logger.debug(f"{host.name}: {len(candidates)} candidates, loaded={loaded}")
        return order_selectable(candidates, loaded)

    def select(self, index: int, model: str) -> bool:
        """
        Assign a model to a host.

        Returns False, leaving the registry unchanged, when the host is
        unassigned and MAX_SESSIONS hosts already have a model.
        """
        assignment = self.assignments[index]
        if not assignment.assigned and self.assigned_count >= MAX_SESSIONS:
            logger.warning(f"Cannot assign {model} to {assignment.host.name}: {MAX_SESSIONS} hosts already assigned")
            return False
        assignment.model = model
        assignment.assigned = True
        logger.info(f"Assigned {model} to {assignment.host.name}")
        return True

    def clear(self, index: int) -> None:
        assignment = self.assignments[index]
        assignment.model = None
        assignment.assigned = False

    @property
    def assigned_count(self) -> int:
        return sum(1 for a in self.assignments if a.assigned)

    @property
    def has_assignment(self) -> bool:
        return any(a.assigned for a in self.assignments)

    def assigned(self) -> Iterator[Tuple[int, Assignment]]:
        """(index, assignment) pairs for assigned hosts, in host order."""
        for i, a in enumerate(self.assignments):
            if a.assigned:
                yield i, a

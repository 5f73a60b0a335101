"""Generation history: every provider request with the forest it produced."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from canvas.models import ComponentNode, Forest, clone_forest
from core import GenerationRequest, get_logger
from core.id import new_history_id

from .base import PersistentList
from .persistence import KeyValueStore
from .store import now_ms

logger = get_logger(__name__)

HISTORY_KEY = "ai-generation-history"


class GenerationHistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_history_id)
    timestamp: int = Field(default_factory=now_ms)
    request: GenerationRequest
    components: list[ComponentNode] = Field(default_factory=list)


class GenerationHistory(PersistentList[GenerationHistoryEntry]):
    """Most-recent-first log of generations."""

    store_name = "generation_history"

    def __init__(self, storage: KeyValueStore, key: str = HISTORY_KEY, *, max_entries: int | None = None) -> None:
        super().__init__(storage, key, max_items=max_entries)

    def decode_item(self, raw: Any) -> GenerationHistoryEntry:
        return GenerationHistoryEntry.model_validate(raw)

    def encode_item(self, item: GenerationHistoryEntry) -> Any:
        return item.model_dump(mode="json")

    def add(self, request: GenerationRequest, components: Forest) -> GenerationHistoryEntry:
        entry = GenerationHistoryEntry(request=request, components=clone_forest(components))
        self.prepend(entry)
        logger.info("generation_recorded", id=entry.id, nodes=len(components))
        return entry

    def entries(self) -> list[GenerationHistoryEntry]:
        return self.snapshot()

    def clear(self) -> None:
        self.set_items([])


__all__ = ["GenerationHistory", "GenerationHistoryEntry", "HISTORY_KEY"]

"""
Collaborator contracts consumed by the pipeline.

The pipeline only depends on these shapes, so tests can pass simple
fakes or AsyncMock objects in place of the database- and LLM-backed
repositories.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .base_enums import DegradeReason
from .pipeline import CatalogListing, EntityMatch, GenerationResult
from .requests import ConversationTurn


class TextGenerator(Protocol):
    async def generate(
        self,
        question: str,
        conversation_context: Sequence[ConversationTurn],
        repair_hint: Optional[str] = None,
    ) -> GenerationResult:
        ...


class QueryExecutor(Protocol):
    async def execute(self, sanitized_sql: str) -> List[Dict[str, Any]]:
        ...


class EntityLookup(Protocol):
    async def find_event(self, tokens: Sequence[str]) -> Optional[EntityMatch]:
        ...

    async def find_artist(self, tokens: Sequence[str]) -> Optional[EntityMatch]:
        ...


class Summarizer(Protocol):
    async def summarize(self, question: str, rows: Sequence[Dict[str, Any]]) -> str:
        ...

    def degraded_message(self, question: str, reason: Optional[DegradeReason]) -> str:
        ...


class Catalog(Protocol):
    def list(self) -> CatalogListing:
        ...

    def contains(self, name: str) -> bool:
        ...


class SchemaSummarySource(Protocol):
    async def get(self) -> str:
        ...

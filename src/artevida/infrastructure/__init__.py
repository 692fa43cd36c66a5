"""
Infrastructure layer for external integrations.

Clients for PostgreSQL (asyncpg) and the OpenRouter LLM API (LangChain).
"""

from .database_client import DatabaseClient
from .llm_client import LLMClient

__all__ = ["DatabaseClient", "LLMClient"]

"""
API request models for the ArteVida SQL agent.

These models define the structure for all incoming API requests,
ensuring type safety and validation at API boundaries.

All fields include descriptions that appear in Swagger/OpenAPI documentation.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


# Rejects markup and bracket characters: < > \ { } [ ]
QUESTION_PATTERN = r"^[^<>\\{}\[\]]+$"


class ConversationTurn(BaseModel):
    """One previous question/answer exchange supplied by the caller."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(..., description="Question asked in that turn", min_length=1)
    sql: Optional[str] = Field(
        default=None,
        description="SQL that answered the question, if any. "
                    "Only the most recent turn's SQL is reused for follow-up questions."
    )
    summary: str = Field(default="", description="Natural-language answer given in that turn")


class AskRequest(BaseModel):
    """Request model for asking a question about the ArteVida events database."""

    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(
        ...,
        description="Question in Spanish or English. "
                    "Example: '¿Qué conciertos hay en Madrid?'",
        min_length=1,
        max_length=500,
        pattern=QUESTION_PATTERN,
        json_schema_extra={"example": "¿Cuánto cuesta la entrada del concierto de Rosalía?"}
    )
    conversation_context: List[ConversationTurn] = Field(
        default_factory=list,
        alias="conversationContext",
        description="Up to 4 previous turns, oldest first.",
        max_length=4
    )


class ValidateSqlRequest(BaseModel):
    """Request model for checking a hand-written statement against the safety rules."""

    sql: str = Field(
        ...,
        description="SQL statement to validate. Nothing is executed.",
        json_schema_extra={"example": "SELECT * FROM vw_eventos_proximos"}
    )
    raise_on_invalid: bool = Field(
        default=False,
        description="If true, a rejected statement is answered with an error response "
                    "instead of a result with valid=false."
    )

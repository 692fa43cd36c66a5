"""
Text helpers shared by the question-handling components.

Covers question normalization and tokenization (Spanish and English),
SQL literal escaping for heuristic templates, row sampling for the
summarizer, and character-limit checks for LLM input.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence


# Letters (accents and ñ included) and digits
_TOKEN_PATTERN = re.compile(r"[a-z0-9áéíóúüñ]+")

# Punctuation stripped before matching greetings
_SMALL_TALK_PUNCTUATION = re.compile(r"[¡!¿?.,;:]")


def normalize_question(text: str) -> str:
    """
    Lower-case a question, drop opening/closing punctuation and collapse spaces.

    Example:
        >>> normalize_question("¡Hola!  ¿Qué tal?")
        'hola qué tal'
    """
    text = _SMALL_TALK_PUNCTUATION.sub(" ", text.lower())
    return " ".join(text.split())


def tokenize(text: str, min_length: int = 1, stopwords: Iterable[str] = ()) -> List[str]:
    """
    Split text into lower-case word tokens.

    Args:
        text: Text to split
        min_length: Tokens shorter than this are dropped
        stopwords: Tokens to drop

    Example:
        >>> tokenize("Precio del Festival 'Jazz & Blues' 2024", min_length=3)
        ['precio', 'del', 'festival', 'jazz', 'blues', '2024']
    """
    excluded = set(stopwords)
    return [
        token for token in _TOKEN_PATTERN.findall(text.lower())
        if len(token) >= min_length and token not in excluded
    ]


def escape_sql_literal(value: str) -> str:
    """Lower-case a value and double its single quotes for a LIKE pattern."""
    return value.lower().replace("'", "''")


def truncate_value(value: Any, max_length: int) -> Any:
    """
    Truncate string values longer than max_length; other types pass through.

    Example:
        >>> truncate_value("a" * 150, max_length=10)
        'aaaaaaa...'
    """
    if not isinstance(value, str) or len(value) <= max_length:
        return value
    return value[:max(max_length - 3, 0)] + "..."


def sample_rows(
    rows: Sequence[Dict[str, Any]],
    max_rows: int,
    max_value_length: int = 200,
) -> List[Dict[str, Any]]:
    """
    Keep the first max_rows rows, truncating long text cells.

    Used to bound the data sent to the summarizer.
    """
    return [
        {key: truncate_value(value, max_value_length) for key, value in row.items()}
        for row in rows[:max_rows]
    ]


class InputValidator:
    """
    Input validation utility for checking character limits.

    Uses simple character count checks against hard limits.
    """

    @staticmethod
    def validate_total_chars(
        prompt: str,
        system_prompt: Optional[str] = None,
        max_chars: int = 0
    ) -> None:
        """
        Validate total character count for an LLM request.

        Raises:
            ValueError: If total exceeds character limit
        """
        total_chars = len(prompt)
        if system_prompt:
            total_chars += len(system_prompt)

        if total_chars > max_chars:
            raise ValueError(
                f"Total input too large: {total_chars} characters, "
                f"maximum allowed: {max_chars}"
            )

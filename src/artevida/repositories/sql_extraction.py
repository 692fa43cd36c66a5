"""
Extraction of a candidate SQL statement from LLM output.

LLM replies mix prose, markdown fences and notes around the query.
extract_sql applies an ordered list of rules and returns the first hit;
the result is still untrusted and always goes through the validator.

Rules (first match wins):
1. The first ```sql fenced block
2. The first fenced block of any language that contains SELECT
3. Text starting with WITH, or text from the first SELECT onward, cut at
   the first paragraph break or trailing note found after the 20th character
4. The trimmed text as-is
"""

import re
from typing import Callable, List, Optional, Tuple

_SQL_FENCE = re.compile(r"```sql\s*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_FENCE = re.compile(r"```[\w-]*\s*\n?(.*?)```", re.DOTALL)
_SELECT_KEYWORD = re.compile(r"\bselect\b", re.IGNORECASE)
_WITH_START = re.compile(r"^with\b", re.IGNORECASE)

# Markers that end the SQL part of a reply
STOP_TOKENS = ("\n\n", "\nNote:", "\nNOTE:", "\nNota:", "\nNOTA:", "\nSi ", "\nEn caso", "\n--")

# Stop markers closer than this to the start of the SQL are ignored
MIN_SQL_LENGTH = 20


def _sql_fence(text: str) -> Optional[str]:
    match = _SQL_FENCE.search(text)
    return match.group(1).strip() if match else None


def _fence_with_select(text: str) -> Optional[str]:
    for match in _ANY_FENCE.finditer(text):
        block = match.group(1).strip()
        if _SELECT_KEYWORD.search(block):
            return block
    return None


def _leading_query(text: str) -> Optional[str]:
    if _WITH_START.match(text):
        return _cut_at_stop_token(text)

    match = _SELECT_KEYWORD.search(text)
    if not match:
        return None
    return _cut_at_stop_token(text[match.start():])


def _cut_at_stop_token(sql: str) -> str:
    cut = len(sql)
    for token in STOP_TOKENS:
        index = sql.find(token)
        if MIN_SQL_LENGTH < index < cut:
            cut = index
    return sql[:cut].strip()


EXTRACTION_RULES: List[Tuple[str, Callable[[str], Optional[str]]]] = [
    ("sql_fence", _sql_fence),
    ("fence_with_select", _fence_with_select),
    ("leading_query", _leading_query),
]


def extract_sql(text: Optional[str]) -> str:
    """
    Pull the SQL statement out of a mixed prose/SQL reply.

    Example:
        >>> extract_sql("Aquí tienes:\\n```sql\\nSELECT * FROM Evento\\n```")
        'SELECT * FROM Evento'
        >>> extract_sql("SELECT nombre FROM Artista\\n\\nEsta consulta lista artistas.")
        'SELECT nombre FROM Artista'
    """
    if not text or not text.strip():
        return ""

    stripped = text.strip()
    for _, rule in EXTRACTION_RULES:
        candidate = rule(stripped)
        if candidate:
            return candidate

    return stripped

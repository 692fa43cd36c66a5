"""
Intent classification: small talk versus data questions.

A cheap keyword classifier run before anything else, so greetings never
reach the heuristics, the LLM or the database.
"""

import re

from artevida.domain.base_enums import Intent
from artevida.utils.text_utils import normalize_question

# Greetings and small-talk openers (Spanish and English)
SMALL_TALK_PATTERN = re.compile(
    r"^(hola|buenas|buenos d[ií]as|buenas tardes|buenas noches|hello|hi|hey|"
    r"qu[eé] tal|c[oó]mo est[aá]s|gracias|muchas gracias|thanks|thank you|adi[oó]s|bye)\b"
)

# Single words of the greetings above, for callers that filter tokens
GREETING_WORDS = {
    "hola", "buenas", "buenos", "días", "dias", "tardes", "noches", "hello", "hi",
    "hey", "tal", "cómo", "como", "estás", "gracias", "muchas", "thanks", "thank",
    "you", "adiós", "adios", "bye",
}

# Words that turn a greeting into a data request
DOMAIN_KEYWORD_PATTERN = re.compile(
    r"(evento|artista|venta|conciert|teatr|exposic|valorac|dato|precio|ciudad|fecha|"
    r"lugar|entrada|ubicaci|aforo|actividad|conferenc|"
    r"event|artist|sale|concert|theat|exhibit|rating|price|city|venue|ticket|"
    r"muestra|mu[eé]strame|dame|dime|lista|busca|cu[aá]nt|"
    r"\bshow\b|\blist\b|\bfind\b|\bhow many\b)"
)

# Small talk is short; longer text is treated as a question
MAX_SMALL_TALK_WORDS = 6


def classify_intent(question: str) -> Intent:
    """
    Classify a question as small talk or a data request.

    Example:
        >>> classify_intent("¡Hola!")
        <Intent.CONVERSATIONAL: 'conversational'>
        >>> classify_intent("hola, muéstrame conciertos en Madrid")
        <Intent.DATA: 'data'>
    """
    text = normalize_question(question)
    if not text:
        return Intent.CONVERSATIONAL

    if DOMAIN_KEYWORD_PATTERN.search(text):
        return Intent.DATA

    if SMALL_TALK_PATTERN.match(text) and len(text.split()) <= MAX_SMALL_TALK_WORDS:
        return Intent.CONVERSATIONAL

    return Intent.DATA

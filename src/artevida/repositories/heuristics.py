"""
Heuristic Resolver.

Builds SQL for common question shapes without calling the LLM.
Steps, in priority order:

1. Follow-up: "¿y el precio?" after a previous answer reuses that
   answer's FROM/WHERE tail with a new SELECT list.
2. Entity resolution: "precio del Festival de Jazz", "conciertos de
   Rosalía" resolve the named event or artist with a live lookup.
3. Templates: category, city, year and "sin <artista>" filters over a
   fixed join pattern.

Each step returns None when it doesn't apply; None from resolve() means
the question goes to the SQL generator. The SQL built here is not
trusted either: it goes through the validator like any other statement.
"""

import re
from typing import List, Optional, Sequence, Set, Tuple

from artevida.domain.base_enums import ActivityType, AttributeIntent
from artevida.domain.pipeline import HeuristicResult
from artevida.domain.protocols import EntityLookup
from artevida.domain.requests import ConversationTurn
from artevida.repositories.intent import GREETING_WORDS
from artevida.utils.logging import get_module_logger
from artevida.utils.text_utils import escape_sql_literal, tokenize

logger = get_module_logger()


# =============================================================================
# Vocabulary
# =============================================================================

STOPWORDS = {
    # Spanish
    "dime", "me", "el", "la", "los", "las", "de", "del", "para", "por", "y", "en",
    "un", "una", "unos", "unas", "que", "qué", "cual", "cuál", "cuales", "cuáles",
    "cuanto", "cuánto", "tiene", "tienen", "hay", "informacion", "información",
    "sobre", "aparte", "excepto", "menos", "sin", "no", "parte", "general", "al",
    "con", "se", "es", "son", "su", "sus", "lo", "le", "les", "mi",
    "favor", "quiero", "saber", "podrías", "puedes", "ver", "todo", "todos", "todas",
    # English
    "the", "of", "for", "in", "on", "at", "and", "or", "to", "me", "what", "which",
    "are", "there", "is", "with", "from", "about", "please", "give", "all", "any",
    "some", "how", "does", "do", "by", "an", "a", "tell",
}

GENERIC_WORDS = {
    "evento", "eventos", "event", "events", "actividad", "actividades", "activity",
    "muestra", "muéstrame", "muestrame", "dame", "lista", "listado", "listar",
    "busca", "buscar", "show", "list", "find", "entrada", "entradas", "ticket",
    "tickets", "precio", "precios", "price", "prices", "cuesta", "cuestan", "vale",
    "valen", "cost", "costs", "much", "programados", "disponibles", "celebran",
    "celebra", "hacen", "hace",
}

REFERENTIAL_WORDS = {
    "ese", "esa", "esos", "esas", "este", "esta", "estos", "estas", "eso", "esto",
    "ello", "ellos", "ellas", "mismo", "misma", "mismos", "mismas", "anterior",
    "anteriores", "those", "these", "them", "they", "that", "this", "its", "same",
    "previous", "above",
}

ATTRIBUTE_WORDS = {
    "fecha", "fechas", "cuándo", "cuando", "lugar", "lugares", "dónde", "donde",
    "sitio", "ciudad", "ciudades", "descripción", "descripcion", "trata", "tratan",
    "date", "dates", "when", "where", "venue", "venues", "city", "cities",
    "description", "será", "serán", "sitios",
}

QUESTION_WORDS = {
    "dónde", "donde", "cuándo", "cuando", "cómo", "como", "quién", "quien",
    "quiénes", "quienes", "where", "when", "who", "why", "whose",
}

PRICE_PATTERN = re.compile(r"\b(precios?|prices?)\b")

DESCRIPTION_PATTERN = re.compile(
    r"(de qu[eé] va|de qu[eé] trata|descripci[oó]n|informaci[oó]n del evento|"
    r"\bdescription\b|what is it about|what'?s it about)"
)

ATTRIBUTE_PATTERNS: Tuple[Tuple[AttributeIntent, "re.Pattern[str]"], ...] = (
    (AttributeIntent.PRICE, re.compile(
        r"(\bprecios?\b|cu[aá]nto (vale|valen|cuesta|cuestan)|\bprices?\b|\bcosts?\b|how much)")),
    (AttributeIntent.DATE, re.compile(
        r"(\bfechas?\b|cu[aá]ndo (es|son|ser[aá]n?|se celebran?)|\bdates?\b|\bwhen\b)")),
    (AttributeIntent.PLACE, re.compile(
        r"(\blugar(es)?\b|d[oó]nde (es|son)\b|en qu[eé] sitio|\bwhere\b|\bvenues?\b)")),
    (AttributeIntent.CITY, re.compile(
        r"(\bciudad(es)?\b|d[oó]nde se celebran?|en qu[eé] ciudad|\bcity\b|\bcities\b)")),
)

# SELECT lists for follow-ups over the enriched view and over base tables
VIEW_FOLLOW_UP_COLUMNS = {
    AttributeIntent.PRICE: "evento_nombre, precio_entrada",
    AttributeIntent.DATE: "evento_nombre, fecha_hora",
    AttributeIntent.PLACE: "evento_nombre, ubicacion_nombre AS lugar, ciudad",
    AttributeIntent.CITY: "evento_nombre, ciudad",
    AttributeIntent.DESCRIPTION: "evento_nombre, evento_descripcion, fecha_hora, ciudad",
}

BASE_FOLLOW_UP_COLUMNS = {
    AttributeIntent.PRICE: "e.nombre AS evento, e.precio_entrada",
    AttributeIntent.DATE: "e.nombre AS evento, e.fecha_hora",
    AttributeIntent.PLACE: "e.nombre AS evento, u.nombre AS lugar, u.ciudad",
    AttributeIntent.CITY: "e.nombre AS evento, u.ciudad",
    AttributeIntent.DESCRIPTION: "e.nombre AS evento, e.descripcion, e.fecha_hora, u.ciudad",
}

ATTRIBUTE_LABELS = {
    AttributeIntent.PRICE: "el precio",
    AttributeIntent.DATE: "la fecha",
    AttributeIntent.PLACE: "el lugar",
    AttributeIntent.CITY: "la ciudad",
    AttributeIntent.DESCRIPTION: "la descripción",
}

ARTIST_EVENTS_PATTERN = re.compile(
    r"\b(eventos?|conciertos?|act[uú]an?|tiene m[aá]s eventos?|events?|concerts?|plays|performs?)\b"
)
CONCERT_PATTERN = re.compile(r"(\bconciert|\bconcert)")
TRAILING_CITY_PATTERN = re.compile(r"\s+(?:en|in)\s+([a-záéíóúüñ\s]{3,})$")
QUOTED_PATTERN = re.compile(r"[\"“«']([^\"”»']+)[\"”»']")

# Aggregation, ranking and analytics questions are left to the generator
TEMPLATE_BAIL_PATTERN = re.compile(
    r"(\bartistas?\b|\bartists?\b|\btop\b|cu[aá]nt|\bcount\b|\bcantidad\b|how many|"
    r"\branking\b|\bpromedio\b|\bmedia\b|\baverage\b|\bmejor(es)?\b|\bpeor(es)?\b|"
    r"\bbest\b|\bworst\b|\bmost\b|\bm[aá]s\b|\btotal(es)?\b|informaci[oó]n general|"
    r"pr[oó]xim|upcoming|\bfutur|vend|\bventas?\b|factur|valorac|\bnotas?\b|ocupaci|"
    r"\bsales\b|revenue|rating|\bcostes?\b|cach[eé]|ubicaci|recinto|aforo|capacit|"
    r"estad[ií]stic|statistic)"
)

CATEGORY_PATTERNS: Tuple[Tuple[ActivityType, "re.Pattern[str]"], ...] = (
    (ActivityType.CONCERT, re.compile(r"(\bconciert|\bconcert)")),
    (ActivityType.THEATRE, re.compile(r"(\bteatr|\btheat)")),
    (ActivityType.EXHIBITION, re.compile(r"(\bexposic|\bexhibit)")),
    (ActivityType.LECTURE, re.compile(r"(\bconferenc|\blectures?\b|\btalks?\b)")),
)
CATEGORY_TOKEN_PATTERN = re.compile(r"^(conciert|concert|teatr|theat|exposic|exhibit|conferenc|lecture|talk)")

EXCLUSION_PATTERN = re.compile(
    r"(?:\baparte de|\bexcepto|\bmenos|\bsin|\bque no|\bexcept|\bother than|\bwithout|\bbut not)"
    r"\s+([a-záéíóúüñ\s]+?)(?:[,.!?]|$)"
)
EXCLUSION_FILLERS = {
    "el", "la", "los", "las", "a", "al", "de", "del", "the", "que", "sea", "sean",
    "salga", "salgan", "participe", "participen", "actúe", "actúen", "actue", "actuen",
    "con", "by", "of", "featuring", "incluir", "contar",
}

# Free-text filters need one of these words; "¿qué puedes hacer?" is not an events query
EVENT_ANCHOR_PATTERN = re.compile(
    r"\b(eventos?|events?|actividad(es)?|activit(y|ies)|entradas?|tickets?|precios?|prices?|"
    r"espect[aá]culos?|funci[oó]n|funciones|festival(es)?)\b"
)

DESCRIPTION_TOKEN_PATTERN = re.compile(r"^(descrip|inform)")

YEAR_PATTERN = re.compile(r"\b(19\d{2}|20\d{2})\b")

PREVIOUS_SQL_FROM = re.compile(r"\sfrom\s", re.IGNORECASE)
VIEW_TAIL_PATTERN = re.compile(r"^from\s+vw_eventos_enriquecidos\b", re.IGNORECASE)
BASE_EVENT_ALIAS_PATTERN = re.compile(r"\bevento\s+(?:as\s+)?e\b", re.IGNORECASE)
BASE_VENUE_ALIAS_PATTERN = re.compile(r"\bubicacion\s+(?:as\s+)?u\b", re.IGNORECASE)

TEMPLATE_ROW_LIMIT = 200


class HeuristicResolver:
    """
    Deterministic SQL builder for follow-ups, named entities and simple filters.

    Args:
        lookup: Live event/artist name resolution
        min_event_token_length: Shortest token used to match event names
        min_artist_token_length: Shortest token used to match artist names
        min_filter_token_length: Shortest token used in template filters
    """

    def __init__(
        self,
        lookup: EntityLookup,
        min_event_token_length: int = 2,
        min_artist_token_length: int = 3,
        min_filter_token_length: int = 3,
    ):
        self.lookup = lookup
        self.min_event_token_length = min_event_token_length
        self.min_artist_token_length = min_artist_token_length
        self.min_filter_token_length = min_filter_token_length

    async def resolve(
        self,
        question: str,
        conversation_context: Sequence[ConversationTurn] = (),
    ) -> Optional[HeuristicResult]:
        """Return heuristic SQL for the question, or None to defer to the generator."""
        text = " ".join(question.strip().split())
        lowered = text.lower()

        last_turn = conversation_context[-1] if conversation_context else None
        if last_turn is not None and last_turn.sql:
            result = self.follow_up(lowered, last_turn.sql)
            if result is not None:
                logger.info("Heuristic follow-up matched")
                return result

        if PRICE_PATTERN.search(lowered):
            result = await self._event_price(text)
            if result is not None:
                logger.info("Heuristic event price matched")
                return result

        if ARTIST_EVENTS_PATTERN.search(lowered):
            result = await self._artist_events(text)
            if result is not None:
                logger.info("Heuristic artist events matched")
                return result

        result = self.template(lowered)
        if result is not None:
            logger.info("Heuristic template matched")
        return result

    # ------------------------------------------------------------------
    # Step 1: follow-up questions
    # ------------------------------------------------------------------

    def follow_up(self, question: str, previous_sql: str) -> Optional[HeuristicResult]:
        """
        Reuse the previous query's FROM ... tail with a new SELECT list.

        Only applies when the question asks for an attribute or a
        description and names nothing new; "¿y el precio de Rosalía?"
        is a new question, not a follow-up.
        """
        question = question.lower()
        attribute = detect_attribute(question)
        if attribute is None or self._introduces_new_term(question):
            return None

        from_match = PREVIOUS_SQL_FROM.search(previous_sql)
        if from_match is None:
            return None
        tail = previous_sql[from_match.start() + 1:]

        if VIEW_TAIL_PATTERN.match(tail):
            columns = VIEW_FOLLOW_UP_COLUMNS[attribute]
        elif BASE_EVENT_ALIAS_PATTERN.search(tail):
            needs_venue = attribute in (AttributeIntent.PLACE, AttributeIntent.CITY, AttributeIntent.DESCRIPTION)
            if needs_venue and not BASE_VENUE_ALIAS_PATTERN.search(tail):
                return None
            columns = BASE_FOLLOW_UP_COLUMNS[attribute]
        else:
            return None

        return HeuristicResult(
            sql=f"SELECT {columns}\n{tail}",
            explanation=f"Reutilizo los filtros de la consulta anterior y muestro {ATTRIBUTE_LABELS[attribute]}.",
        )

    def _introduces_new_term(self, question: str) -> bool:
        if QUOTED_PATTERN.search(question):
            return True
        for token in tokenize(question, min_length=self.min_filter_token_length, stopwords=ignored_words()):
            if CATEGORY_TOKEN_PATTERN.match(token) or DESCRIPTION_TOKEN_PATTERN.match(token):
                continue
            return True
        return False

    # ------------------------------------------------------------------
    # Step 2: entity resolution
    # ------------------------------------------------------------------

    async def _event_price(self, question: str) -> Optional[HeuristicResult]:
        phrase = extract_event_phrase(question)
        tokens = tokenize(
            phrase,
            min_length=self.min_event_token_length,
            stopwords=STOPWORDS | {"precio", "precios", "price", "prices", "entrada", "entradas", "evento", "event"},
        )
        if not tokens:
            return None

        match = await self.lookup.find_event(tokens)
        if match is None:
            return None

        sql = (
            "SELECT e.nombre AS evento, e.precio_entrada\n"
            "FROM Evento e\n"
            f"WHERE e.id = {int(match.id)}\n"
            "LIMIT 1"
        )
        return HeuristicResult(
            sql=sql,
            explanation=f"Precio de la entrada del evento «{match.canonical_name}».",
        )

    async def _artist_events(self, question: str) -> Optional[HeuristicResult]:
        lowered = question.lower().strip(" ?!.¿¡")
        candidate, city = extract_artist_phrase(lowered)
        if candidate is None:
            return None

        tokens = tokenize(candidate, min_length=self.min_artist_token_length, stopwords=STOPWORDS)
        if not tokens:
            return None

        match = await self.lookup.find_artist(tokens)
        if match is None:
            return None

        conditions = [f"LOWER(ar.nombre) LIKE '%{escape_sql_literal(match.canonical_name)}%'"]
        if CONCERT_PATTERN.search(lowered):
            conditions.append(f"a.tipo = '{ActivityType.CONCERT.value}'")
        if city:
            conditions.append(f"LOWER(u.ciudad) LIKE '%{escape_sql_literal(city)}%'")

        sql = (
            "SELECT e.nombre AS evento, e.fecha_hora, u.ciudad, u.nombre AS lugar, "
            "e.precio_entrada, ar.nombre AS artista\n"
            "FROM Evento e\n"
            "JOIN Actividad a ON e.actividad_id = a.id\n"
            "JOIN Ubicacion u ON e.ubicacion_id = u.id\n"
            "JOIN Actividad_Artista aa ON a.id = aa.actividad_id\n"
            "JOIN Artista ar ON aa.artista_id = ar.id\n"
            f"WHERE {' AND '.join(conditions)}\n"
            f"ORDER BY e.fecha_hora DESC LIMIT {TEMPLATE_ROW_LIMIT}"
        )
        where = f" en {city}" if city else ""
        return HeuristicResult(
            sql=sql,
            explanation=f"Eventos en los que participa {match.canonical_name}{where}.",
        )

    # ------------------------------------------------------------------
    # Step 3: templates
    # ------------------------------------------------------------------

    def template(self, question: str) -> Optional[HeuristicResult]:
        """Category / city / year / exclusion filters over the events join."""
        question = question.lower().strip(" ?!.¿¡")
        if TEMPLATE_BAIL_PATTERN.search(question):
            return None

        category = detect_category(question)
        exclusion, remaining = extract_exclusion(question)
        years = sorted(set(YEAR_PATTERN.findall(remaining)))

        tokens = [
            token for token in tokenize(remaining, min_length=self.min_filter_token_length, stopwords=ignored_words())
            if not CATEGORY_TOKEN_PATTERN.match(token) and token not in years
        ]
        wants_price = PRICE_PATTERN.search(question) is not None

        if not tokens and category is None and not years and exclusion is None:
            return None
        if category is None and exclusion is None and not EVENT_ANCHOR_PATTERN.search(question):
            return None

        if exclusion is not None:
            sql = self._base_table_sql(tokens, category, years, exclusion, wants_price)
            explanation = f"Eventos filtrados excluyendo a «{exclusion}»."
        else:
            sql = self._view_sql(tokens, category, years, wants_price)
            explanation = "Eventos filtrados por " + ", ".join(
                self._describe_filters(tokens, category, years)
            ) + "."

        return HeuristicResult(sql=sql, explanation=explanation)

    @staticmethod
    def _describe_filters(tokens: List[str], category: Optional[ActivityType], years: List[str]) -> List[str]:
        parts: List[str] = []
        if category is not None:
            parts.append(f"tipo {category.value}")
        if tokens:
            parts.append("«" + " ".join(tokens) + "»")
        if years:
            parts.append("año " + ", ".join(years))
        return parts

    @staticmethod
    def _view_sql(
        tokens: List[str],
        category: Optional[ActivityType],
        years: List[str],
        wants_price: bool,
    ) -> str:
        conditions: List[str] = []
        for token in tokens:
            pattern = escape_sql_literal(token)
            conditions.append(
                f"(LOWER(actividad_nombre) LIKE '%{pattern}%' OR LOWER(evento_nombre) LIKE '%{pattern}%' "
                f"OR LOWER(subtipo) LIKE '%{pattern}%' OR LOWER(ciudad) LIKE '%{pattern}%')"
            )
        if category is not None:
            conditions.append(f"tipo = '{category.value}'")
        if years:
            conditions.append(f"EXTRACT(YEAR FROM fecha_hora) IN ({', '.join(years)})")

        columns = "evento_nombre, precio_entrada, fecha_hora, ciudad" if wants_price else "*"
        return (
            f"SELECT {columns}\n"
            "FROM vw_eventos_enriquecidos\n"
            f"WHERE {' AND '.join(conditions)}\n"
            f"ORDER BY fecha_hora DESC LIMIT {TEMPLATE_ROW_LIMIT}"
        )

    @staticmethod
    def _base_table_sql(
        tokens: List[str],
        category: Optional[ActivityType],
        years: List[str],
        exclusion: str,
        wants_price: bool,
    ) -> str:
        conditions: List[str] = []
        for token in tokens:
            pattern = escape_sql_literal(token)
            conditions.append(
                f"(LOWER(u.ciudad) LIKE '%{pattern}%' OR LOWER(a.nombre) LIKE '%{pattern}%' "
                f"OR LOWER(e.nombre) LIKE '%{pattern}%' OR LOWER(a.subtipo) LIKE '%{pattern}%')"
            )
        if category is not None:
            conditions.append(f"a.tipo = '{category.value}'")
        if years:
            conditions.append(f"EXTRACT(YEAR FROM e.fecha_hora) IN ({', '.join(years)})")
        conditions.append(
            "NOT EXISTS (SELECT 1 FROM Actividad_Artista aa JOIN Artista ar ON ar.id = aa.artista_id "
            f"WHERE aa.actividad_id = a.id AND LOWER(ar.nombre) LIKE '%{escape_sql_literal(exclusion)}%')"
        )

        if wants_price:
            columns = "e.nombre AS evento, e.precio_entrada, e.fecha_hora, u.ciudad"
        else:
            columns = "e.nombre AS evento, a.nombre AS actividad, a.tipo, e.fecha_hora, u.nombre AS lugar, u.ciudad, e.precio_entrada"
        return (
            f"SELECT {columns}\n"
            "FROM Evento e\n"
            "JOIN Actividad a ON e.actividad_id = a.id\n"
            "JOIN Ubicacion u ON e.ubicacion_id = u.id\n"
            f"WHERE {' AND '.join(conditions)}\n"
            f"ORDER BY e.fecha_hora DESC LIMIT {TEMPLATE_ROW_LIMIT}"
        )


# =============================================================================
# Phrase helpers
# =============================================================================

def detect_attribute(question: str) -> Optional[AttributeIntent]:
    """Attribute or description a question asks for, if any."""
    question = question.lower()
    if DESCRIPTION_PATTERN.search(question):
        return AttributeIntent.DESCRIPTION
    for attribute, pattern in ATTRIBUTE_PATTERNS:
        if pattern.search(question):
            return attribute
    return None


def detect_category(question: str) -> Optional[ActivityType]:
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(question):
            return category
    return None


def extract_event_phrase(question: str) -> str:
    """
    Part of a price question that names the event.

    Quoted text wins, then the text after "evento", then the text after
    the first "de"/"del"/"of", then the whole question.
    """
    quoted = QUOTED_PATTERN.search(question)
    if quoted:
        return quoted.group(1).strip()

    lowered = question.lower()
    for pattern in (r"\bevento\s+(.+)", r"\bevent\s+(.+)", r"\b(?:del|de|of)\s+([^?]+)"):
        match = re.search(pattern, lowered)
        if match:
            phrase = match.group(1)
            break
    else:
        phrase = lowered

    phrase = re.sub(r"\b(qu[eé]|what)\s+(precio|price).*$", "", phrase)
    return phrase.strip(" ?!.¿¡")


def extract_artist_phrase(question: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Artist name candidate and optional trailing city of an events question.

    Returns (None, None) when the question has neither a quoted name nor a
    "de"/"del"/"by" connector to take the name from.
    """
    city_match = TRAILING_CITY_PATTERN.search(question)
    city = city_match.group(1).strip() if city_match else None
    head = question[:city_match.start()] if city_match else question

    quoted = QUOTED_PATTERN.search(head)
    if quoted:
        return quoted.group(1).strip(), city

    connector = re.search(r"\b(?:de|del|by)\s+(.+)$", head)
    if connector is None:
        return None, city
    return connector.group(1).strip(), city


def extract_exclusion(question: str) -> Tuple[Optional[str], str]:
    """
    Split "conciertos en Madrid sin Rosalía" into ("rosalía", "conciertos en madrid").

    Leading filler words ("sin que salga Rosalía") are dropped from the
    excluded name. Returns (None, question) when nothing is excluded.
    """
    match = EXCLUSION_PATTERN.search(question)
    if match is None:
        return None, question

    words = match.group(1).split()
    while words and words[0] in EXCLUSION_FILLERS:
        words.pop(0)
    if not words:
        return None, question

    remaining = (question[:match.start()] + " " + question[match.end():]).strip()
    return " ".join(words), remaining


def ignored_words() -> Set[str]:
    """Every word the heuristics treat as carrying no filter value."""
    return STOPWORDS | GENERIC_WORDS | REFERENTIAL_WORDS | ATTRIBUTE_WORDS | QUESTION_WORDS | GREETING_WORDS

"""
Keyword SQL Fallback.

Offline SQL source used when no LLM is configured or the LLM call fails.
An ordered table of keyword rules maps common ArteVida questions to
canned PostgreSQL queries; the first matching rule wins and anything
unmatched gets the latest enriched events.

Output is treated like LLM output: it goes through extract_sql and the
validator before execution.
"""

import re
from typing import List, NamedTuple, Optional

from artevida.domain.base_enums import SqlOrigin
from artevida.domain.pipeline import GenerationResult
from artevida.utils.logging import get_module_logger

logger = get_module_logger()

_TOP_N = re.compile(r"top\s+(\d{1,2})")

# Bounds for "top N" requests
MAX_TOP_N = 50


class FallbackRule(NamedTuple):
    name: str
    pattern: "re.Pattern[str]"
    sql: str
    explanation: str
    default_top: Optional[int] = None


def _rule(name: str, pattern: str, sql: str, explanation: str, default_top: Optional[int] = None) -> FallbackRule:
    return FallbackRule(name, re.compile(pattern), sql.strip(), explanation, default_top)


FALLBACK_RULES: List[FallbackRule] = [
    _rule(
        "activity_fee_costs",
        r"(coste|costo|gasto)s?\s+(de\s+)?cach(e|é)s|caches?\s+por\s+actividad",
        "SELECT * FROM vw_coste_actividad ORDER BY coste_total_caches DESC, actividad_nombre ASC LIMIT 200",
        "Coste de cachés por actividad",
    ),
    _rule(
        "most_zero_ratings",
        r"m[aá]s\s+ceros?|nota\s+0|peor(es)?\s+valoraciones?\s+por\s+evento|ceros\s+en\s+valoraciones",
        """
SELECT e.id, e.nombre, COUNT(*) AS ceros
FROM Valoracion v
JOIN Evento e ON e.id = v.evento_id
WHERE v.nota = 0
GROUP BY e.id, e.nombre
ORDER BY ceros DESC, e.id
LIMIT 1
""",
        "Evento con más ceros en valoraciones",
    ),
    _rule(
        "theatre_only_cities",
        r"ciudades?\s+con\s+solo\s+teatro|solo\s+teatro\s+por\s+ciudad",
        """
SELECT u.ciudad
FROM Evento e
JOIN Actividad a ON a.id = e.actividad_id
JOIN Ubicacion u ON u.id = e.ubicacion_id
GROUP BY u.ciudad
HAVING BOOL_AND(a.tipo = 'teatro')
ORDER BY u.ciudad
LIMIT 200
""",
        "Ciudades con solo teatro",
    ),
    _rule(
        "upcoming_occupancy",
        r"(porcentaje|ocupaci[oó]n).*(pr[oó]xim|siguiente|futuro|venider)"
        r"|(pr[oó]xim|siguiente|futuro|venider).*(porcentaje|ocupaci[oó]n)",
        """
SELECT evento_id, evento_nombre, fecha_hora, ciudad, aforo, entradas_vendidas, porcentaje_ocupacion
FROM vw_eventos_proximos
ORDER BY fecha_hora ASC
LIMIT 200
""",
        "Porcentaje de ocupación de los próximos eventos",
    ),
    _rule(
        "upcoming_events",
        r"(eventos?|conciertos?).*(pr[oó]xim|siguiente|futuro|venider)"
        r"|(pr[oó]xim|siguiente|futuro|venider).*(eventos?|conciertos?)",
        "SELECT * FROM vw_eventos_proximos ORDER BY fecha_hora ASC LIMIT 200",
        "Eventos próximos",
    ),
    _rule(
        "estimated_margin",
        r"margen\s+estimado|beneficio\s+estimado|ingresos?\s*-\s*(alquiler|costes?|cach(e|é)s)",
        """
SELECT
  e.id AS evento_id,
  e.nombre AS evento_nombre,
  u.ciudad,
  COALESCE(ing.facturacion, 0) AS ingresos,
  COALESCE(u.precio_alquiler, 0) AS alquiler,
  COALESCE(c.coste_total_caches, 0) AS caches,
  COALESCE(ing.facturacion, 0) - (COALESCE(u.precio_alquiler, 0) + COALESCE(c.coste_total_caches, 0)) AS margen_estimado
FROM Evento e
JOIN Ubicacion u ON u.id = e.ubicacion_id
JOIN Actividad a ON a.id = e.actividad_id
LEFT JOIN (
  SELECT evento_id, SUM(precio_pagado) AS facturacion
  FROM Entrada
  GROUP BY evento_id
) ing ON ing.evento_id = e.id
LEFT JOIN vw_coste_actividad c ON c.actividad_id = a.id
ORDER BY margen_estimado DESC
LIMIT 200
""",
        "Margen estimado por evento",
    ),
    _rule(
        "top_artists_by_revenue",
        r"artistas?.*(top|ranking|m[aá]s\s+ingresos|ingresos\s+prorrateados?)",
        """
WITH ingresos_evento AS (
  SELECT e.id AS evento_id, e.actividad_id, COALESCE(SUM(en.precio_pagado), 0) AS facturacion
  FROM Evento e
  LEFT JOIN Entrada en ON en.evento_id = e.id
  GROUP BY e.id, e.actividad_id
),
artistas_actividad AS (
  SELECT actividad_id, COUNT(*) AS artistas_count
  FROM Actividad_Artista
  GROUP BY actividad_id
)
SELECT ar.id AS artista_id, ar.nombre AS artista_nombre,
       ROUND(SUM(ie.facturacion / NULLIF(ac.artistas_count, 0)), 2) AS ingresos_prorrateados
FROM ingresos_evento ie
JOIN Actividad_Artista aa ON aa.actividad_id = ie.actividad_id
JOIN artistas_actividad ac ON ac.actividad_id = aa.actividad_id
JOIN Artista ar ON ar.id = aa.artista_id
GROUP BY ar.id, ar.nombre
ORDER BY ingresos_prorrateados DESC, artista_nombre ASC
LIMIT {top}
""",
        "Artistas top por ingresos prorrateados",
        default_top=10,
    ),
    _rule(
        "sales_by_event",
        r"ventas?.*eventos?|eventos?.*ventas?|entradas\s+vendidas",
        "SELECT * FROM vw_ventas_evento ORDER BY facturacion DESC LIMIT 200",
        "Ventas y facturación por evento",
    ),
    _rule(
        "enriched_events",
        r"eventos?.*(enriquecid|valorac|detall)",
        "SELECT * FROM vw_eventos_enriquecidos ORDER BY fecha_hora DESC LIMIT 200",
        "Eventos con datos enriquecidos",
    ),
    _rule(
        "city_statistics",
        r"(estad[ií]sticas|resumen|stats?).*ciudad",
        "SELECT * FROM vw_estadisticas_ciudad ORDER BY facturacion_total DESC LIMIT 200",
        "Estadísticas por ciudad",
    ),
    _rule(
        "busiest_city",
        r"ciudad(es)?\s+con\s+m[aá]s\s+eventos?",
        """
SELECT u.ciudad, COUNT(e.id) AS total_eventos
FROM Evento e
JOIN Ubicacion u ON u.id = e.ubicacion_id
GROUP BY u.ciudad
ORDER BY total_eventos DESC, u.ciudad ASC
LIMIT 1
""",
        "Ciudad con más eventos",
    ),
    _rule(
        "highest_revenue_event",
        r"evento\s+con\s+m[aá]s\s+facturaci[oó]n|mayor\s+facturaci[oó]n",
        """
SELECT e.id, e.nombre, COALESCE(SUM(en.precio_pagado), 0) AS facturacion
FROM Evento e
LEFT JOIN Entrada en ON en.evento_id = e.id
GROUP BY e.id, e.nombre
ORDER BY facturacion DESC, e.nombre
LIMIT 1
""",
        "Evento con mayor facturación",
    ),
    _rule(
        "top_events_by_revenue",
        r"(top|ranking).*(facturaci[oó]n|ingresos)",
        """
SELECT e.id, e.nombre, u.ciudad, COALESCE(SUM(en.precio_pagado), 0) AS facturacion
FROM Evento e
JOIN Ubicacion u ON u.id = e.ubicacion_id
LEFT JOIN Entrada en ON en.evento_id = e.id
GROUP BY e.id, e.nombre, u.ciudad
ORDER BY facturacion DESC
LIMIT {top}
""",
        "Eventos top por facturación",
        default_top=5,
    ),
    _rule(
        "average_rating_by_event",
        r"(media|promedio|avg).*(valoraci[oó]n|valoraciones|notas?)",
        """
SELECT e.id, e.nombre, ROUND(AVG(v.nota), 2) AS nota_media, COUNT(v.id) AS total_valoraciones
FROM Evento e
LEFT JOIN Valoracion v ON v.evento_id = e.id
GROUP BY e.id, e.nombre
ORDER BY nota_media DESC NULLS LAST, total_valoraciones DESC
LIMIT 200
""",
        "Media de valoraciones por evento",
    ),
    _rule(
        "data_overview",
        r"\bdatos\b|contenido|qu[eé] tienes|qu[eé] hay",
        """
SELECT 'Eventos' AS tipo, COUNT(*) AS cantidad FROM Evento
UNION ALL SELECT 'Artistas' AS tipo, COUNT(*) AS cantidad FROM Artista
UNION ALL SELECT 'Entradas vendidas' AS tipo, COUNT(*) AS cantidad FROM Entrada
UNION ALL SELECT 'Valoraciones' AS tipo, COUNT(*) AS cantidad FROM Valoracion
""",
        "Resumen del contenido de la base de datos",
    ),
    _rule(
        "events_per_city",
        r"(cu[aá]ntos\s+eventos|cantidad|count|how many).*ciudad",
        """
SELECT ciudad, COUNT(*) AS total_eventos
FROM vw_eventos_enriquecidos
GROUP BY ciudad
ORDER BY total_eventos DESC
LIMIT 200
""",
        "Número de eventos por ciudad",
    ),
    _rule(
        "event_count",
        r"cu[aá]ntos\s+eventos|cantidad|count|how many",
        "SELECT COUNT(*) AS total_eventos FROM Evento",
        "Número total de eventos",
    ),
    _rule(
        "popular_artists",
        r"artistas?.*(mejores|populares|famosos)|(mejores|populares|famosos).*artistas?",
        "SELECT * FROM vw_artistas_por_actividad ORDER BY artistas_count DESC LIMIT 200",
        "Actividades con más artistas",
    ),
    _rule(
        "artists",
        r"artistas?|artists?",
        "SELECT id, nombre, biografia FROM Artista ORDER BY nombre LIMIT 200",
        "Listado de artistas",
    ),
    _rule(
        "venues",
        r"ubicaci[oó]n(es)?|recintos?|lugares|venues?|aforo",
        "SELECT nombre, direccion, ciudad, aforo, precio_alquiler FROM Ubicacion ORDER BY aforo DESC LIMIT 200",
        "Recintos ordenados por aforo",
    ),
    _rule(
        "theatre",
        r"teatr|theat",
        "SELECT * FROM vw_eventos_enriquecidos WHERE tipo = 'teatro' ORDER BY fecha_hora DESC LIMIT 200",
        "Eventos de teatro",
    ),
    _rule(
        "concerts",
        r"conciert|concert|m[uú]sica|music",
        "SELECT * FROM vw_eventos_enriquecidos WHERE tipo = 'concierto' ORDER BY fecha_hora DESC LIMIT 200",
        "Conciertos",
    ),
    _rule(
        "exhibitions",
        r"exposici|exhibit",
        "SELECT * FROM vw_eventos_enriquecidos WHERE tipo = 'exposicion' ORDER BY fecha_hora DESC LIMIT 200",
        "Exposiciones",
    ),
    _rule(
        "lectures",
        r"conferenc|lecture|talks?\b",
        "SELECT * FROM vw_eventos_enriquecidos WHERE tipo = 'conferencia' ORDER BY fecha_hora DESC LIMIT 200",
        "Conferencias",
    ),
]

DEFAULT_SQL = "SELECT * FROM vw_eventos_enriquecidos ORDER BY fecha_hora DESC LIMIT 200"


def _top_n(question: str, default: int) -> int:
    match = _TOP_N.search(question)
    if not match:
        return default
    return max(1, min(int(match.group(1)), MAX_TOP_N))


class KeywordSQLFallback:
    """
    Rule-based SQL source for offline operation.

    Usage:
        fallback = KeywordSQLFallback()
        result = fallback.generate("¿Cuáles son los próximos eventos?")
        result.sql_text  # "SELECT * FROM vw_eventos_proximos ..."
    """

    def __init__(self, rules: Optional[List[FallbackRule]] = None):
        self.rules = FALLBACK_RULES if rules is None else rules

    def generate(self, question: str) -> GenerationResult:
        text = question.lower()

        for rule in self.rules:
            if not rule.pattern.search(text):
                continue

            sql = rule.sql
            if rule.default_top is not None:
                sql = sql.format(top=_top_n(text, rule.default_top))

            logger.info("Keyword fallback rule matched", rule=rule.name)
            return GenerationResult(
                sql_text=sql,
                explanation=f'{rule.explanation} para: "{question}"',
                origin=SqlOrigin.FALLBACK,
            )

        logger.info("No keyword fallback rule matched, using default listing")
        return GenerationResult(
            sql_text=DEFAULT_SQL,
            explanation=f'Últimos eventos con datos enriquecidos para: "{question}"',
            origin=SqlOrigin.FALLBACK,
        )

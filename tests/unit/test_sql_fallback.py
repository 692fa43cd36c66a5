"""Unit tests for the keyword SQL fallback."""

import pytest

from artevida.domain.base_enums import SqlOrigin
from artevida.repositories.sql_fallback import (
    DEFAULT_SQL,
    FALLBACK_RULES,
    MAX_TOP_N,
    KeywordSQLFallback,
)


@pytest.fixture
def fallback():
    return KeywordSQLFallback()


class TestRuleSelection:

    @pytest.mark.parametrize("question,expected_fragment", [
        ("¿Cuáles son los próximos eventos?", "FROM vw_eventos_proximos ORDER BY fecha_hora ASC"),
        ("Porcentaje de ocupación de los próximos eventos", "porcentaje_ocupacion"),
        ("Coste de cachés por actividad", "FROM vw_coste_actividad"),
        ("¿Qué evento tiene más ceros?", "WHERE v.nota = 0"),
        ("ciudades con solo teatro", "HAVING BOOL_AND(a.tipo = 'teatro')"),
        ("margen estimado por evento", "margen_estimado"),
        ("ventas por evento", "FROM vw_ventas_evento"),
        ("estadísticas por ciudad", "FROM vw_estadisticas_ciudad"),
        ("ciudad con más eventos", "COUNT(e.id) AS total_eventos"),
        ("media de valoraciones", "AVG(v.nota)"),
        ("¿Cuántos eventos hay?", "SELECT COUNT(*) AS total_eventos FROM Evento"),
        ("¿Cuántos eventos por ciudad?", "GROUP BY ciudad"),
        ("lista de artistas", "FROM Artista ORDER BY nombre"),
        ("recintos con más aforo", "FROM Ubicacion ORDER BY aforo DESC"),
        ("obras de teatro", "tipo = 'teatro'"),
        ("música en directo", "tipo = 'concierto'"),
        ("exposiciones", "tipo = 'exposicion'"),
        ("conferencias", "tipo = 'conferencia'"),
        ("¿Qué datos tienes?", "UNION ALL"),
    ])
    def test_rules(self, fallback, question, expected_fragment):
        result = fallback.generate(question)

        assert expected_fragment in result.sql_text
        assert result.origin == SqlOrigin.FALLBACK

    def test_first_matching_rule_wins(self, fallback):
        # "próximos eventos" would also match the plain upcoming-events rule
        result = fallback.generate("ocupación de los próximos eventos")

        assert "porcentaje_ocupacion" in result.sql_text

    def test_default_listing(self, fallback):
        result = fallback.generate("algo completamente distinto")

        assert result.sql_text == DEFAULT_SQL
        assert result.explanation == 'Últimos eventos con datos enriquecidos para: "algo completamente distinto"'

    def test_explanation_quotes_question(self, fallback):
        result = fallback.generate("Ventas por evento")

        assert result.explanation == 'Ventas y facturación por evento para: "Ventas por evento"'


class TestTopN:

    def test_default_top_artists(self, fallback):
        assert fallback.generate("artistas con más ingresos").sql_text.endswith("LIMIT 10")

    def test_requested_top(self, fallback):
        assert fallback.generate("artistas top 3 por ingresos").sql_text.endswith("LIMIT 3")

    def test_top_is_clamped(self, fallback):
        sql = fallback.generate("top 99 eventos por facturación").sql_text

        assert sql.endswith(f"LIMIT {MAX_TOP_N}")

    def test_default_top_events(self, fallback):
        assert fallback.generate("ranking de facturación").sql_text.endswith("LIMIT 5")


class TestFallbackSqlPassesValidator:

    @pytest.mark.parametrize("rule", FALLBACK_RULES, ids=lambda rule: rule.name)
    def test_rule_sql_validates(self, validator, rule):
        sql = rule.sql.format(top=rule.default_top) if rule.default_top else rule.sql

        result = validator.validate(sql)

        assert result.valid, f"{rule.name}: {result.message}"

    def test_default_sql_validates(self, validator):
        assert validator.validate(DEFAULT_SQL).valid

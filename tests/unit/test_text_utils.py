"""Unit tests for text_utils module."""

import pytest

from artevida.utils.text_utils import (
    InputValidator,
    escape_sql_literal,
    normalize_question,
    sample_rows,
    tokenize,
    truncate_value,
)


class TestNormalizeAndTokenize:

    def test_normalize_question(self):
        assert normalize_question("¡Hola!  ¿Qué tal?") == "hola qué tal"

    def test_tokenize_keeps_accents(self):
        assert tokenize("Conciertos de Rosalía en Cádiz") == ["conciertos", "de", "rosalía", "en", "cádiz"]

    def test_tokenize_min_length_and_stopwords(self):
        tokens = tokenize("El precio del Festival de Jazz", min_length=3, stopwords={"del", "precio"})
        assert tokens == ["festival", "jazz"]

    def test_escape_sql_literal(self):
        assert escape_sql_literal("O'Brien") == "o''brien"


class TestTruncateValue:

    def test_non_string_types_unchanged(self):
        assert truncate_value(None, max_length=5) is None
        assert truncate_value(123, max_length=2) == 123

    def test_short_string_unchanged(self):
        assert truncate_value("Madrid", max_length=10) == "Madrid"

    def test_long_string_truncated(self):
        result = truncate_value("a" * 150, max_length=10)

        assert len(result) == 10
        assert result.endswith("...")


class TestSampleRows:

    def test_limits_rows_and_truncates_cells(self):
        rows = [{"nombre": "x" * 300, "id": i} for i in range(30)]

        sample = sample_rows(rows, max_rows=20, max_value_length=50)

        assert len(sample) == 20
        assert len(sample[0]["nombre"]) == 50
        assert sample[19]["id"] == 19


class TestInputValidator:

    def test_within_limit(self):
        InputValidator.validate_total_chars("a" * 10, system_prompt="b" * 10, max_chars=20)

    def test_over_limit(self):
        with pytest.raises(ValueError, match="Total input too large"):
            InputValidator.validate_total_chars("a" * 10, system_prompt="b" * 11, max_chars=20)

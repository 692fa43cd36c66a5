import pytest
from click.testing import CliRunner

from artevida.lint import lint_sources, lint_sql


@pytest.fixture
def runner():
    return CliRunner()


def test_lint_sources_keeps_order(validator):
    results = lint_sources(validator, [("a", "SELECT * FROM Evento"), ("b", "DROP TABLE Evento")])

    assert [name for name, _ in results] == ["a", "b"]
    assert results[0][1].valid
    assert not results[1][1].valid


class TestLintCommand:

    def test_valid_file(self, runner, tmp_path):
        query = tmp_path / "ok.sql"
        query.write_text("SELECT nombre FROM Artista -- listado\n", encoding="utf-8")

        result = runner.invoke(lint_sql, [str(query)])

        assert result.exit_code == 0
        assert f"{query}: OK" in result.output
        assert "SELECT nombre FROM Artista LIMIT 200" in result.output

    def test_rejected_file(self, runner, tmp_path):
        good = tmp_path / "good.sql"
        good.write_text("SELECT * FROM vw_ventas_evento", encoding="utf-8")
        bad = tmp_path / "bad.sql"
        bad.write_text("SELECT * FROM usuarios", encoding="utf-8")

        result = runner.invoke(lint_sql, [str(good), str(bad)])

        assert result.exit_code == 1
        assert f"{bad}: TABLE_NOT_ALLOWED:" in result.output

    def test_stdin(self, runner):
        result = runner.invoke(lint_sql, [], input="DELETE FROM Evento")

        assert result.exit_code == 1
        assert "<stdin>: OPERATION_NOT_ALLOWED:" in result.output

    def test_custom_limit(self, runner):
        result = runner.invoke(lint_sql, ["--default-limit", "10"], input="SELECT * FROM Evento")

        assert result.exit_code == 0
        assert "SELECT * FROM Evento LIMIT 10" in result.output

    def test_no_limit(self, runner):
        result = runner.invoke(lint_sql, ["--no-limit"], input="SELECT * FROM Evento")

        assert result.exit_code == 0
        assert "LIMIT" not in result.output

    def test_quiet(self, runner):
        result = runner.invoke(lint_sql, ["-q"], input="SELECT * FROM Evento")

        assert result.exit_code == 0
        assert result.output == ""

    def test_custom_catalog(self, runner, tmp_path):
        catalog = tmp_path / "catalog.yaml"
        catalog.write_text("tables:\n  usuarios:\n    columns:\n      id: {}\n", encoding="utf-8")

        result = runner.invoke(lint_sql, ["--catalog", str(catalog)], input="SELECT id FROM usuarios")

        assert result.exit_code == 0

    def test_invalid_limit(self, runner):
        result = runner.invoke(lint_sql, ["--default-limit", "0"], input="SELECT 1")

        assert result.exit_code == 2

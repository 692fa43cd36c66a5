"""
Offline SQL lint command.

Checks hand-written SQL files (or stdin) against the Allowed Object
Catalog with the same validator the agent uses. No database is needed.

Usage:
    python scripts/lint_sql.py queries/*.sql
    echo "SELECT * FROM Evento" | python scripts/lint_sql.py
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import click

from .config_constants import DEFAULT_CATALOG_PATH
from .domain.pipeline import ValidationResult
from .repositories.catalog import AllowedObjectCatalog
from .repositories.sql_validation import SQLValidationRepository
from .utils.logging import configure_logging
from .utils.tracing import trace_scope


def lint_sources(
    validator: SQLValidationRepository,
    sources: Iterable[Tuple[str, str]],
) -> List[Tuple[str, ValidationResult]]:
    """Validate (name, sql) pairs in order."""
    results = []
    for name, sql in sources:
        with trace_scope():
            results.append((name, validator.validate(sql)))
    return results


def _read_sources(files: Tuple[Path, ...]) -> List[Tuple[str, str]]:
    if not files:
        return [("<stdin>", click.get_text_stream("stdin").read())]
    return [(str(path), path.read_text(encoding="utf-8")) for path in files]


@click.command(name="lint-sql")
@click.argument("files", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=DEFAULT_CATALOG_PATH,
    show_default=True,
    help="Catalog YAML with the allowed tables and views.",
)
@click.option(
    "--default-limit",
    type=click.IntRange(min=1),
    default=200,
    show_default=True,
    help="LIMIT appended to statements without one.",
)
@click.option("--no-limit", is_flag=True, help="Do not append a LIMIT.")
@click.option("--quiet", "-q", is_flag=True, help="Only report rejected statements.")
def lint_sql(
    files: Tuple[Path, ...],
    catalog_path: Path,
    default_limit: int,
    no_limit: bool,
    quiet: bool,
) -> None:
    """Validate SQL FILES (stdin when none are given); exit code 1 on any rejection."""
    configure_logging("WARNING")

    catalog = AllowedObjectCatalog.from_yaml(catalog_path)
    limit: Optional[int] = None if no_limit else default_limit
    validator = SQLValidationRepository(catalog, default_limit=limit)

    rejected = 0
    for name, result in lint_sources(validator, _read_sources(files)):
        if result.valid:
            if not quiet:
                click.echo(f"{name}: OK")
                click.echo(result.sanitized_sql)
        else:
            rejected += 1
            kind = result.error_kind.value.upper() if result.error_kind else "ERROR"
            click.echo(f"{name}: {kind}: {result.message}", err=True)

    if rejected:
        raise SystemExit(1)

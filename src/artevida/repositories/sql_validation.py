"""
SQL Validation Repository.

Every statement that may reach the database crosses this validator,
whether it was assembled by the heuristics, produced by the LLM or
returned by the keyword fallback.

Validation Checks (in order):
1. Comment stripping and whitespace collapsing; empty input is rejected
2. Statement terminator check (one trailing ";" at most)
3. Structural parse with sqlglot; textual fallback when the parser gives up
4. Statement kind: only queries (SELECT and set operations) pass
5. Relation whitelist against the Allowed Object Catalog
6. LIMIT enforcement: a default LIMIT is appended when the top level has none

Security Philosophy:
- No trusted input: heuristic SQL is checked exactly like LLM SQL
- Explicit allowlist: only catalog tables and views may be read
- The output is the cleaned input text, never a re-serialized AST, so
  aliases and formatting chosen upstream survive unchanged

Usage:
    validator = SQLValidationRepository(catalog)
    result = validator.validate("SELECT * FROM vw_eventos_proximos")
    if result.valid:
        rows = await executor.execute(result.sanitized_sql)
    else:
        hint = f"{result.error_kind.value}: {result.message}"

Rejections are values (ValidationResult), not exceptions. error_for()
turns a rejection into an exception for callers that want one.
"""

import re
from typing import Iterable, List, Optional, Set, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from artevida.domain.base_enums import ValidationErrorKind
from artevida.domain.errors import SqlValidationError, validation_error_for
from artevida.domain.pipeline import TableReference, ValidationResult
from artevida.utils.logging import get_module_logger
from artevida.repositories.catalog import AllowedObjectCatalog

logger = get_module_logger()

# Statement class names (lower-cased sqlglot expression names) that write or change schema
WRITE_STATEMENT_NAMES = {
    "insert", "update", "delete", "merge", "create", "drop", "alter",
    "altertable", "truncatetable", "rename", "renametable", "grant", "revoke",
    "copy", "comment",
}

# Leading keywords of statements sqlglot keeps as raw commands
WRITE_KEYWORDS = {
    "INSERT", "UPDATE", "DELETE", "MERGE", "CREATE", "ALTER", "DROP",
    "TRUNCATE", "RENAME", "GRANT", "REVOKE", "COPY", "COMMENT", "VACUUM",
    "REINDEX", "CLUSTER", "REFRESH", "LOCK", "CALL", "DO", "EXECUTE",
}

# Write/DDL keywords searched anywhere in text the parser could not handle
TEXTUAL_WRITE_KEYWORDS = {
    "INSERT", "UPDATE", "DELETE", "MERGE", "CREATE", "ALTER", "DROP",
    "TRUNCATE", "RENAME", "GRANT", "REVOKE", "COPY",
}

QUERY_STATEMENT_TYPES = (exp.Select, exp.Union, exp.Intersect, exp.Except, exp.Subquery)

# Relation names up to this length are taken for join aliases
MAX_ALIAS_LENGTH = 2

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_WRITE_KEYWORD_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(TEXTUAL_WRITE_KEYWORDS)) + r")\b", re.IGNORECASE
)
_QUERY_START = re.compile(r"^\(*\s*(WITH|SELECT)\b", re.IGNORECASE)
_CTE_NAME = re.compile(
    r"\b([A-Za-z_][\w]*|\"[^\"]+\")\s+AS\s+(?:NOT\s+)?(?:MATERIALIZED\s+)?\(",
    re.IGNORECASE,
)
_RELATION_AFTER_KEYWORD = re.compile(
    r"\b(?:FROM|JOIN)\s+(?:LATERAL\s+|ONLY\s+)?(?!(?:LATERAL|ONLY)\b)"
    r"((?:[A-Za-z_][\w$]*|\"[^\"]+\")(?:\s*\.\s*(?:[A-Za-z_][\w$]*|\"[^\"]+\"))*)"
    r"(\s*\()?",
    re.IGNORECASE,
)
_COMMA_RELATION = re.compile(
    r"^(?:\s+(?:AS\s+)?[A-Za-z_]\w*)?\s*,\s*"
    r"((?:[A-Za-z_][\w$]*|\"[^\"]+\")(?:\s*\.\s*(?:[A-Za-z_][\w$]*|\"[^\"]+\"))*)"
    r"(\s*\()?",
    re.IGNORECASE,
)
# Functions whose argument syntax uses FROM (EXTRACT(year FROM fecha_hora))
_FROM_ARGUMENT_FUNCTIONS = re.compile(r"\b(EXTRACT|SUBSTRING|TRIM|OVERLAY|POSITION)\s*\(", re.IGNORECASE)
_LIMIT_KEYWORD = re.compile(r"\b(LIMIT|FETCH)\b", re.IGNORECASE)
_MAIN_QUERY_TOKEN = re.compile(r"[()]|\bSELECT\b", re.IGNORECASE)
_ROW_LOCK = re.compile(r"\bFOR\s+(?:NO\s+KEY\s+)?(?:UPDATE|SHARE|KEY\s+SHARE)\b", re.IGNORECASE)


def strip_sql_comments(sql: str) -> str:
    """Remove -- and /* */ comments and collapse whitespace."""
    without_blocks = _BLOCK_COMMENT.sub(" ", sql)
    without_lines = _LINE_COMMENT.sub(" ", without_blocks)
    return " ".join(without_lines.split())


def _blank_string_literals(sql: str) -> str:
    return _STRING_LITERAL.sub("''", sql)


def _top_level_text(sql: str) -> str:
    """Return the statement with everything inside parentheses and quotes removed."""
    depth = 0
    quote: Optional[str] = None
    kept: List[str] = []
    for char in sql:
        if quote:
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
            kept.append(" ")
        elif char == "(":
            depth += 1
            kept.append(" ")
        elif char == ")":
            depth = max(depth - 1, 0)
        elif depth == 0:
            kept.append(char)
    return "".join(kept)


def has_top_level_limit(sql: str) -> bool:
    """
    True when the outermost statement has a LIMIT (or FETCH) clause.

    LIMIT clauses inside subqueries and CTE bodies don't count.

    Example:
        >>> has_top_level_limit("SELECT * FROM Evento LIMIT 5")
        True
        >>> has_top_level_limit("WITH x AS (SELECT * FROM Evento LIMIT 5) SELECT * FROM x")
        False
    """
    return _LIMIT_KEYWORD.search(_top_level_text(sql)) is not None


def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if len(identifier) >= 2 and identifier[0] == identifier[-1] == '"':
        return identifier[1:-1]
    return identifier


def _reference_from_dotted(dotted: str, is_function: bool = False) -> TableReference:
    parts = [_unquote(part) for part in dotted.split(".")]
    name = parts[-1]
    schema = parts[-2] if len(parts) >= 2 else None
    return TableReference(name=name, schema=schema, is_function=is_function)


def _closing_paren(sql: str, open_index: int) -> int:
    depth = 0
    for index in range(open_index, len(sql)):
        if sql[index] == "(":
            depth += 1
        elif sql[index] == ")":
            depth -= 1
            if depth == 0:
                return index
    return len(sql)


def _cte_declarations(sql: str) -> List[Tuple[str, int]]:
    """
    CTEs declared in a leading WITH header, as (name, offset where the body closes).

    The header ends at the first SELECT outside parentheses, where the
    main query starts; "name AS (" text after that point declares nothing.
    """
    if not re.match(r"WITH\b", sql, re.IGNORECASE):
        return []

    header_end = len(sql)
    depth = 0
    for token in _MAIN_QUERY_TOKEN.finditer(sql):
        if token.group(0) == "(":
            depth += 1
        elif token.group(0) == ")":
            depth = max(depth - 1, 0)
        elif depth == 0:
            header_end = token.start()
            break

    declarations: List[Tuple[str, int]] = []
    for match in _CTE_NAME.finditer(sql, 0, header_end):
        prefix = sql[:match.start()]
        if prefix.count("(") != prefix.count(")"):
            continue
        body_end = _closing_paren(sql, match.end() - 1)
        declarations.append((_unquote(match.group(1)).lower(), body_end))
    return declarations


def _with_clause(node: exp.Expression) -> Optional[exp.With]:
    return next((value for value in node.args.values() if isinstance(value, exp.With)), None)


def _names_cte_in_scope(table: exp.Table) -> bool:
    """
    True when the table name resolves to a CTE visible where it is read.

    Walks up from the table. A WITH clause on an enclosing query makes
    all its CTEs visible. Inside a CTE body only the CTEs declared
    before it are visible (plus itself for WITH RECURSIVE).
    """
    name = table.name.lower()
    child: exp.Expression = table
    node = table.parent
    while node is not None:
        if isinstance(node, exp.With):
            ctes = node.expressions
            position = next((i for i, cte in enumerate(ctes) if cte is child), len(ctes))
            visible = ctes[:position + 1] if node.args.get("recursive") else ctes[:position]
            if any(cte.alias.lower() == name for cte in visible):
                return True
        else:
            with_clause = _with_clause(node)
            if with_clause is not None and with_clause is not child:
                if any(cte.alias.lower() == name for cte in with_clause.expressions):
                    return True
        child = node
        node = node.parent
    return False


class TableReferenceCollector:
    """
    Collects the relation names a parsed statement refers to.

    Covers every nested scope (subqueries, CTE bodies, set operation
    branches) because it walks all nodes of the tree with find_all.

    FROM/JOIN relations that resolve to a CTE in scope are left out.
    Derived-table aliases only cover column qualifiers, see local_names.

    Besides FROM/JOIN relations it returns the qualifiers of column
    references ("e" in "e.nombre"), marked with is_qualifier, which is
    why short aliases must be exempted by the validator.
    """

    @staticmethod
    def referenced_tables(statement: exp.Expression) -> List[TableReference]:
        references: List[TableReference] = []

        for table in statement.find_all(exp.Table):
            this = table.this
            if isinstance(this, exp.Identifier):
                if not table.db and _names_cte_in_scope(table):
                    continue
                references.append(TableReference(
                    name=this.name,
                    schema=table.db or None,
                ))
            else:
                function_name = getattr(this, "name", "") or type(this).__name__.lower()
                references.append(TableReference(name=function_name, is_function=True))

        for unnest in statement.find_all(exp.Unnest):
            if isinstance(unnest.parent, (exp.From, exp.Join)):
                references.append(TableReference(name="unnest", is_function=True))

        for column in statement.find_all(exp.Column):
            if column.table:
                references.append(TableReference(
                    name=column.table,
                    schema=column.db or None,
                    is_qualifier=True,
                ))

        return references

    @staticmethod
    def local_names(statement: exp.Expression) -> Set[str]:
        """Names a column qualifier may use: CTEs and aliased derived tables."""
        names: Set[str] = set()
        for cte in statement.find_all(exp.CTE):
            if cte.alias:
                names.add(cte.alias.lower())
        for subquery in statement.find_all(exp.Subquery):
            if subquery.alias:
                names.add(subquery.alias.lower())
        return names


class SQLValidationRepository:
    """
    Pure, synchronous SQL safety validator.

    Args:
        catalog: Allowed Object Catalog
        default_limit: LIMIT appended to statements without one (None disables it)
        allowed_schema: Only schema qualified names may use
        dialect: sqlglot dialect used for parsing
    """

    def __init__(
        self,
        catalog: AllowedObjectCatalog,
        default_limit: Optional[int] = 200,
        allowed_schema: str = "public",
        dialect: str = "postgres",
    ):
        self.catalog = catalog
        self.default_limit = default_limit
        self.allowed_schema = allowed_schema.lower()
        self.dialect = dialect

    def validate(self, candidate_sql: Optional[str]) -> ValidationResult:
        """
        Validate a candidate statement.

        Args:
            candidate_sql: SQL text from any source

        Returns:
            ValidationResult.accepted(sanitized_sql) or ValidationResult.rejected(kind, message)
        """
        result = self._validate(candidate_sql or "")
        if result.valid:
            logger.debug("SQL accepted", sql=result.sanitized_sql)
        else:
            logger.info(
                "SQL rejected",
                error_kind=result.error_kind.value if result.error_kind else None,
                reason=result.message
            )
        return result

    def _validate(self, candidate_sql: str) -> ValidationResult:
        # Check 1: comments, whitespace, empty input
        cleaned = strip_sql_comments(candidate_sql)
        if not cleaned or cleaned == ";":
            return ValidationResult.rejected(ValidationErrorKind.EMPTY_INPUT, "Empty SQL statement")

        # Check 2: one statement only
        terminators = cleaned.count(";")
        if terminators > 1 or (terminators == 1 and not cleaned.endswith(";")):
            return ValidationResult.rejected(
                ValidationErrorKind.MULTI_STATEMENT,
                "Only a single statement is allowed"
            )
        cleaned = cleaned.rstrip(";").rstrip()
        if not cleaned:
            return ValidationResult.rejected(ValidationErrorKind.EMPTY_INPUT, "Empty SQL statement")

        # Check 3: structural parse
        try:
            statements = [s for s in sqlglot.parse(cleaned, read=self.dialect) if s is not None]
        except (ParseError, TokenError) as e:
            logger.debug("Structural parse failed, using textual checks", error=str(e)[:200])
            rejection = self._check_textually(cleaned)
        else:
            if len(statements) != 1:
                return ValidationResult.rejected(
                    ValidationErrorKind.MULTI_STATEMENT,
                    "Only a single statement is allowed"
                )
            rejection = self._check_statement_kind(statements[0]) or self._check_relations(
                TableReferenceCollector.referenced_tables(statements[0]),
                TableReferenceCollector.local_names(statements[0]),
            )

        if rejection is not None:
            return rejection

        # Check 6: LIMIT
        return ValidationResult.accepted(self._enforce_limit(cleaned))

    # ------------------------------------------------------------------
    # Structural checks
    # ------------------------------------------------------------------

    def _check_statement_kind(self, statement: exp.Expression) -> Optional[ValidationResult]:
        """Check 4: only read queries, with a distinct kind for write/DDL statements."""
        kind_name = type(statement).__name__.lower()

        if isinstance(statement, exp.Command):
            keyword = str(statement.this or "").split(" ")[0].upper()
            if keyword in WRITE_KEYWORDS:
                return self._operation_not_allowed(keyword)
            return ValidationResult.rejected(
                ValidationErrorKind.NOT_A_SELECT,
                f"Only SELECT queries are allowed, got {keyword or 'command'}"
            )

        if kind_name in WRITE_STATEMENT_NAMES:
            return self._operation_not_allowed(kind_name.upper())

        if not isinstance(statement, QUERY_STATEMENT_TYPES):
            return ValidationResult.rejected(
                ValidationErrorKind.NOT_A_SELECT,
                f"Only SELECT queries are allowed, got {kind_name.upper()}"
            )

        # SELECT ... INTO creates a table
        if any(select.args.get("into") for select in statement.find_all(exp.Select)):
            return self._operation_not_allowed("SELECT INTO")

        # Row locks (FOR UPDATE / FOR SHARE) need a writable transaction
        if statement.find(exp.Lock) is not None:
            return self._operation_not_allowed("SELECT FOR UPDATE/SHARE")

        # Data-modifying CTEs (WITH d AS (DELETE ...) SELECT ...)
        for node in statement.find_all(exp.Expression):
            name = type(node).__name__.lower()
            if name in WRITE_STATEMENT_NAMES:
                return self._operation_not_allowed(name.upper())

        return None

    @staticmethod
    def _operation_not_allowed(operation: str) -> ValidationResult:
        return ValidationResult.rejected(
            ValidationErrorKind.OPERATION_NOT_ALLOWED,
            f"Operation not allowed: {operation}. Only SELECT queries may run"
        )

    def _check_relations(
        self,
        references: Iterable[TableReference],
        local_names: Set[str],
    ) -> Optional[ValidationResult]:
        """
        Check 5: every referenced relation must be in the catalog.

        local_names only exempts column qualifiers; FROM/JOIN relations
        pointing at CTEs are already left out by the collector.
        """
        for reference in references:
            if reference.is_function:
                return ValidationResult.rejected(
                    ValidationErrorKind.TABLE_NOT_ALLOWED,
                    f"Table functions are not allowed: {reference.name}"
                )

            if reference.schema and reference.schema.lower() != self.allowed_schema:
                return ValidationResult.rejected(
                    ValidationErrorKind.TABLE_NOT_ALLOWED,
                    f"Schema not allowed: {reference.schema}.{reference.name}"
                )

            name = reference.name.lower()
            if len(name) <= MAX_ALIAS_LENGTH:
                continue
            if reference.is_qualifier and name in local_names:
                continue

            if not self.catalog.contains(name):
                return ValidationResult.rejected(
                    ValidationErrorKind.TABLE_NOT_ALLOWED,
                    f"Table not allowed: {reference.name}. "
                    f"Allowed objects: {', '.join(self.catalog.names())}"
                )

        return None

    # ------------------------------------------------------------------
    # Textual fallback
    # ------------------------------------------------------------------

    def _check_textually(self, sql: str) -> Optional[ValidationResult]:
        """
        Conservative checks for statements the parser can't handle.

        Only WITH/SELECT text passes, no write keyword may appear anywhere,
        and identifiers after FROM/JOIN are whitelisted.
        """
        if not _QUERY_START.match(sql):
            first_word = sql.lstrip("(").split(" ")[0].upper()
            if first_word in WRITE_KEYWORDS:
                return self._operation_not_allowed(first_word)
            return ValidationResult.rejected(
                ValidationErrorKind.PARSE_ERROR,
                "Could not parse statement; only SELECT or WITH queries are accepted"
            )

        write_keyword = _WRITE_KEYWORD_PATTERN.search(sql)
        if write_keyword:
            return self._operation_not_allowed(write_keyword.group(1).upper())

        row_lock = _ROW_LOCK.search(_blank_string_literals(sql))
        if row_lock:
            return self._operation_not_allowed(row_lock.group(0).upper())

        searchable = self._blank_from_arguments(_blank_string_literals(sql))
        declarations = _cte_declarations(searchable)

        for reference, position in self._textual_references(searchable):
            # A CTE name only counts once its body has closed
            visible = {name for name, body_end in declarations if body_end < position}
            if not reference.schema and reference.name.lower() in visible:
                continue
            rejection = self._check_relations([reference], set())
            if rejection is not None:
                return rejection

        return None

    @staticmethod
    def _blank_from_arguments(sql: str) -> str:
        """Hide the argument lists of EXTRACT(... FROM ...) style functions."""
        chars = list(sql)
        for match in _FROM_ARGUMENT_FUNCTIONS.finditer(sql):
            depth = 0
            for index in range(match.end() - 1, len(chars)):
                if chars[index] == "(":
                    depth += 1
                elif chars[index] == ")":
                    depth -= 1
                    if depth == 0:
                        break
                elif depth >= 1:
                    chars[index] = " "
        return "".join(chars)

    @staticmethod
    def _textual_references(sql: str) -> List[Tuple[TableReference, int]]:
        """Relations after FROM/JOIN (and comma lists after them), with their offsets."""
        references: List[Tuple[TableReference, int]] = []
        for match in _RELATION_AFTER_KEYWORD.finditer(sql):
            # IS [NOT] DISTINCT FROM compares values
            if re.search(r"DISTINCT\s*$", sql[:match.start()], re.IGNORECASE):
                continue
            is_function = bool(match.group(2))
            references.append((
                _reference_from_dotted(match.group(1), is_function=is_function),
                match.start(1),
            ))

            rest_start = match.end()
            while not is_function:
                comma = _COMMA_RELATION.match(sql[rest_start:])
                if not comma:
                    break
                is_function = bool(comma.group(2))
                references.append((
                    _reference_from_dotted(comma.group(1), is_function=is_function),
                    rest_start + comma.start(1),
                ))
                rest_start += comma.end()
        return references

    # ------------------------------------------------------------------
    # LIMIT
    # ------------------------------------------------------------------

    def _enforce_limit(self, sql: str) -> str:
        if self.default_limit is None or has_top_level_limit(sql):
            return sql
        return f"{sql} LIMIT {self.default_limit}"


def error_for(result: ValidationResult) -> Optional[SqlValidationError]:
    """Exception matching a rejected result (None for accepted results)."""
    if result.valid or result.error_kind is None:
        return None
    return validation_error_for(result.error_kind, result.message or result.error_kind.value)

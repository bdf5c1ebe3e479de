"""
PostgreSQL schema rewriter.

SERIAL columns, identity columns and nextval() defaults converge on
INTEGER PRIMARY KEY AUTOINCREMENT; sequences, COMMENT ON, ownership and
extension statements have no SQLite counterpart and are dropped. Array
columns are stored as TEXT.
"""

import re
from functools import partial

from ..sql_translator import ddl
from ..sql_translator.ddl import LEAD, PH, rule, warn_rule
from ..sql_translator.identifier_normalizer import strip_schema_prefix_pass
from ..sql_translator.models import RewritePass
from ..sql_translator.pipeline import SchemaRewriter

AUTO_INCREMENT_MARKERS = (
    ddl.AutoIncrementMarker(re.compile(r"\b(?:SMALL|BIG)?SERIAL[248]?\b", re.IGNORECASE), "SERIAL"),
    ddl.AutoIncrementMarker(
        re.compile(r"\bGENERATED\s+(?:ALWAYS|BY\s+DEFAULT)\s+AS\s+IDENTITY\b(?:\s*\([^()]*\))?", re.IGNORECASE),
        "identity",
    ),
    ddl.AutoIncrementMarker(
        re.compile(r"\bDEFAULT\s+nextval\s*\(\s*" + PH + r"(?:\s*::\s*regclass)?\s*\)", re.IGNORECASE),
        "sequence default",
    ),
)

TABLE_OPTION_RULES = (
    warn_rule(r"\s*\bINHERITS\s*\([^()]*\)", "Table inheritance is not supported by SQLite; INHERITS dropped",
              top_level=True),
    warn_rule(r"\s*\bUSING\s+INDEX\s+TABLESPACE\s+\w+", "Tablespaces are not supported by SQLite; option dropped"),
    warn_rule(r"\s*\bTABLESPACE\s+\w+", "Tablespaces are not supported by SQLite; TABLESPACE option dropped"),
    rule(r"(\bCREATE\s+)UNLOGGED\s+", "UNLOGGED dropped", replacement=r"\1"),
    rule(r"\s*\bWITH(?:OUT)?\s+OIDS\b", "OIDS option dropped", top_level=True),
    rule(r"\s*\bON\s+COMMIT\s+(?:DROP|DELETE\s+ROWS|PRESERVE\s+ROWS)\b", "ON COMMIT clause dropped",
         top_level=True),
    rule(r"\s*\bCOLLATE\s+(?:\"(?!(?:BINARY|NOCASE|RTRIM)\")[^\"]+\"|(?!(?:BINARY|NOCASE|RTRIM)\b)[\w.]+)",
         "Collation dropped"),
)

ELEMENT_RULES = (
    warn_rule(r"^\s*(?:CONSTRAINT\s+\S+\s+)?EXCLUDE\b", "Exclusion constraints are not supported by SQLite; dropped"),
    warn_rule(r"^\s*LIKE\b", "CREATE TABLE ... (LIKE other) is not supported by SQLite; dropped"),
)

STATEMENT_RULES = (
    rule(LEAD + r"COMMENT\s+ON\b", "COMMENT ON statement dropped (SQLite has no object comments)"),
    rule(LEAD + r"ALTER\s+(?:TABLE|SEQUENCE|VIEW|FUNCTION|SCHEMA|TYPE)\b.*\bOWNER\s+TO\b",
         "Ownership statement dropped"),
    rule(LEAD + r"CREATE\s+(?:EXTENSION|SCHEMA)\b", "CREATE EXTENSION/SCHEMA statement dropped"),
    rule(LEAD + r"(?:GRANT|REVOKE)\b", "Privilege statement dropped (SQLite has no users)"),
    rule(LEAD + r"SET\s+\w+\s*(?:=|TO)\b", "Session setting dropped"),
    rule(LEAD + r"SELECT\s+pg_catalog\.set_config\b", "Session setting dropped"),
    warn_rule(LEAD + r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:TYPE|DOMAIN)\b",
              "User-defined types and domains are not supported by SQLite; statement dropped"),
    warn_rule(LEAD + r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:FUNCTION|PROCEDURE|TRIGGER|RULE|POLICY)\b",
              "Stored code (functions, procedures, triggers, rules, policies) cannot be carried over; "
              "statement dropped"),
)


class PostgreSQLSchemaRewriter(SchemaRewriter):
    dialect = "postgresql"
    translated_features = frozenset({"AUTO_INCREMENT", "DEFAULT", "INDEX"})
    rewrite_markers = (
        r"\bCREATE\b",
        r"\bALTER\b",
        r"\bCOMMENT\s+ON\b",
        r"\b(?:GRANT|REVOKE|SET)\b",
        r"::",
    )

    def build_passes(self):
        options = self.options
        return (
            # PostgreSQL already quotes with double quotes
            RewritePass(
                "auto_increment",
                partial(ddl.auto_increment_pass, markers=AUTO_INCREMENT_MARKERS, type_table=self.type_map,
                        sequences=True),
                feature="auto_increment",
            ),
            RewritePass(
                "type_substitution",
                partial(
                    ddl.type_substitution_pass,
                    type_table=self.type_map,
                    retain_length=options.retain_length_qualifiers,
                    array_types=True,
                ),
            ),
            RewritePass(
                "default_values",
                partial(ddl.default_values_pass, boolean_defaults=True, strip_casts=True),
                feature="default_values",
            ),
            RewritePass(
                "strip_features",
                partial(
                    ddl.strip_features_pass,
                    rules=TABLE_OPTION_RULES,
                    statement_rules=STATEMENT_RULES,
                    element_rules=ELEMENT_RULES,
                    with_options=True,
                ),
            ),
            RewritePass("indexes", ddl.index_pass, feature="indexes"),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
            RewritePass("tidy", ddl.tidy_pass),
        )

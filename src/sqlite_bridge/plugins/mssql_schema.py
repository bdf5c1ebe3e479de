"""
SQL Server schema rewriter.

Bracketed identifiers become double-quoted, IDENTITY columns become
INTEGER PRIMARY KEY AUTOINCREMENT and the T-SQL batch scaffolding of
generated scripts (SET options, GO separators, USE, extended properties)
is dropped. Filegroup placement, clustering and temporal table clauses
have no SQLite counterpart.
"""

import re
from functools import partial

from ..sql_translator import ddl
from ..sql_translator.ddl import LEAD, rule, warn_rule
from ..sql_translator.identifier_normalizer import quote_identifiers_pass, strip_schema_prefix_pass
from ..sql_translator.models import RewritePass
from ..sql_translator.pipeline import SchemaRewriter

AUTO_INCREMENT_MARKERS = (
    ddl.AutoIncrementMarker(
        re.compile(r"\bIDENTITY\b(?:\s*\(\s*(\d+)\s*,\s*(\d+)\s*\))?", re.IGNORECASE),
        "IDENTITY",
        seed_groups=True,
    ),
)

TABLE_OPTION_RULES = (
    rule(r"\s*\bTEXTIMAGE_ON\s+(?:\"[^\"]+\"|\w+)", "TEXTIMAGE_ON filegroup dropped", top_level=True),
    rule(r"\)\s*ON\s+(?!(?:DELETE|UPDATE)\b)(?:\"[^\"]+\"|\w+)(?:\s*\([^()]*\))?"
         r"(?=\s*(?:;|$|\)|,|TEXTIMAGE_ON|WITH\b))",
         "Filegroup placement dropped", replacement=")"),
    rule(r"\s+(?:NON)?CLUSTERED\b", "Clustering hint dropped"),
    rule(r"\s+ROWGUIDCOL\b", "ROWGUIDCOL attribute dropped"),
    rule(r"\s+SPARSE\b", "SPARSE attribute dropped"),
    warn_rule(r"\s+FILESTREAM\b", "FILESTREAM storage is not supported by SQLite; attribute dropped"),
    warn_rule(r"\s+GENERATED\s+ALWAYS\s+AS\s+ROW\s+(?:START|END)(?:\s+HIDDEN)?",
              "System-versioned period columns are not supported by SQLite; GENERATED ALWAYS dropped"),
)

ELEMENT_RULES = (
    warn_rule(r"^\s*PERIOD\s+FOR\s+SYSTEM_TIME\b",
              "System-versioned temporal tables are not supported by SQLite; PERIOD FOR SYSTEM_TIME dropped"),
)

STATEMENT_RULES = (
    rule(LEAD + r"SET\s+(?:ANSI_NULLS|QUOTED_IDENTIFIER|ANSI_PADDING|ANSI_WARNINGS|NOCOUNT|XACT_ABORT|"
         r"ARITHABORT|CONCAT_NULL_YIELDS_NULL|NUMERIC_ROUNDABORT|IDENTITY_INSERT)\b",
         "Session setting dropped"),
    rule(LEAD + r"GO\s*(?:\d+\s*)?;?\s*$", "Batch separator GO dropped"),
    rule(LEAD + r"USE\s+", "USE statement dropped (SQLite databases are files)"),
    rule(LEAD + r"EXEC(?:UTE)?\s+(?:\w+\.)*sp_(?:addextendedproperty|updateextendedproperty)\b",
         "Extended property dropped"),
    rule(LEAD + r"(?:GRANT|REVOKE|DENY)\b", "Privilege statement dropped (SQLite has no users)"),
    warn_rule(LEAD + r"(?:CREATE|ALTER)\s+(?:OR\s+ALTER\s+)?(?:PROC|PROCEDURE|FUNCTION|TRIGGER|SCHEMA)\b",
              "T-SQL modules and schemas cannot be carried over to SQLite; statement dropped"),
)


class MSSQLSchemaRewriter(SchemaRewriter):
    dialect = "mssql"
    translated_features = frozenset({"AUTO_INCREMENT", "DEFAULT", "INDEX"})
    rewrite_markers = (
        r"\[",
        r"\bCREATE\b",
        r"\bALTER\b",
        r"\bDROP\s+INDEX\b",
        r"^\s*(?:SET|GO|USE|EXEC|GRANT|REVOKE|DENY)\b",
        r"\bIDENTITY\b",
    )

    def build_passes(self):
        options = self.options
        return (
            RewritePass("quote_identifiers", partial(quote_identifiers_pass, quote_styles=("bracket",))),
            RewritePass(
                "auto_increment",
                partial(ddl.auto_increment_pass, markers=AUTO_INCREMENT_MARKERS, type_table=self.type_map),
                feature="auto_increment",
            ),
            RewritePass(
                "type_substitution",
                partial(ddl.type_substitution_pass, type_table=self.type_map,
                        retain_length=options.retain_length_qualifiers),
            ),
            RewritePass("default_values", ddl.default_values_pass, feature="default_values"),
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

"""
Oracle schema rewriter.

Oracle DDL carries a lot of physical storage detail (tablespaces, extent
and LOB storage clauses, logging and compression attributes, constraint
states) that SQLite has no use for. Identity columns and columns
defaulting to ``seq.NEXTVAL`` become INTEGER PRIMARY KEY AUTOINCREMENT;
sequence, synonym and comment statements are dropped.
"""

import re
from functools import partial

from ..sql_translator import ddl
from ..sql_translator.ddl import LEAD, rule, warn_rule
from ..sql_translator.identifier_normalizer import strip_schema_prefix_pass
from ..sql_translator.lexer import IDENT
from ..sql_translator.models import RewritePass
from ..sql_translator.pipeline import SchemaRewriter

AUTO_INCREMENT_MARKERS = (
    ddl.AutoIncrementMarker(
        re.compile(r"\bGENERATED\s+(?:ALWAYS|BY\s+DEFAULT(?:\s+ON\s+NULL)?)\s+AS\s+IDENTITY\b(?:\s*\([^()]*\))?",
                   re.IGNORECASE),
        "identity",
    ),
    ddl.AutoIncrementMarker(
        re.compile(r"\bDEFAULT\s+(?:" + IDENT + r"\s*\.\s*)?" + IDENT + r"\s*\.\s*NEXTVAL\b", re.IGNORECASE),
        "sequence default",
    ),
)

TABLE_OPTION_RULES = (
    rule(r"(\bCREATE\s+)GLOBAL\s+(TEMPORARY\s+)", "GLOBAL TEMPORARY table created as TEMPORARY",
         replacement=r"\1\2"),
    rule(r"\s*\bLOB\s*\([^()]*\)\s*STORE\s+AS\b(?:\s+(?:SECUREFILE|BASICFILE))?(?:\s+(?!\()\w+)?"
         r"(?:\s*\((?:[^()]|\([^()]*\))*\))?",
         "LOB storage clause dropped", top_level=True),
    rule(r"\s*\bSTORAGE\s*\([^()]*\)", "Storage clause dropped"),
    rule(r"\s*\bUSING\s+INDEX\b(?:\s+TABLESPACE\s+\w+)?", "USING INDEX clause dropped"),
    warn_rule(r"\s*\bTABLESPACE\s+\w+", "Tablespaces are not supported by SQLite; TABLESPACE option dropped",
              top_level=True),
    rule(r"\s*\b(?:PCTFREE|PCTUSED|INITRANS|MAXTRANS)\s+\d+", "Block storage parameter dropped", top_level=True),
    rule(r"\s*\b(?:NO)?LOGGING\b", "Logging attribute dropped", top_level=True),
    rule(r"\s*\bNOCOMPRESS\b", "Compression attribute dropped", top_level=True),
    warn_rule(r"\s*\bCOMPRESS\b(?:\s+(?:FOR\s+\w+|BASIC|ADVANCED(?:\s+LOW|\s+HIGH)?|\d+))?",
              "Table compression is not supported by SQLite; option dropped", top_level=True),
    rule(r"\s*\b(?:NO)?CACHE\b", "Cache attribute dropped", top_level=True),
    rule(r"\s*\b(?:NO)?PARALLEL\b(?:\s+\d+)?", "Parallel attribute dropped", top_level=True),
    rule(r"\s*\bSEGMENT\s+CREATION\s+(?:IMMEDIATE|DEFERRED)\b", "Segment creation attribute dropped",
         top_level=True),
    rule(r"\s*\b(?:ENABLE|DISABLE)\s+ROW\s+MOVEMENT\b", "Row movement attribute dropped", top_level=True),
    rule(r"\s*\bORGANIZATION\s+(?:HEAP|INDEX)\b", "Table organization dropped", top_level=True),
    rule(r"\s*\bON\s+COMMIT\s+(?:DELETE|PRESERVE)\s+ROWS\b", "ON COMMIT clause dropped", top_level=True),
    rule(r"\s+(?:RELY\s+)?(?:ENABLE|DISABLE)(?:\s+(?:NO)?VALIDATE)?\b", "Constraint state dropped"),
)

STATEMENT_RULES = (
    rule(LEAD + r"COMMENT\s+ON\b", "COMMENT ON statement dropped (SQLite has no object comments)"),
    rule(LEAD + r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:PUBLIC\s+)?SYNONYM\b", "Synonym statement dropped"),
    rule(LEAD + r"(?:GRANT|REVOKE)\b", "Privilege statement dropped (SQLite has no users)"),
    rule(LEAD + r"ALTER\s+SESSION\b", "Session setting dropped"),
    warn_rule(LEAD + r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:EDITIONABLE\s+|NONEDITIONABLE\s+)?"
              r"(?:PACKAGE|PROCEDURE|FUNCTION|TRIGGER|TYPE)\b",
              "PL/SQL objects cannot be carried over to SQLite; statement dropped"),
)


class OracleSchemaRewriter(SchemaRewriter):
    dialect = "oracle"
    translated_features = frozenset({"AUTO_INCREMENT", "DEFAULT", "INDEX"})
    rewrite_markers = (
        r"\bCREATE\b",
        r"\bALTER\b",
        r"\bCOMMENT\s+ON\b",
        r"\b(?:GRANT|REVOKE)\b",
        r"\bNEXTVAL\b",
    )

    def build_passes(self):
        options = self.options
        return (
            RewritePass(
                "auto_increment",
                partial(ddl.auto_increment_pass, markers=AUTO_INCREMENT_MARKERS, type_table=self.type_map,
                        sequences=True),
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
                partial(ddl.strip_features_pass, rules=TABLE_OPTION_RULES, statement_rules=STATEMENT_RULES),
            ),
            RewritePass("indexes", ddl.index_pass, feature="indexes"),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
            RewritePass("tidy", ddl.tidy_pass),
        )

"""
MySQL / MariaDB schema rewriter.

Handles mysqldump-style DDL: backtick identifiers, AUTO_INCREMENT columns,
ENUM/SET and UNSIGNED integer types, inline KEY/UNIQUE KEY definitions and
the table options trailing the element list (ENGINE, CHARSET, COLLATE,
COMMENT, ROW_FORMAT, ...). Session statements emitted by dumps (SET NAMES,
LOCK TABLES) are dropped.
"""

import re
from functools import partial

from ..sql_translator import ddl
from ..sql_translator.ddl import LEAD, PH, rule, warn_rule
from ..sql_translator.identifier_normalizer import quote_identifiers_pass, strip_schema_prefix_pass
from ..sql_translator.models import RewritePass
from ..sql_translator.pipeline import SchemaRewriter

AUTO_INCREMENT_MARKERS = (
    ddl.AutoIncrementMarker(re.compile(r"\bAUTO_INCREMENT\b", re.IGNORECASE), "AUTO_INCREMENT"),
)

TABLE_OPTION_RULES = (
    warn_rule(r"\s*\bENGINE\s*=?\s*\w+", "Storage engines are not supported by SQLite; ENGINE option dropped",
              top_level=True),
    warn_rule(r"\s*\bTABLESPACE\s*=?\s*\w+(?:\s+STORAGE\s+\w+)?",
              "Tablespaces are not supported by SQLite; TABLESPACE option dropped"),
    warn_rule(r"\s*\bCOMPRESSION\s*=?\s*" + PH, "Table compression is not supported by SQLite; option dropped",
              top_level=True),
    rule(r"\s*\bAUTO_INCREMENT\s*=\s*\d+", "Initial AUTO_INCREMENT value dropped", top_level=True),
    rule(r"\s*\b(?:DEFAULT\s+)?(?:CHARACTER\s+SET|CHARSET)\s*=?\s*\w+", "Character set dropped"),
    rule(r"\s*\b(?:DEFAULT\s+)?COLLATE\s*=?\s*(?!(?:BINARY|NOCASE|RTRIM)\b)\w+", "Collation dropped"),
    rule(r"\s*\bCOMMENT\s*=?\s*" + PH, "Comment dropped"),
    rule(r"\s*\b(?:ROW_FORMAT|KEY_BLOCK_SIZE|STATS_PERSISTENT|STATS_AUTO_RECALC|STATS_SAMPLE_PAGES|"
         r"PACK_KEYS|CHECKSUM|DELAY_KEY_WRITE|AVG_ROW_LENGTH|MAX_ROWS|MIN_ROWS|INSERT_METHOD)\s*=?\s*\w+",
         "Physical storage option dropped", top_level=True),
)

STATEMENT_RULES = (
    rule(LEAD + r"SET\s+(?:NAMES|CHARACTER\s+SET|FOREIGN_KEY_CHECKS|UNIQUE_CHECKS|SQL_MODE|TIME_ZONE|@)",
         "Session setting dropped"),
    rule(LEAD + r"(?:LOCK|UNLOCK)\s+TABLES\b", "Table lock statement dropped"),
    rule(LEAD + r"USE\s+", "USE statement dropped (SQLite databases are files)"),
)


class MySQLSchemaRewriter(SchemaRewriter):
    dialect = "mysql"
    translated_features = frozenset({"AUTO_INCREMENT", "DEFAULT", "CHECK", "INDEX"})
    rewrite_markers = (
        r"`",
        r"\bCREATE\b",
        r"\bALTER\b",
        r"\bDROP\s+INDEX\b",
        r"^\s*(?:SET|LOCK|UNLOCK|USE)\b",
        r"\bAUTO_INCREMENT\b",
    )

    def build_passes(self):
        options = self.options
        return (
            RewritePass("quote_identifiers", partial(quote_identifiers_pass, quote_styles=("backtick",))),
            RewritePass(
                "auto_increment",
                partial(ddl.auto_increment_pass, markers=AUTO_INCREMENT_MARKERS, type_table=self.type_map),
                feature="auto_increment",
            ),
            RewritePass(
                "type_substitution",
                partial(
                    ddl.type_substitution_pass,
                    type_table=self.type_map,
                    retain_length=options.retain_length_qualifiers,
                    enum_checks=options.transformations.constraints,
                ),
            ),
            RewritePass("default_values", ddl.default_values_pass, feature="default_values"),
            RewritePass(
                "strip_features",
                partial(ddl.strip_features_pass, rules=TABLE_OPTION_RULES, statement_rules=STATEMENT_RULES),
            ),
            RewritePass("indexes", partial(ddl.index_pass, inline_keys=True), feature="indexes"),
            RewritePass("strip_schema_prefix", strip_schema_prefix_pass),
            RewritePass("tidy", ddl.tidy_pass),
        )

"""Natural-language search over the CRM table.

Flow:
1. Build the fixed search prompt (table, columns, shape rules, examples)
2. Ask the model for SQL
3. Sanitize the reply down to one candidate statement
4. Validate it, fail closed on anything that is not a scoped SELECT
5. Execute the read-only query through the record store

The model is treated as an untrusted code generator. Nothing it returns is
executed unless it passed the gate in guard_sql, and nothing is ever repaired.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from zeroclick.ai_feature.model import GenerativeModel
from zeroclick.ai_feature.prompts import build_search_prompt
from zeroclick.core.config import Settings
from zeroclick.core.errors import ErrorKind, UnsafeQueryError
from zeroclick.core.etl.load import RecordStore
from zeroclick.core.schemas import GuardedQuery

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```[a-zA-Z]*")
SELECT_PATTERN = re.compile(r"\bselect\b", re.IGNORECASE)
STRING_LITERAL_PATTERN = re.compile(r"'(?:[^']|'')*'")
WRITE_KEYWORDS = re.compile(
    r"\b(insert|update|delete|merge|upsert|drop|alter|create|truncate|grant|"
    r"revoke|copy|call|execute|vacuum|set|into)\b",
    re.IGNORECASE,
)
SET_OPERATORS = re.compile(r"\b(union|intersect|except)\b", re.IGNORECASE)
SYSTEM_IDENTIFIERS = re.compile(
    r"\b(pg_\w*|information_schema|dblink\w*|lo_\w+)\b", re.IGNORECASE
)
# FROM inside expressions, not a table source
EXPRESSION_FROM = re.compile(
    r"\bextract\s*\(\s*\w+\s+from\b|\bis\s+(not\s+)?distinct\s+from\b", re.IGNORECASE
)
FROM_CLAUSE = re.compile(
    r"\bfrom\s+(.*?)(?=\b(?:where|group|order|limit|offset|having|window|fetch|"
    r"join|inner|left|right|full|cross|natural|on|using|select|from)\b|\)|$)",
    re.IGNORECASE | re.DOTALL,
)
JOIN_TARGET = re.compile(r"\bjoin\s+([^\s,()]+|\()", re.IGNORECASE)


def sanitize_sql(raw: str) -> str:
    """
    Cut a model reply down to its candidate statement.

    - remove markdown fence markers (``` and ```sql)
    - strip one wrapping pair of backticks
    - drop everything before the first SELECT keyword
    - trim whitespace and a single trailing semicolon
    """
    if not raw:
        return ""

    sql = FENCE_PATTERN.sub("", raw).strip()

    if len(sql) >= 2 and sql.startswith("`") and sql.endswith("`"):
        sql = sql[1:-1].strip()

    match = SELECT_PATTERN.search(sql)
    if match:
        sql = sql[match.start():]

    sql = sql.strip()
    if sql.endswith(";"):
        sql = sql[:-1].rstrip()
    return sql


def table_sources(code: str) -> List[str]:
    """
    First token of every FROM item (comma lists included) and JOIN target.
    A subquery shows up as "(".

    Example:
        "SELECT * FROM crm_records r, pg_user JOIN x ON ..." → ["crm_records", "pg_user", "x"]
    """
    code = EXPRESSION_FROM.sub(" ", code)
    targets = []
    for clause in FROM_CLAUSE.finditer(code):
        for item in clause.group(1).split(","):
            item = item.strip()
            targets.append(item.split()[0] if item else "")
    targets.extend(match.group(1) for match in JOIN_TARGET.finditer(code))
    return targets


def _is_crm_table(target: str, table_name: str, schema: Optional[str]) -> bool:
    name = target.replace('"', "").lower()
    table = table_name.lower()
    return name in {table, f"{(schema or 'public').lower()}.{table}"}


def guard_sql(raw: str, table_name: str, schema: Optional[str] = None) -> GuardedQuery:
    """
    Sanitize and validate. Only is_safe=True results may be executed.

    Checks, in order:
        1. starts with SELECT
        2. a single statement
        3. no write or DDL keywords outside string literals
        4. no set operations, no system catalogs or server-side functions
        5. every FROM / JOIN source is the CRM table or a subquery
        6. references the CRM table
    """
    sql = sanitize_sql(raw)

    if not sql.upper().startswith("SELECT"):
        return GuardedQuery(sql=sql, is_safe=False, reason="not a SELECT statement")

    # Literals may legitimately contain ';' or words like 'update'
    code = STRING_LITERAL_PATTERN.sub("''", sql)

    if ";" in code:
        return GuardedQuery(sql=sql, is_safe=False, reason="multiple statements")

    if WRITE_KEYWORDS.search(code):
        return GuardedQuery(sql=sql, is_safe=False, reason="write or DDL keyword")

    if SET_OPERATORS.search(code):
        return GuardedQuery(sql=sql, is_safe=False, reason="set operation")

    if SYSTEM_IDENTIFIERS.search(code):
        return GuardedQuery(sql=sql, is_safe=False, reason="system catalog or function")

    for target in table_sources(code):
        if target != "(" and not _is_crm_table(target, table_name, schema):
            return GuardedQuery(sql=sql, is_safe=False, reason="foreign table source")

    if not re.search(rf"\b{re.escape(table_name)}\b", code, re.IGNORECASE):
        return GuardedQuery(sql=sql, is_safe=False, reason="CRM table not referenced")

    return GuardedQuery(sql=sql, is_safe=True)


class SqlGuard:
    def __init__(self, model: GenerativeModel, settings: Settings):
        self.model = model
        self.settings = settings

    async def translate(self, question: str) -> GuardedQuery:
        """
        Turn a question into a validated SELECT.

        Raises:
            UnsafeQueryError: no safe query could be produced.
        """
        question = (question or "").strip()
        if not question:
            raise UnsafeQueryError("Search query is empty", kind=ErrorKind.INVALID_INPUT)

        prompt = build_search_prompt(
            question,
            table=self.settings.qualified_table_name,
            limit=self.settings.SEARCH_ROW_LIMIT,
        )
        reply = await self.model.generate(
            prompt, temperature=self.settings.SEARCH_TEMPERATURE
        )
        if not reply.is_valid:
            raise UnsafeQueryError("No results derivable from that question")

        guarded = guard_sql(
            reply.text, self.settings.CRM_TABLE_NAME, self.settings.CRM_TABLE_SCHEMA
        )
        if not guarded.is_safe:
            logger.warning(
                f"Rejected generated SQL ({guarded.reason}), prompt {reply.prompt_hash}"
            )
            raise UnsafeQueryError("No results derivable from that question")

        logger.info(f"Generated SQL accepted, prompt {reply.prompt_hash}")
        logger.debug(f"Generated SQL: {guarded.sql}")
        return guarded


class SearchService:
    def __init__(self, guard: SqlGuard, store: RecordStore, settings: Settings):
        self.guard = guard
        self.store = store
        self.settings = settings

    async def search(self, question: str) -> List[Dict[str, Any]]:
        guarded = await self.guard.translate(question)
        return await self.store.query(guarded.sql, row_limit=self.settings.SEARCH_ROW_LIMIT)

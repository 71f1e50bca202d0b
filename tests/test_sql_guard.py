import pytest

from zeroclick.ai_feature.service import SearchService, SqlGuard, guard_sql, sanitize_sql
from zeroclick.core.errors import UnsafeQueryError

GOOD_SQL = (
    "SELECT * FROM crm_records WHERE at_risk = TRUE "
    "ORDER BY created_at DESC LIMIT 50"
)


@pytest.mark.parametrize(
    "raw",
    [
        GOOD_SQL,
        f"```sql\n{GOOD_SQL}\n```",
        f"```\n{GOOD_SQL};\n```",
        f"`{GOOD_SQL}`",
        f"Here is your query:\n{GOOD_SQL}",
        f"  {GOOD_SQL};  ",
    ],
)
def test_sanitize_strips_wrappers_and_commentary(raw):
    assert sanitize_sql(raw) == GOOD_SQL


def test_sanitize_is_case_insensitive_on_select():
    assert sanitize_sql("sure: select * from crm_records") == "select * from crm_records"


def test_guard_accepts_scoped_select():
    guarded = guard_sql(f"```sql\n{GOOD_SQL}\n```", "crm_records")
    assert guarded.is_safe
    assert guarded.sql == GOOD_SQL


def test_guard_accepts_schema_qualified_table():
    guarded = guard_sql("SELECT * FROM public.crm_records LIMIT 50", "crm_records")
    assert guarded.is_safe


def test_guard_allows_keywords_inside_string_literals():
    sql = "SELECT * FROM crm_records WHERE next_step ILIKE '%update; delete%' LIMIT 50"
    assert guard_sql(sql, "crm_records").is_safe


@pytest.mark.parametrize(
    "raw",
    [
        "I could not find any deals matching that description.",
        "",
        "DELETE FROM crm_records",
        "UPDATE crm_records SET at_risk = FALSE",
        "SELECT * FROM crm_records; DROP TABLE crm_records",
        "SELECT * INTO stolen FROM crm_records",
        "SELECT * FROM users_table LIMIT 50",
        "SELECT 1",
        "SELECT usename, passwd FROM pg_shadow UNION SELECT contact_name, transcript FROM crm_records",
        "SELECT * FROM crm_records, pg_user",
        "SELECT pg_read_file('/etc/passwd') FROM crm_records",
        "SELECT * FROM crm_records, accounts",
        "SELECT * FROM crm_records r JOIN accounts a ON a.id = r.id",
        "SELECT * FROM information_schema.tables, crm_records",
        "SELECT contact_name FROM crm_records INTERSECT SELECT name FROM staff",
        "SELECT * FROM (SELECT * FROM secrets) s, crm_records",
        "SELECT * FROM other_schema.crm_records",
    ],
)
def test_guard_fails_closed(raw):
    assert guard_sql(raw, "crm_records").is_safe is False


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM crm_records r JOIN crm_records s ON s.company_name = r.company_name LIMIT 50",
        "SELECT * FROM (SELECT * FROM crm_records WHERE at_risk) recent ORDER BY created_at DESC LIMIT 50",
        "SELECT EXTRACT(MONTH FROM follow_up_date) AS m, COUNT(*) FROM crm_records GROUP BY m LIMIT 50",
        'SELECT * FROM "crm_records" WHERE next_step ILIKE \'%from pg_user%\' LIMIT 50',
    ],
)
def test_guard_accepts_reads_confined_to_the_crm_table(sql):
    assert guard_sql(sql, "crm_records").is_safe


@pytest.mark.asyncio
async def test_translate_returns_guarded_query(fake_model, settings):
    fake_model.replies.append(f"```sql\n{GOOD_SQL}\n```")
    guard = SqlGuard(fake_model, settings)

    guarded = await guard.translate("show me deals at risk")

    assert guarded.is_safe
    assert guarded.sql == GOOD_SQL
    prompt = fake_model.calls[0]["user_text"]
    assert "crm_records" in prompt
    assert "created_at DESC" in prompt
    assert "LIMIT 50" in prompt
    assert 'User Query: "show me deals at risk"' in prompt
    assert fake_model.calls[0]["json_output"] is False


@pytest.mark.asyncio
async def test_prompt_names_the_fully_qualified_table(fake_model, settings):
    qualified = settings.model_copy(update={"CRM_TABLE_SCHEMA": "public"})
    fake_model.replies.append("SELECT * FROM public.crm_records LIMIT 50")

    await SqlGuard(fake_model, qualified).translate("everything")

    assert "You must query the table: public.crm_records" in fake_model.calls[0]["user_text"]


@pytest.mark.asyncio
async def test_prose_reply_never_reaches_the_store(fake_model, fake_store, settings):
    """Scenario B: no SELECT in the reply → UnsafeQueryError, store untouched"""
    fake_model.replies.append("There are a few deals at risk, mostly from Acme.")
    searcher = SearchService(SqlGuard(fake_model, settings), fake_store, settings)

    with pytest.raises(UnsafeQueryError) as exc_info:
        await searcher.search("deals at risk")

    assert fake_store.queries == []
    # The raw model text is never echoed back
    assert "Acme" not in exc_info.value.message


@pytest.mark.asyncio
async def test_empty_model_reply_is_unsafe(fake_model, fake_store, settings):
    searcher = SearchService(SqlGuard(fake_model, settings), fake_store, settings)

    with pytest.raises(UnsafeQueryError):
        await searcher.search("deals at risk")

    assert fake_store.queries == []


@pytest.mark.asyncio
async def test_search_runs_guarded_sql_with_row_limit(fake_model, fake_store, settings):
    fake_model.replies.append(GOOD_SQL)
    fake_store.rows = [{"contact_name": "Raj", "at_risk": True}]
    searcher = SearchService(SqlGuard(fake_model, settings), fake_store, settings)

    rows = await searcher.search("deals at risk")

    assert rows == [{"contact_name": "Raj", "at_risk": True}]
    assert fake_store.queries == [(GOOD_SQL, 50)]

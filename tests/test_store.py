import importlib.util
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from zeroclick.core import models
from zeroclick.core.config import get_settings
from zeroclick.core.errors import UpstreamServiceError
from zeroclick.core.etl.extract import ExtractionService
from zeroclick.core.etl.load import RecordStore, to_orm
from zeroclick.core.schemas import CrmRecord, Sentiment, SourceKind

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
MIGRATION_PATH = (
    Path(__file__).resolve().parent.parent
    / "alembic" / "versions" / "202410170001_create_crm_records.py"
)


def make_record(contact_name, minutes=0, **fields):
    return CrmRecord(
        contact_name=contact_name,
        transcript=f"memo about {contact_name}",
        created_at=NOW + timedelta(minutes=minutes),
        **fields,
    )


def test_to_orm_maps_enum_and_date():
    row = to_orm(
        make_record("Raj", sentiment=Sentiment.POSITIVE, follow_up_date="2024-03-05")
    )
    assert row.sentiment == "Positive"
    assert row.follow_up_date.isoformat() == "2024-03-05"
    assert row.deal_value_usd is None


@pytest.mark.asyncio
async def test_insert_then_recent(db_session):
    store = RecordStore(db_session)

    await store.insert(make_record("Older", minutes=0))
    row = await store.insert(make_record("Newer", minutes=5, deal_value_usd=1000))

    assert row.id is not None
    assert row.deal_value_usd == 1000

    recent = await store.recent(limit=50)
    assert [r.contact_name for r in recent] == ["Newer", "Older"]
    assert len(await store.recent(limit=1)) == 1


@pytest.mark.asyncio
async def test_query_is_bounded_by_row_limit(db_session):
    store = RecordStore(db_session)
    for i in range(3):
        await store.insert(make_record(f"Contact {i}", minutes=i))

    rows = await store.query(
        "SELECT contact_name FROM crm_records ORDER BY created_at DESC", row_limit=2
    )

    assert rows == [{"contact_name": "Contact 2"}, {"contact_name": "Contact 1"}]


@pytest.mark.asyncio
async def test_broken_sql_maps_to_upstream_error(db_session):
    store = RecordStore(db_session)

    with pytest.raises(UpstreamServiceError):
        await store.query("SELECT * FROM missing_table", row_limit=50)


@pytest.mark.asyncio
async def test_oversized_deal_value_keeps_the_rest_of_the_record(
    db_session, fake_model, settings
):
    fake_model.replies.append(
        '{"contact_name": "Raj", "company_name": "Acme", '
        '"deal_value_usd": 100000000000000000000}'
    )
    store = RecordStore(db_session)
    service = ExtractionService(fake_model, store, settings)

    record = await service.extract("Raj from Acme, huge deal", SourceKind.VOICE)

    assert record.deal_value_usd is None
    rows = await store.recent()
    assert [(r.contact_name, r.deal_value_usd) for r in rows] == [("Raj", None)]


@pytest.mark.asyncio
async def test_large_deal_value_fits_the_column(db_session):
    store = RecordStore(db_session)

    row = await store.insert(make_record("Whale", deal_value_usd=5_000_000_000))

    assert row.deal_value_usd == 5_000_000_000


def test_orm_and_migration_share_the_configured_table():
    spec = importlib.util.spec_from_file_location(
        "create_crm_records", MIGRATION_PATH
    )
    migration = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(migration)

    configured = get_settings()
    assert migration.TABLE == configured.CRM_TABLE_NAME
    assert migration.SCHEMA == configured.CRM_TABLE_SCHEMA
    assert models.CrmRecord.__table__.name == migration.TABLE
    assert models.CrmRecord.__table__.schema == migration.SCHEMA

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from zeroclick.ai_feature.model import ModelReply
from zeroclick.api import deps
from zeroclick.core.config import Settings, get_settings
from zeroclick.core.database import Base, get_db
from zeroclick.core.errors import UpstreamServiceError
from zeroclick.core.etl.ingest import Alternative, TranscriptSegment
from zeroclick.core.storage import UploadBroker
from zeroclick.main import app


# =========================
# Fakes for the external collaborators
# =========================
class FakeModel:
    """Returns queued replies in order; None once the queue is empty."""

    def __init__(self):
        self.replies = []
        self.calls = []

    async def generate(
        self, user_text, *, system_instruction=None, json_output=False, temperature=0.1
    ):
        self.calls.append(
            {
                "user_text": user_text,
                "system_instruction": system_instruction,
                "json_output": json_output,
                "temperature": temperature,
            }
        )
        text = self.replies.pop(0) if self.replies else None
        return ModelReply(
            text=text,
            model_version="fake/test",
            prompt_hash="0" * 16,
            timestamp=datetime.now(timezone.utc),
        )


class FakeStore:
    def __init__(self):
        self.inserted = []
        self.queries = []
        self.rows = []

    async def insert(self, record):
        self.inserted.append(record)
        return record

    async def query(self, sql, row_limit):
        self.queries.append((sql, row_limit))
        return self.rows[:row_limit]


class FakeTranscriber:
    def __init__(self):
        self.lines = []
        self.error = None
        self.calls = []

    async def transcribe(self, uri, content_type=None):
        self.calls.append((uri, content_type))
        if self.error:
            raise UpstreamServiceError(self.error)
        return [
            TranscriptSegment(alternatives=[Alternative(transcript=line, confidence=0.9)])
            for line in self.lines
        ]


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def generate_signed_url(self, **kwargs):
        self.bucket.signed.append((self.name, kwargs))
        return f"https://storage.example/{self.bucket.name}/{self.name}?sig=test"


class FakeBucket:
    def __init__(self, name):
        self.name = name
        self.signed = []

    def blob(self, name):
        return FakeBlob(self, name)


class FakeStorageClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket(name))


# =========================
# Fixtures
# =========================
@pytest.fixture
def settings():
    # No schema prefix: SQLite has no "public" schema
    return Settings(
        _env_file=None,
        CRM_TABLE_SCHEMA=None,
        UPLOAD_BUCKET="zero-click-uploads-test",
        GOOGLE_APPLICATION_CREDENTIALS_JSON=None,
        GOOGLE_APPLICATION_CREDENTIALS=None,
    )


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def fake_storage_client():
    return FakeStorageClient()


# Fresh SQLite file per test, tables created from the ORM metadata
@pytest_asyncio.fixture(scope="function")
async def db_session(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'zero_click_test.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    async with TestingSessionLocal() as session:
        yield session
        await session.rollback()

    await engine.dispose()


# Client
@pytest_asyncio.fixture(scope="function")
async def client(
    db_session, settings, fake_model, fake_transcriber, fake_storage_client
):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[deps.get_model] = lambda: fake_model
    app.dependency_overrides[deps.get_transcriber] = lambda: fake_transcriber
    app.dependency_overrides[deps.get_upload_broker] = lambda: UploadBroker(
        settings, client=fake_storage_client
    )

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def raj_reply():
    """Model reply for: Met Raj from Acme, he wants the ₹80,000 deal..."""
    return (
        '{"contact_name": "Raj", "company_name": "Acme", "deal_value_usd": 1000, '
        '"sentiment": "Positive", "next_step": "Confirm the deal with Raj", '
        '"follow_up_date": "2024-03-05", '
        '"full_summary": "Raj from Acme wants the deal and will confirm by March 5th.", '
        '"at_risk": false}'
    )


@pytest.fixture
def gemini_response():
    """Builds an object shaped like a google-genai GenerateContentResponse."""

    def build(*texts):
        parts = [SimpleNamespace(text=text) for text in texts]
        return SimpleNamespace(
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))]
        )

    return build

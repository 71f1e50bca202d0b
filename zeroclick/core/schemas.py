from datetime import date, datetime
from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =========================
# Enums
# =========================
class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class SourceKind(str, Enum):
    VOICE = "voice"
    EMAIL = "email"


# =========================
# CRM RECORD
# =========================
class CrmFields(BaseModel):
    """The eight fields the model extracts, after normalization."""

    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    deal_value_usd: Optional[int] = None
    sentiment: Optional[Sentiment] = None
    next_step: Optional[str] = None
    follow_up_date: Optional[str] = None  # YYYY-MM-DD
    full_summary: Optional[str] = None
    at_risk: Optional[bool] = None

    model_config = ConfigDict(frozen=True)


class CrmRecord(CrmFields):
    transcript: str
    created_at: datetime


class CrmRecordResponse(CrmRecord):
    id: int
    follow_up_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


# =========================
# EXTRACTION
# =========================
class VoiceMemoRequest(BaseModel):
    transcript: str = Field(min_length=1)


class EmailRequest(BaseModel):
    email_body: str = Field(min_length=1)


# =========================
# SEARCH
# =========================
class QueryRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)


class GuardedQuery(BaseModel):
    sql: str
    is_safe: bool
    reason: Optional[str] = None


class SearchResponse(BaseModel):
    rows: List[Dict[str, Any]]
    row_count: int


# =========================
# UPLOADS / INGESTION
# =========================
class UploadUrlRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=200)
    file_type: str
    file_size: int = Field(gt=0)


class UploadUrlResponse(BaseModel):
    url: str
    bucket: str
    object_name: str
    expires_at: datetime
    headers: Dict[str, str] = {}


class StorageObjectEvent(BaseModel):
    """Object-creation notification for an uploaded audio file."""

    bucket: str
    name: str
    content_type: Optional[str] = Field(default=None, alias="contentType")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def uri(self) -> str:
        return f"gs://{self.bucket}/{self.name}"


class IngestionResponse(BaseModel):
    object_uri: str
    state: str
    record: Optional[CrmRecord] = None
    error: Optional[str] = None
    logs: List[Dict[str, Any]] = []

from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    Boolean,
    Date,
    TIMESTAMP,
    Text,
)
from sqlalchemy.sql import func

from zeroclick.core.config import get_settings
from zeroclick.core.database import Base

settings = get_settings()


# =========================
# CRM record (append-only)
# =========================
class CrmRecord(Base):
    """
    One structured record per processed voice memo, email or audio upload.

    Rows are only ever inserted. Consumers read them newest first by
    created_at.
    """

    __tablename__ = settings.CRM_TABLE_NAME
    __table_args__ = {"schema": settings.CRM_TABLE_SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)

    contact_name = Column(String)
    company_name = Column(String)
    deal_value_usd = Column(BigInteger)
    sentiment = Column(String(16))  # Positive / Neutral / Negative
    next_step = Column(Text)
    follow_up_date = Column(Date)
    full_summary = Column(Text)
    at_risk = Column(Boolean)

    transcript = Column(Text, nullable=False)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

"""create crm_records

Revision ID: 202410170001
Revises:
Create Date: 2024-10-17 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from zeroclick.core.config import get_settings


revision: str = "202410170001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Same settings the ORM model and the SQL guard read
settings = get_settings()
TABLE = settings.CRM_TABLE_NAME
SCHEMA = settings.CRM_TABLE_SCHEMA


def upgrade() -> None:
    op.create_table(
        TABLE,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contact_name", sa.String(), nullable=True),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("deal_value_usd", sa.BigInteger(), nullable=True),
        sa.Column("sentiment", sa.String(length=16), nullable=True),
        sa.Column("next_step", sa.Text(), nullable=True),
        sa.Column("follow_up_date", sa.Date(), nullable=True),
        sa.Column("full_summary", sa.Text(), nullable=True),
        sa.Column("at_risk", sa.Boolean(), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        f"ix_{TABLE}_created_at", TABLE, ["created_at"], unique=False, schema=SCHEMA
    )


def downgrade() -> None:
    op.drop_index(f"ix_{TABLE}_created_at", table_name=TABLE, schema=SCHEMA)
    op.drop_table(TABLE, schema=SCHEMA)

"""OTP codes delivered by SMS: method and phone columns.

Revision ID: b7e2d4c91a3f
Revises: a1c4e7b20f10
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b7e2d4c91a3f"
down_revision: Union[str, Sequence[str], None] = "a1c4e7b20f10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("otp_verifications") as batch:
        batch.add_column(sa.Column("method", sa.String(8), nullable=False, server_default="email"))
        batch.add_column(sa.Column("phone", sa.String(20), nullable=True))
        batch.alter_column("email", existing_type=sa.String(320), nullable=True)
    op.create_index("idx_otp_phone_created", "otp_verifications", ["phone", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_otp_phone_created", table_name="otp_verifications")
    op.execute("DELETE FROM otp_verifications WHERE method = 'sms'")
    with op.batch_alter_table("otp_verifications") as batch:
        batch.alter_column("email", existing_type=sa.String(320), nullable=False)
        batch.drop_column("phone")
        batch.drop_column("method")

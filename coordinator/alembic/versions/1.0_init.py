# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""init

Revision ID: 1.0
Revises: 
Create Date: 2024-06-03 10:21:44.118203

Credential references & status sync records.
Will check if tables already exist before attempting to create them.

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1.0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    existing_tables = inspector.get_table_names()
    if "vc_reference" not in existing_tables:
        op.create_table(
            "vc_reference",
            sa.Column("credential_id", sa.TEXT, primary_key=True),
            sa.Column("sequence", sa.INTEGER, nullable=False),
            sa.Column("index_allocator", sa.TEXT, nullable=True),
            sa.Column("reference", sa.JSON, nullable=False),
            sa.Column("created", sa.BIGINT, nullable=False),
            sa.Column("updated", sa.BIGINT, nullable=False),
        )
    if "vc_reference_sync" not in existing_tables:
        op.create_table(
            "vc_reference_sync",
            sa.Column("id", sa.TEXT, primary_key=True),
            sa.Column("sequence", sa.INTEGER, nullable=False),
            sa.Column("cursor", sa.JSON, nullable=True),
            sa.Column("created", sa.BIGINT, nullable=False),
            sa.Column("updated", sa.BIGINT, nullable=False),
        )


def downgrade() -> None:
    op.drop_table("vc_reference_sync")
    op.drop_table("vc_reference")

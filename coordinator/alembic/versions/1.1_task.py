# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""coordinator tasks

Revision ID: 1.1
Revises: 1.0
Create Date: 2024-07-15 09:42:10.532871

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1.1'
down_revision: Union[str, None] = '1.0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())
    if "vc_coordinator_task" in inspector.get_table_names():
        return
    op.create_table(
        "vc_coordinator_task",
        sa.Column("id", sa.TEXT, primary_key=True),
        sa.Column("sequence", sa.INTEGER, nullable=False),
        sa.Column("task", sa.JSON, nullable=False),
        sa.Column("expires", sa.BIGINT, nullable=True),
        sa.Column("created", sa.BIGINT, nullable=False),
        sa.Column("updated", sa.BIGINT, nullable=False),
    )
    op.create_index("ix_vc_coordinator_task_expires", "vc_coordinator_task", ["expires"])
    op.create_index("ix_vc_coordinator_task_created", "vc_coordinator_task", ["created"])


def downgrade() -> None:
    op.drop_index("ix_vc_coordinator_task_created", table_name="vc_coordinator_task")
    op.drop_index("ix_vc_coordinator_task_expires", table_name="vc_coordinator_task")
    op.drop_table("vc_coordinator_task")

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Runs the coordinator migrations online against the configured database"""

from alembic import context

import common.config
import common.db.postgres as db

import coordinator.db.reference  # noqa:F401 registers the tables
import coordinator.db.sync_record  # noqa:F401
import coordinator.db.task  # noqa:F401

target_metadata = db.Base.metadata


def run_migrations_online() -> None:
    engine = db.get_engine(common.config.DBConfig())
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError("Offline migrations are not supported.")
run_migrations_online()

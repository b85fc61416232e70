# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import contextlib
import logging

import common.config
import common.db.postgres as db

import coordinator.config as conf

_logger = logging.getLogger(__name__)


@contextlib.contextmanager
def migration_lifespan() -> contextlib.AbstractContextManager:
    """
    Lifespan bringing the database schema to the latest alembic revision on startup.
    Disabled with ENABLE_DATABASE_MIGRATION=False, e.g. if a separate job migrates.
    """
    if conf.CoordinatorConfig().enable_database_migration:
        db_config = common.config.DBConfig()
        # Creates the schema if missing
        db.session_factory(db_config)
        db.alembic_upgrade(db_config.ALEMBIC_CONFIG_FILE)
    else:
        _logger.info("Database migration disabled.")
    yield

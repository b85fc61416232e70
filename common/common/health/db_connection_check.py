# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Readiness checks for the sql database backing the record stores."""

import logging

from sqlalchemy import text

from fastapi import Response

import common.config as conf
import common.db.postgres as db
from common.health import base

_logger = logging.getLogger(__name__)


def check_health_of_db(session_to_check: db.Session) -> base.HealthStatus:
    """Checks whether the session can reach the database."""
    result = False
    try:
        session_to_check.execute(text('SELECT 1'))
        result = session_to_check.is_active
    except Exception:
        _logger.exception("Error in health check db probe.")
    return base.HealthStatus.healthy if result else base.HealthStatus.unhealthy


class ReadinessHealthResponseWithDBInject(base.HealthResponse):
    db_connectivity: base.HealthStatus = base.HealthStatus.unhealthy


class HealthAPIRouterWithDBInject(base.HealthAPIRouter):
    """Health endpoints whose readiness probe includes the default database."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(ReadinessHealthResponseWithDBInject, *args, **kwargs)

    def get_readiness_probe(
        self,
        response: Response,
        config: conf.inject,
        session: db.inject,
    ) -> ReadinessHealthResponseWithDBInject:
        result = ReadinessHealthResponseWithDBInject(db_connectivity=check_health_of_db(session))
        return self._build_readiness_probe(result, response, config)

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Health checks of the coordinator; readiness depends on the database"""

from common import health

router = health.HealthAPIRouterWithDBInject()

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
VC Status Coordinator

Keeps references to issued verifiable credentials. Their status is synchronized with the
status service by `coordinator.sync.StatusSynchronizer`; this app exposes the references and
the progress of the status syncs.

Bitstring Status List
https://www.w3.org/TR/vc-bitstring-status-list/

Authorization Capabilities
https://w3c-ccg.github.io/zcap-spec/
"""

# FastAPI
from asgi_correlation_id import CorrelationIdMiddleware

from common.fastapi_extensions import ExtendedFastAPI

from coordinator.exception import configure_exception_handlers
import coordinator.route.reference as reference
import coordinator.route.sync as sync
import coordinator.route.health as health
import coordinator.migration as migration
import coordinator.config as conf

app = ExtendedFastAPI(
    conf.inject,
    lifespan_functions=[migration.migration_lifespan()],
)

app.include_router(reference.router)
app.include_router(sync.router)
app.include_router(health.router)

app.add_middleware(
    CorrelationIdMiddleware,
)

configure_exception_handlers(app)

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
VC Status Coordinator

Keeps references to issued verifiable credentials and synchronizes their status
with a remote status service.
"""

from common.status_list import expand_credential_status  # noqa:F401
from coordinator.models import (  # noqa:F401
    CredentialReference,
    StatusUpdatePage,
    SyncOptions,
    SyncResult,
    parse_status_update,
)
from coordinator.sync import PageFunctionSource, StatusSynchronizer, StatusUpdateSource  # noqa:F401

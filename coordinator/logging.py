# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from common.logging import operations


class CoordinatorOperationsLogEntry(operations.OperationsLogEntry):
    """Container for status synchronization specific logging."""

    class Operation(Enum):
        status_sync = "STATUS_SYNC"

    class Step(Enum):
        sync_progress = "PROGRESS"
        sync_page = "PAGE"
        sync_validation = "VALIDATION"
        sync_credential = "CREDENTIAL"
        sync_cursor = "CURSOR"

    operation: Operation
    step: Step

    sync_id: str | None = None
    credential_id: str | None = None
    failed_step: str | None = None
    """Step of the status update which failed, e.g. remote_update"""
    update_count: int | None = None

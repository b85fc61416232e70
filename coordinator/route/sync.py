# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import fastapi

import common.db.postgres as db

from coordinator import models
import coordinator.db.sync_record as db_sync

TAG = "Status Sync"

router = fastapi.APIRouter(prefix="/sync", tags=[TAG])


@router.get("/{sync_id}")
def get_sync_progress(sync_id: str, session: db.inject) -> models.SyncRecord:
    """Cursor & sequence of the status sync; 404 if it never ran"""
    return db_sync.get(session, sync_id)

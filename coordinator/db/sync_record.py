# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Storage for the progress of status syncs; one record per sync id, created lazily.
"""

import sqlalchemy.exc
import sqlalchemy.orm as sa_orm
from sqlalchemy import BigInteger, Integer, JSON, TEXT, update as sa_update
from sqlalchemy.orm import Mapped, mapped_column

import common.db.postgres as db

from coordinator import models
from coordinator.exception import DuplicateError, SequenceConflictError, SyncRecordNotFoundError


class VcReferenceSync(db.Base):
    """
    Cursor of a status sync with an external system
    """

    __tablename__ = "vc_reference_sync"
    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    cursor: Mapped[dict] = mapped_column(JSON(none_as_null=True), nullable=True)
    created: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def to_record(self) -> models.SyncRecord:
        return models.SyncRecord(
            sync=models.SyncState(id=self.id, sequence=self.sequence, cursor=self.cursor),
            meta=models.RecordMeta(created=self.created, updated=self.updated),
        )


def create(session: sa_orm.Session, sync_id: str) -> models.SyncRecord:
    """
    Creates an empty sync record at sequence 0.
    Raises DuplicateError if it already exists.
    """
    return _insert(session, sync_id)


def _insert(session: sa_orm.Session, sync_id: str) -> models.SyncRecord:
    if session.get(VcReferenceSync, sync_id) is not None:
        raise DuplicateError("Duplicate sync record.", sync_id=sync_id)
    now = db.now_millis()
    entity = VcReferenceSync(id=sync_id, sequence=0, cursor=None, created=now, updated=now)
    session.add(entity)
    try:
        session.commit()
    except sqlalchemy.exc.IntegrityError as e:
        session.rollback()
        raise DuplicateError("Duplicate sync record.", sync_id=sync_id) from e
    return entity.to_record()


def get(session: sa_orm.Session, sync_id: str, create: bool = False) -> models.SyncRecord:
    """
    Gets the sync record. With `create` a missing record is created.
    Raises SyncRecordNotFoundError otherwise.
    """
    entity = session.get(VcReferenceSync, sync_id)
    if entity is not None:
        return entity.to_record()
    if not create:
        raise SyncRecordNotFoundError(sync_id=sync_id)
    try:
        return _insert(session, sync_id)
    except DuplicateError:
        # Created concurrently
        return session.get(VcReferenceSync, sync_id).to_record()


def update(session: sa_orm.Session, sync: models.SyncState) -> models.SyncRecord:
    """
    Replaces the sync record if the stored sequence is `sync.sequence - 1`.
    Raises SequenceConflictError otherwise, the stored record is unchanged then.
    """
    now = db.now_millis()
    result = session.execute(
        sa_update(VcReferenceSync)
        .where(VcReferenceSync.id == sync.id, VcReferenceSync.sequence == sync.sequence - 1)
        .values(sequence=sync.sequence, cursor=sync.cursor, updated=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        stored = session.get(VcReferenceSync, sync.id)
        raise SequenceConflictError(sync_id=sync.id, expected=None if stored is None else stored.sequence + 1)
    session.commit()
    return session.get(VcReferenceSync, sync.id).to_record()

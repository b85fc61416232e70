# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Storage for coordinator tasks.

A task is identified by the content id of its request, so the same request always maps to
the same task. With an HMAC key the id does not disclose the request; it is prefixed with
`urn:hmac:<key id>:`, otherwise with `urn:hash:`.
Updates are sequence gated like the references.
"""

import logging
import urllib.parse
from typing import NamedTuple

import sqlalchemy.exc
import sqlalchemy.orm as sa_orm
from sqlalchemy import BigInteger, Integer, JSON, TEXT, delete, select, update as sa_update
from sqlalchemy.orm import Mapped, mapped_column

import common.db.postgres as db
from common.parsing import create_content_id

from coordinator import models
from coordinator.exception import DuplicateError, SequenceConflictError, TaskNotFoundError

_logger = logging.getLogger(__name__)

EXPIRATION_GRACE_PERIOD = 24 * 60 * 60 * 1000
"""Milliseconds an expired task is kept"""


class HmacKey(NamedTuple):
    id: str
    secret: str


class VcCoordinatorTask(db.Base):
    __tablename__ = "vc_coordinator_task"
    id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    task: Mapped[dict] = mapped_column(JSON, nullable=False)
    """The full task document including request & expiry"""
    expires: Mapped[int] = mapped_column(BigInteger, nullable=True, index=True)
    created: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    updated: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def to_record(self) -> models.TaskRecord:
        return models.TaskRecord(
            task=models.Task.model_validate(self.task),
            meta=models.RecordMeta(created=self.created, updated=self.updated),
        )


def create_task_id(request: dict, hmac_key: HmacKey | None = None) -> str:
    if hmac_key is None:
        return f"urn:hash:{create_content_id(request)}"
    prefix = f"urn:hmac:{urllib.parse.quote(hmac_key.id, safe='')}:"
    return f"{prefix}{create_content_id(request, secret=hmac_key.secret)}"


def _task_id(task_id: str | None, request: dict | None, hmac_key: HmacKey | None) -> str:
    if (task_id is None) == (request is None):
        raise TypeError('One and only one of "task_id" or "request" must be given.')
    return task_id if task_id is not None else create_task_id(request, hmac_key)


def create(session: sa_orm.Session, request: dict, expires: int | None = None, hmac_key: HmacKey | None = None) -> models.TaskRecord:
    """
    Creates the task for the request.
    Raises DuplicateError if a task for the same request exists.
    """
    task = models.Task(id=create_task_id(request, hmac_key), sequence=0, request=request, expires=expires)
    if session.get(VcCoordinatorTask, task.id) is not None:
        raise DuplicateError("Duplicate coordinator task.", task_id=task.id)
    now = db.now_millis()
    entity = VcCoordinatorTask(
        id=task.id,
        sequence=0,
        task=task.model_dump(mode="json", exclude_none=True),
        expires=expires,
        created=now,
        updated=now,
    )
    session.add(entity)
    try:
        session.commit()
    except sqlalchemy.exc.IntegrityError as e:
        session.rollback()
        raise DuplicateError("Duplicate coordinator task.", task_id=task.id) from e
    return entity.to_record()


def get(
    session: sa_orm.Session,
    task_id: str | None = None,
    request: dict | None = None,
    hmac_key: HmacKey | None = None,
) -> models.TaskRecord:
    """
    Gets the task by its id or by its request.
    Raises TaskNotFoundError if there is none.
    """
    task_id = _task_id(task_id, request, hmac_key)
    entity = session.get(VcCoordinatorTask, task_id)
    if entity is None:
        raise TaskNotFoundError(task_id=task_id)
    return entity.to_record()


def find(
    session: sa_orm.Session,
    created_after: int | None = None,
    expires_before: int | None = None,
    limit: int = 100,
) -> list[models.TaskRecord]:
    """Tasks ordered by creation, optionally created after or expiring before some time (milliseconds)"""
    query = select(VcCoordinatorTask).order_by(VcCoordinatorTask.created, VcCoordinatorTask.id).limit(limit)
    if created_after is not None:
        query = query.where(VcCoordinatorTask.created > created_after)
    if expires_before is not None:
        query = query.where(VcCoordinatorTask.expires.is_not(None), VcCoordinatorTask.expires < expires_before)
    return [entity.to_record() for entity in session.scalars(query).all()]


def update(session: sa_orm.Session, task: models.Task) -> models.TaskRecord:
    """
    Replaces the task if the stored sequence is `task.sequence - 1`.
    Raises SequenceConflictError otherwise; the stored task is unchanged then.
    """
    stored = session.get(VcCoordinatorTask, task.id)
    if stored is None or stored.sequence != task.sequence - 1:
        raise SequenceConflictError(task_id=task.id, expected=None if stored is None else stored.sequence + 1)
    created = stored.created
    now = db.now_millis()
    result = session.execute(
        sa_update(VcCoordinatorTask)
        .where(VcCoordinatorTask.id == task.id, VcCoordinatorTask.sequence == task.sequence - 1)
        .values(
            sequence=task.sequence,
            task=task.model_dump(mode="json", exclude_none=True),
            expires=task.expires,
            updated=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        _logger.info(f"Lost update race for coordinator task {task.id} at sequence {task.sequence}")
        raise SequenceConflictError(task_id=task.id)
    session.commit()
    return models.TaskRecord(task=task, meta=models.RecordMeta(created=created, updated=now))


def remove(
    session: sa_orm.Session,
    task_id: str | None = None,
    request: dict | None = None,
    hmac_key: HmacKey | None = None,
) -> None:
    """Deletes the task if it exists"""
    task_id = _task_id(task_id, request, hmac_key)
    session.execute(delete(VcCoordinatorTask).where(VcCoordinatorTask.id == task_id))
    session.commit()


def remove_expired(session: sa_orm.Session, now: int | None = None) -> int:
    """Deletes the tasks expired for longer than the grace period; returns how many"""
    now = db.now_millis() if now is None else now
    result = session.execute(
        delete(VcCoordinatorTask).where(
            VcCoordinatorTask.expires.is_not(None),
            VcCoordinatorTask.expires < now - EXPIRATION_GRACE_PERIOD,
        )
    )
    session.commit()
    if result.rowcount:
        _logger.info(f"Removed {result.rowcount} expired coordinator tasks")
    return result.rowcount

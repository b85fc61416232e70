# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Storage for credential references.

Every change is sequence gated; an update is only accepted if its sequence is exactly
one greater than the stored one.
"""

import logging

import sqlalchemy.exc
import sqlalchemy.orm as sa_orm
from sqlalchemy import BigInteger, Integer, JSON, TEXT, func, select, update as sa_update
from sqlalchemy.orm import Mapped, mapped_column

import common.db.postgres as db

from coordinator import models
from coordinator.exception import ConflictError, DuplicateError, IndexAllocatorConflictError, ReferenceNotFoundError, SequenceConflictError

_logger = logging.getLogger(__name__)


class VcReference(db.Base):
    """
    Reference to an issued verifiable credential
    """

    __tablename__ = "vc_reference"
    credential_id: Mapped[str] = mapped_column(TEXT, primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    index_allocator: Mapped[str] = mapped_column(TEXT, nullable=True)
    """Sticky once set"""
    reference: Mapped[dict] = mapped_column(JSON, nullable=False)
    """The full reference document including the fields above"""
    created: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def to_record(self) -> models.ReferenceRecord:
        return models.ReferenceRecord(
            reference=models.CredentialReference.model_validate(self.reference),
            meta=models.RecordMeta(created=self.created, updated=self.updated),
        )


def _dump(reference: models.CredentialReference) -> dict:
    return reference.model_dump(mode="json", exclude_none=True)


def get(session: sa_orm.Session, credential_id: str) -> models.ReferenceRecord:
    """
    Gets the reference record of the credential.
    Raises ReferenceNotFoundError if there is none.
    """
    entity = session.get(VcReference, credential_id)
    if entity is None:
        raise ReferenceNotFoundError(credential_id=credential_id)
    return entity.to_record()


def insert(session: sa_orm.Session, reference: models.CredentialReference) -> models.ReferenceRecord:
    """
    Creates the reference record. The reference has to start at sequence 0.
    Raises DuplicateError if a record for the credential already exists.
    """
    if reference.sequence != 0:
        raise ConflictError('"reference.sequence" must be 0.', credential_id=reference.credentialId)
    if session.get(VcReference, reference.credentialId) is not None:
        raise DuplicateError("Duplicate VC reference.", credential_id=reference.credentialId)
    now = db.now_millis()
    entity = VcReference(
        credential_id=reference.credentialId,
        sequence=0,
        index_allocator=reference.indexAllocator,
        reference=_dump(reference),
        created=now,
        updated=now,
    )
    session.add(entity)
    try:
        session.commit()
    except sqlalchemy.exc.IntegrityError as e:
        session.rollback()
        raise DuplicateError("Duplicate VC reference.", credential_id=reference.credentialId) from e
    return entity.to_record()


def update(session: sa_orm.Session, reference: models.CredentialReference) -> models.ReferenceRecord:
    """
    Replaces the reference record if the stored sequence is `reference.sequence - 1`.

    An omitted index allocator keeps the stored one; a differing one raises IndexAllocatorConflictError.
    Raises SequenceConflictError if the record is missing or the sequence does not fit. The stored record is unchanged then.
    """
    credential_id = reference.credentialId
    stored = session.get(VcReference, credential_id)
    if stored is None or stored.sequence != reference.sequence - 1:
        raise SequenceConflictError(
            credential_id=credential_id,
            expected=None if stored is None else stored.sequence + 1,
        )
    if reference.indexAllocator is None:
        if stored.index_allocator is not None:
            reference = reference.model_copy(update={"indexAllocator": stored.index_allocator})
    elif stored.index_allocator is not None and stored.index_allocator != reference.indexAllocator:
        raise IndexAllocatorConflictError(credential_id=credential_id)

    created = stored.created
    now = db.now_millis()
    # Gate on the sequence again within the statement; another writer may have been faster
    result = session.execute(
        sa_update(VcReference)
        .where(VcReference.credential_id == credential_id, VcReference.sequence == reference.sequence - 1)
        .values(
            sequence=reference.sequence,
            index_allocator=reference.indexAllocator,
            reference=_dump(reference),
            updated=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        _logger.info(f"Lost update race for VC reference {credential_id} at sequence {reference.sequence}")
        raise SequenceConflictError(credential_id=credential_id)
    session.commit()
    return models.ReferenceRecord(reference=reference, meta=models.RecordMeta(created=created, updated=now))


def find(session: sa_orm.Session, limit: int = 100, after: str | None = None) -> list[models.ReferenceRecord]:
    """
    Pages through the references ordered by credential id.
    `after` is the last credential id of the previous page.
    """
    query = select(VcReference).order_by(VcReference.credential_id).limit(limit)
    if after is not None:
        query = query.where(VcReference.credential_id > after)
    return [entity.to_record() for entity in session.scalars(query).all()]


def count(session: sa_orm.Session) -> int:
    return session.scalar(select(func.count()).select_from(VcReference))

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import pytest

from coordinator import models
import coordinator.db.reference as db_reference
from coordinator.exception import ConflictError, DuplicateError, IndexAllocatorConflictError, ReferenceNotFoundError, SequenceConflictError
from coordinator.test import helpers


def test_insert_and_get(session):
    credential_id = helpers.new_credential_id()
    record = db_reference.insert(session, models.CredentialReference(credentialId=credential_id, issuer="did:example:1"))
    assert record.reference.sequence == 0
    assert record.meta.created == record.meta.updated

    record = db_reference.get(session, credential_id)
    assert record.reference.credentialId == credential_id
    assert record.reference.issuer == "did:example:1"


def test_insert_requires_sequence_zero(session):
    with pytest.raises(ConflictError):
        db_reference.insert(session, models.CredentialReference(credentialId=helpers.new_credential_id(), sequence=1))


def test_insert_duplicate(session):
    reference = models.CredentialReference(credentialId=helpers.new_credential_id())
    db_reference.insert(session, reference)
    with pytest.raises(DuplicateError) as exc_info:
        db_reference.insert(session, reference)
    assert exc_info.value.status_code == 409


def test_get_missing(session):
    with pytest.raises(ReferenceNotFoundError) as exc_info:
        db_reference.get(session, "urn:uuid:missing")
    assert exc_info.value.status_code == 404


def test_update_is_sequence_gated(session):
    credential_id = helpers.new_credential_id()
    db_reference.insert(session, models.CredentialReference(credentialId=credential_id))

    record = db_reference.update(session, models.CredentialReference(credentialId=credential_id, sequence=1, state="revoked"))
    assert record.reference.sequence == 1

    # Replaying or skipping a sequence is rejected and leaves the record as is
    for sequence in (1, 3, 0):
        with pytest.raises(SequenceConflictError) as exc_info:
            db_reference.update(session, models.CredentialReference(credentialId=credential_id, sequence=sequence, state="other"))
        assert exc_info.value.details["expected"] == 2
    session.expire_all()
    reference = db_reference.get(session, credential_id).reference
    assert reference.sequence == 1
    assert reference.state == "revoked"

    # Fields are replaced, not merged
    db_reference.update(session, models.CredentialReference(credentialId=credential_id, sequence=2, note="x"))
    session.expire_all()
    reference = db_reference.get(session, credential_id).reference
    assert reference.note == "x"
    assert not hasattr(reference, "state")


def test_update_missing(session):
    with pytest.raises(SequenceConflictError):
        db_reference.update(session, models.CredentialReference(credentialId="urn:uuid:missing", sequence=1))


def test_index_allocator_is_sticky(session):
    credential_id = helpers.new_credential_id()
    db_reference.insert(session, models.CredentialReference(credentialId=credential_id))
    db_reference.update(session, models.CredentialReference(credentialId=credential_id, sequence=1, indexAllocator="urn:a"))

    # Omitted allocator is carried forward
    record = db_reference.update(session, models.CredentialReference(credentialId=credential_id, sequence=2))
    assert record.reference.indexAllocator == "urn:a"

    with pytest.raises(IndexAllocatorConflictError):
        db_reference.update(session, models.CredentialReference(credentialId=credential_id, sequence=3, indexAllocator="urn:b"))
    session.expire_all()
    assert db_reference.get(session, credential_id).reference.sequence == 2


def test_find_and_count(session):
    credential_ids = sorted(f"urn:test:{i}" for i in range(5))
    for credential_id in credential_ids:
        db_reference.insert(session, models.CredentialReference(credentialId=credential_id))

    assert db_reference.count(session) == 5
    first = db_reference.find(session, limit=2)
    assert [r.reference.credentialId for r in first] == credential_ids[:2]
    rest = db_reference.find(session, limit=10, after=first[-1].reference.credentialId)
    assert [r.reference.credentialId for r in rest] == credential_ids[2:]

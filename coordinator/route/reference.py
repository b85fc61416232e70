# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential references; reading for everybody, changing with api key
"""

from typing import Annotated

import fastapi
from fastapi import HTTPException, Query, status
from pydantic import BaseModel

from common.apikey import require_api_key
import common.db.postgres as db

from coordinator import models
import coordinator.db.reference as db_reference

TAG = "References"

router = fastapi.APIRouter(prefix="/references", tags=[TAG])


class ReferenceCount(BaseModel):
    count: int


@router.get("")
def list_references(
    session: db.inject,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    after: str | None = None,
) -> list[models.ReferenceRecord]:
    """
    Pages through the references ordered by credential id.
    Pass the last credential id of a page as `after` to get the next page.
    """
    return db_reference.find(session, limit=limit, after=after)


@router.get("/count")
def count_references(session: db.inject) -> ReferenceCount:
    return ReferenceCount(count=db_reference.count(session))


@router.get("/{credential_id}")
def get_reference(credential_id: str, session: db.inject) -> models.ReferenceRecord:
    return db_reference.get(session, credential_id)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[fastapi.Security(require_api_key)])
def insert_reference(reference: models.CredentialReference, session: db.inject) -> models.ReferenceRecord:
    """Registers an issued credential. The reference starts with sequence 0."""
    return db_reference.insert(session, reference)


@router.put("/{credential_id}", dependencies=[fastapi.Security(require_api_key)])
def update_reference(credential_id: str, reference: models.CredentialReference, session: db.inject) -> models.ReferenceRecord:
    """
    Replaces the reference. `sequence` has to be exactly one greater than the stored one,
    otherwise the response is 409 and the reference is unchanged.
    """
    if reference.credentialId != credential_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Credential id of path & reference differ")
    return db_reference.update(session, reference)

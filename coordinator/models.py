# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import asyncio
from typing import Any, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt, StrictBool, StrictStr, TypeAdapter, ValidationError, field_validator

import common.status_list as sl

from coordinator.exception import InvalidStatusUpdateError

ROOT_ZCAP_PREFIX = "urn:zcap:root:"


###########
# Records #
###########


class RecordMeta(BaseModel):
    created: int
    """Milliseconds since 1.1.1970"""
    updated: int


class CredentialReference(BaseModel):
    """
    Local reference to an issued verifiable credential.

    Additional fields are kept as they are; an update replaces them (no deep merge).
    """

    model_config = ConfigDict(extra='allow')

    credentialId: StrictStr = Field(min_length=1)
    sequence: int = Field(default=0, ge=0)
    """Starts at 0, every accepted update increases it by exactly 1"""
    indexAllocator: StrictStr | None = None
    """Once set, later updates must omit it or match it"""


class ReferenceRecord(BaseModel):
    reference: CredentialReference
    meta: RecordMeta


class SyncState(BaseModel):
    id: str
    """Identifies the external system a status sync is done with"""
    sequence: int = Field(default=0, ge=0)
    cursor: Any = None
    """Opaque to the coordinator apart from `hasMore`"""

    def has_more(self) -> bool:
        return cursor_has_more(self.cursor)


class SyncRecord(BaseModel):
    sync: SyncState
    meta: RecordMeta


class Task(BaseModel):
    """Request handled by the coordinator, identified by the content id of the request"""

    model_config = ConfigDict(extra='allow')

    id: StrictStr = Field(min_length=1)
    sequence: int = Field(default=0, ge=0)
    request: dict[str, Any]
    expires: int | None = None
    """Milliseconds since 1.1.1970; expired tasks are removed after a grace period"""


class TaskRecord(BaseModel):
    task: Task
    meta: RecordMeta


def cursor_has_more(cursor: Any) -> bool:
    if isinstance(cursor, dict):
        return bool(cursor.get("hasMore", False))
    return False


##################
# Status Updates #
##################


class DelegatedCapability(BaseModel):
    """Delegated authorization capability; only the invocation target is of interest here."""

    model_config = ConfigDict(extra='allow')

    invocationTarget: StrictStr = Field(min_length=1)


Capability = Union[StrictStr, DelegatedCapability]
"""A root capability `urn:zcap:root:<url encoded target>` or a delegated capability object"""


class TargetCredentialStatus(BaseModel):
    """
    Describes the status entry to update. Every field given must be present
    and equal on the matching entry; additional fields are allowed.
    """

    model_config = ConfigDict(extra='allow')

    type: StrictStr
    statusPurpose: StrictStr


class StatusChange(BaseModel):
    model_config = ConfigDict(extra='ignore')

    credentialStatus: TargetCredentialStatus
    value: StrictBool
    """The status to set; e.g. True revokes for the revocation purpose"""
    indexAllocator: StrictStr | None = None


class ExpansionOptions(BaseModel):
    model_config = ConfigDict(extra='forbid')

    statusPurpose: StrictStr | None = None
    """Purpose to expand with; defaults to the purpose of the target status"""
    listLength: PositiveInt | None = None


class StatusExpansion(BaseModel):
    """How compact status entries are expanded before matching"""

    model_config = ConfigDict(extra='forbid')

    type: Literal['TerseBitstringStatusListEntry']
    required: StrictBool = True
    """If true, entries of other types are never matched"""
    options: ExpansionOptions | None = None

    def expand(self, credential_status: dict, target_purpose: str) -> dict:
        options = self.options or ExpansionOptions()
        return sl.expand_credential_status(
            credential_status,
            status_purpose=options.statusPurpose or target_purpose,
            list_length=options.listLength or sl.DEFAULT_TERSE_LIST_LENGTH,
        )


class _StatusUpdate(BaseModel):
    model_config = ConfigDict(extra='ignore')

    status: StatusChange
    expand: StatusExpansion | None = None
    referenceUpdate: dict[str, Any] | None = None
    """Fields to set on the local reference; None updates the remote status only"""
    getCredentialCapability: Capability
    updateStatusCapability: Capability

    @field_validator("getCredentialCapability", "updateStatusCapability")
    @classmethod
    def _root_capability_has_target(cls, capability: Capability) -> Capability:
        if isinstance(capability, str) and not (capability.startswith(ROOT_ZCAP_PREFIX) and len(capability) > len(ROOT_ZCAP_PREFIX)):
            raise ValueError(f"capability strings must be root capabilities starting with '{ROOT_ZCAP_PREFIX}'")
        return capability


class CredentialIdStatusUpdate(_StatusUpdate):
    """Status update addressing the credential by its id"""

    credentialId: StrictStr = Field(min_length=1)

    @property
    def credential_id(self) -> str:
        return self.credentialId

    @property
    def embedded_reference(self) -> CredentialReference | None:
        return None


class ReferenceStatusUpdate(_StatusUpdate):
    """Status update carrying the already loaded reference, saves reading it again"""

    reference: CredentialReference

    @property
    def credential_id(self) -> str:
        return self.reference.credentialId

    @property
    def embedded_reference(self) -> CredentialReference | None:
        return self.reference


StatusUpdate = Union[CredentialIdStatusUpdate, ReferenceStatusUpdate]

_status_update_adapter = TypeAdapter(StatusUpdate)


def parse_status_update(update: Any) -> StatusUpdate:
    """
    Validates a status update into one of its variants.

    Exactly one of `credentialId` or `reference` has to be given.
    Raises InvalidStatusUpdateError otherwise, or if any other field is malformed.
    """
    if isinstance(update, (CredentialIdStatusUpdate, ReferenceStatusUpdate)):
        return update
    if not isinstance(update, dict):
        raise InvalidStatusUpdateError(f"Expected an object, got {type(update).__name__}.")
    has_id, has_reference = "credentialId" in update, "reference" in update
    if has_id == has_reference:
        raise InvalidStatusUpdateError('Exactly one of "credentialId" or "reference" is required.')
    try:
        return _status_update_adapter.validate_python(update)
    except ValidationError as e:
        raise InvalidStatusUpdateError(str(e), errors=e.errors(include_url=False, include_input=False)) from e


##################
# Synchronization #
##################


class StatusUpdatePage(NamedTuple):
    """Page of status updates with the cursor to request the next page with"""

    updates: list
    cursor: Any


class SyncOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    concurrency: PositiveInt = 4
    """Maximum number of status updates applied at the same time"""
    limit: PositiveInt = 100
    """Page size requested from the update source"""
    ignore_credential_not_found: bool = False
    """Skip the remote status update for credentials the issuer does not know"""
    signal: asyncio.Event | None = None
    """Setting the event aborts the synchronization"""
    rate_limit: PositiveInt = 60
    """Maximum status updates started per `rate_interval`"""
    rate_interval: PositiveFloat = 1.0


class SyncResult(BaseModel):
    updateCount: int
    hasMore: bool

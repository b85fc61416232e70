# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Errors raised by the record stores and the status synchronization.

Every domain error is a `CoordinatorError`, which is a fastapi `HTTPException` so it
renders as a proper response when raised below a route. `details` carry additional,
public information about the error.
"""

from fastapi import HTTPException, status


class CoordinatorError(HTTPException):
    """Base class for all errors of the coordinator."""

    error: str = "operation_error"
    """Machine readable code identifying the error."""

    error_description: str = "The operation could not be completed."
    """Human readable error description for the error type."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, additional_error_description: str = None, status_code: int = None, **details) -> None:
        error_description = self.error_description
        if additional_error_description:
            error_description = f"{error_description} {additional_error_description}"
        super().__init__(status_code or self.default_status_code, error_description)
        self.error_description = error_description
        self.details = details

    def __str__(self) -> str:
        return self.error_description


class InvalidStatusUpdateError(CoordinatorError):
    """A status update returned by the update source is malformed. No update of the page gets applied."""

    error = "invalid_status_update"
    error_description = "Invalid status update object."
    default_status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(CoordinatorError):
    error = "not_found"
    error_description = "Record not found."
    default_status_code = status.HTTP_404_NOT_FOUND


class ReferenceNotFoundError(NotFoundError):
    error_description = "VC reference record not found."


class SyncRecordNotFoundError(NotFoundError):
    error_description = "Status sync record not found."


class TaskNotFoundError(NotFoundError):
    error_description = "Coordinator task record not found."


class CredentialNotFoundError(NotFoundError):
    """The issuer does not know the verifiable credential."""

    error = "credential_not_found"
    error_description = "Verifiable credential not found."


class StatusEntryNotFoundError(NotFoundError):
    """No status entry of the credential matches the requested status."""

    error = "status_entry_not_found"
    error_description = "No matching credential status entry found."


class DuplicateError(CoordinatorError):
    error = "duplicate"
    error_description = "Duplicate record."
    default_status_code = status.HTTP_409_CONFLICT


class ConflictError(CoordinatorError):
    """The stored record is not in the state the change expects."""

    error = "invalid_state"
    error_description = "The record is not in the expected state."
    default_status_code = status.HTTP_409_CONFLICT


class SequenceConflictError(ConflictError):
    """The submitted sequence is not exactly one greater than the stored one; the record is unchanged."""

    error_description = "Sequence does not match existing record."


class IndexAllocatorConflictError(ConflictError):
    """An index allocator was given which does not match the one already set."""

    error = "index_allocator_conflict"
    error_description = "Index allocator does not match the existing one."


class AmbiguousStatusEntryError(CoordinatorError):
    """More than one status entry of the credential matches the requested status."""

    error = "ambiguous_status_entry"
    error_description = "More than one credential status entry matches."
    default_status_code = status.HTTP_409_CONFLICT


class OperationError(CoordinatorError):
    pass


class RemoteOperationError(OperationError):
    """Invoking a capability on a remote service failed. The transport error is the `__cause__`."""

    error = "remote_operation_error"
    error_description = "Remote operation failed."
    default_status_code = status.HTTP_502_BAD_GATEWAY


class StatusSyncError(OperationError):
    """Applying a single status update failed. The underlying error is the `__cause__`."""

    error = "status_sync_error"
    error_description = "Could not sync status."

    def __init__(self, credential_id: str, step: str) -> None:
        super().__init__(f'Credential ID "{credential_id}" failed at step "{step}".', credential_id=credential_id, step=step)
        self.credential_id = credential_id
        self.step = step


class SyncAbortedError(Exception):
    """
    The synchronization was aborted through its signal.

    Not a `CoordinatorError`; an abort is never retried or wrapped.
    """

    def __init__(self, message: str = "Operation aborted.") -> None:
        super().__init__(message)

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Finds the status entry of a credential a status change applies to.
"""

from coordinator import models
from coordinator.exception import AmbiguousStatusEntryError, StatusEntryNotFoundError


def _is_match(target: dict, candidate: dict) -> bool:
    return all(key in candidate and candidate[key] == value for key, value in target.items())


def match_credential_status(
    credential: dict | None,
    credential_status: models.TargetCredentialStatus,
    expand: models.StatusExpansion | None = None,
) -> dict:
    """
    Returns the single status entry of the credential matching all fields of `credential_status`.

    With `expand`, entries of the expansion type are expanded before they are compared; the entry
    is still returned as found in the credential. Entries of other types are only compared if
    the expansion is not required.

    Raises StatusEntryNotFoundError if no entry matches, AmbiguousStatusEntryError if several do.
    """
    target = credential_status.model_dump(mode="json", exclude_none=True)
    entries = (credential or {}).get("credentialStatus") or []
    if not isinstance(entries, list):
        entries = [entries]

    matches = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        candidate = entry
        if expand is not None:
            if entry.get("type") == expand.type:
                try:
                    candidate = expand.expand(entry, target_purpose=credential_status.statusPurpose)
                except TypeError:
                    # malformed compact entries never match
                    continue
            elif expand.required:
                continue
        if _is_match(target, candidate):
            matches.append(entry)

    if not matches:
        raise StatusEntryNotFoundError(
            f'No status entry of type "{credential_status.type}" for status purpose "{credential_status.statusPurpose}".',
        )
    if len(matches) > 1:
        raise AmbiguousStatusEntryError(f"{len(matches)} status entries match.")
    return matches[0]

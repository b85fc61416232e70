# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential status entries of the Bitstring Status List
https://www.w3.org/TR/vc-bitstring-status-list/
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError, Field

BITSTRING_STATUS_LIST_ENTRY = "BitstringStatusListEntry"
TERSE_BITSTRING_STATUS_LIST_ENTRY = "TerseBitstringStatusListEntry"

DEFAULT_TERSE_LIST_LENGTH = 67108864
"""Number of entries per status list a terse index is spread over; 2^26"""

DEFAULT_STATUS_PURPOSE = "revocation"


class BitstringStatusListEntry(BaseModel):
    """
    https://www.w3.org/TR/vc-bitstring-status-list/#bitstringstatuslistentry
    """

    model_config = ConfigDict(extra='allow')

    type: Literal['BitstringStatusListEntry']
    statusPurpose: str
    statusListIndex: str
    """
    an arbitrary size integer greater than or equal to 0, expressed as a string
    identifies the bit position of the status of the verifiable credential
    """
    statusListCredential: str
    """
    MUST be a URL to a verifiable credential of type BitstringStatusListCredential
    """


class TerseBitstringStatusListEntry(BaseModel):
    """
    Compact status entry; a single large index spread over lists of fixed length.
    Has to be expanded to a `BitstringStatusListEntry` before being used.
    """

    model_config = ConfigDict(extra='allow')

    type: Literal['TerseBitstringStatusListEntry']
    terseStatusListBaseUrl: StrictStr
    terseStatusListIndex: StrictInt = Field(ge=0)


def expand_credential_status(
    credential_status: dict,
    status_purpose: str = DEFAULT_STATUS_PURPOSE,
    list_length: int = DEFAULT_TERSE_LIST_LENGTH,
) -> dict:
    """
    Expands a `TerseBitstringStatusListEntry` to a `BitstringStatusListEntry`.

    A `BitstringStatusListEntry` is returned as is, any other type raises a TypeError.

    The list number is `index // list_length`, the index in that list `index % list_length`.
    The status list credential is found at `<base url>/<status purpose>/<list number>`.
    """
    if not isinstance(credential_status, dict):
        raise TypeError('"credential_status" must be a dict.')
    if not isinstance(status_purpose, str):
        raise TypeError('"status_purpose" must be a string.')
    if isinstance(list_length, bool) or not isinstance(list_length, int) or list_length <= 0:
        raise TypeError('"list_length" must be a positive integer.')

    entry_type = credential_status.get("type")
    if entry_type == BITSTRING_STATUS_LIST_ENTRY:
        return credential_status
    if entry_type != TERSE_BITSTRING_STATUS_LIST_ENTRY:
        raise TypeError(f'Credential status entry type must be "{TERSE_BITSTRING_STATUS_LIST_ENTRY}", got "{entry_type}".')

    try:
        terse = TerseBitstringStatusListEntry.model_validate(credential_status)
    except ValidationError as e:
        raise TypeError(f"Invalid {TERSE_BITSTRING_STATUS_LIST_ENTRY}: {e.errors()}") from e

    list_index, status_list_index = divmod(terse.terseStatusListIndex, list_length)
    return BitstringStatusListEntry(
        type=BITSTRING_STATUS_LIST_ENTRY,
        statusPurpose=status_purpose,
        statusListIndex=str(status_list_index),
        statusListCredential=f"{terse.terseStatusListBaseUrl}/{status_purpose}/{list_index}",
    ).model_dump()

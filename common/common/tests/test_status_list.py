# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import pytest

from common import status_list as sl

BASE_URL = "https://status.example/statuses/1/status-lists"

TERSE = {
    "type": "TerseBitstringStatusListEntry",
    "terseStatusListBaseUrl": BASE_URL,
    "terseStatusListIndex": 4000000001,
}


def test_full_entry_is_left_alone():
    entry = {"type": "BitstringStatusListEntry", "statusPurpose": "revocation"}
    assert sl.expand_credential_status(entry) == {"type": "BitstringStatusListEntry", "statusPurpose": "revocation"}


def test_expand_with_defaults():
    assert sl.expand_credential_status(TERSE) == {
        "type": "BitstringStatusListEntry",
        "statusPurpose": "revocation",
        "statusListCredential": f"{BASE_URL}/revocation/59",
        "statusListIndex": "40577025",
    }


def test_expand_with_status_purpose():
    expanded = sl.expand_credential_status(TERSE, status_purpose="suspension")
    assert expanded["statusPurpose"] == "suspension"
    assert expanded["statusListCredential"] == f"{BASE_URL}/suspension/59"
    assert expanded["statusListIndex"] == "40577025"


def test_expand_with_list_length():
    expanded = sl.expand_credential_status(TERSE, list_length=131072)
    assert expanded["statusListCredential"] == f"{BASE_URL}/revocation/30517"
    assert expanded["statusListIndex"] == "75777"


def test_expansion_arithmetic():
    for index in (0, 1, sl.DEFAULT_TERSE_LIST_LENGTH - 1, sl.DEFAULT_TERSE_LIST_LENGTH, 2**40 + 17):
        expanded = sl.expand_credential_status({**TERSE, "terseStatusListIndex": index})
        assert expanded["statusListIndex"] == str(index % sl.DEFAULT_TERSE_LIST_LENGTH)
        assert expanded["statusListCredential"] == f"{BASE_URL}/revocation/{index // sl.DEFAULT_TERSE_LIST_LENGTH}"


@pytest.mark.parametrize(
    "credential_status, kwargs",
    [
        ({"type": "StatusList2021Entry"}, {}),
        ({}, {}),
        ("TerseBitstringStatusListEntry", {}),
        ({**TERSE, "terseStatusListIndex": -1}, {}),
        ({**TERSE, "terseStatusListIndex": "12"}, {}),
        (TERSE, {"status_purpose": 1}),
        (TERSE, {"list_length": 0}),
        (TERSE, {"list_length": True}),
    ],
)
def test_invalid_expansion(credential_status, kwargs):
    with pytest.raises(TypeError):
        sl.expand_credential_status(credential_status, **kwargs)

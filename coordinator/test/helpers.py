# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
In memory issuer & status service for the status sync tests, plugged into httpx with a MockTransport.

* GET  https://issuer.example/issuers/1/credentials/<id> returns the credential
  - ids starting with `urn:special:not-found:` are unknown (404)
  - ids ending with `:terse` carry a TerseBitstringStatusListEntry
* POST https://status.example/statuses/1/credentials/status sets the status
  - the index allocator has to be given until it is set, afterwards it has to match
"""

import asyncio
import json
import urllib.parse
import uuid

import httpx

ISSUER_URL = "https://issuer.example/issuers/1/credentials"
STATUS_URL = "https://status.example/statuses/1/credentials/status"
STATUS_LIST_BASE_URL = "https://status.example/statuses/1/status-lists"

GET_CREDENTIAL_CAPABILITY = f"urn:zcap:root:{urllib.parse.quote(ISSUER_URL, safe='')}"
UPDATE_STATUS_CAPABILITY = f"urn:zcap:root:{urllib.parse.quote(STATUS_URL, safe='')}"

NOT_FOUND_PREFIX = "urn:special:not-found:"

REVOCATION_STATUS = {"type": "BitstringStatusListEntry", "statusPurpose": "revocation"}


def new_credential_id(suffix: str = "") -> str:
    return f"urn:uuid:{uuid.uuid4()}{suffix}"


class MockStatusService:
    def __init__(self, delay: float = 0) -> None:
        self.delay = delay
        """Seconds every request takes"""
        self.statuses: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.status_updates: list[dict] = []
        """Bodies of all accepted status updates"""
        self.failing_credential_ids: set[str] = set()
        """Status updates of these credentials fail with 500"""
        self.in_flight = 0
        self.max_in_flight = 0

    def status_info(self, credential_id: str) -> dict:
        if credential_id not in self.statuses:
            index = len(self.statuses)
            if credential_id.endswith(":terse"):
                entry = {
                    "type": "TerseBitstringStatusListEntry",
                    "terseStatusListBaseUrl": STATUS_LIST_BASE_URL,
                    "terseStatusListIndex": index,
                }
            else:
                entry = {
                    "type": "BitstringStatusListEntry",
                    "statusPurpose": "revocation",
                    "statusListIndex": str(index),
                    "statusListCredential": f"{STATUS_LIST_BASE_URL}/1",
                }
            self.statuses[credential_id] = {"status": False, "entry": entry, "indexAllocator": None}
        return self.statuses[credential_id]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            url = str(request.url)
            if request.method == "GET" and url.startswith(f"{ISSUER_URL}/"):
                return self._get_credential(urllib.parse.unquote(url[len(ISSUER_URL) + 1 :]))
            if request.method == "POST" and url == STATUS_URL:
                return self._update_status(json.loads(request.content))
            return httpx.Response(404)
        finally:
            self.in_flight -= 1

    def _get_credential(self, credential_id: str) -> httpx.Response:
        if credential_id.startswith(NOT_FOUND_PREFIX):
            return httpx.Response(404, json={"name": "NotFoundError", "message": "Credential not found."})
        info = self.status_info(credential_id)
        return httpx.Response(
            200,
            json={
                "verifiableCredential": {
                    "@context": ["https://www.w3.org/ns/credentials/v2"],
                    "type": ["VerifiableCredential"],
                    "credentialSubject": {"name": "Test"},
                    "credentialStatus": info["entry"],
                }
            },
        )

    def _update_status(self, body: dict) -> httpx.Response:
        credential_id = body["credentialId"]
        if credential_id in self.failing_credential_ids:
            return httpx.Response(500, json={"name": "OperationError"})
        if body["credentialStatus"]["type"] not in ("BitstringStatusListEntry", "TerseBitstringStatusListEntry"):
            return httpx.Response(400, json={"name": "DataError", "message": "Invalid credential status type."})
        info = self.status_info(credential_id)
        index_allocator = body.get("indexAllocator")
        if index_allocator is None:
            if info["indexAllocator"] is None:
                return httpx.Response(400, json={"name": "DataError", "message": "Index allocator not set yet; it must be provided."})
        elif info["indexAllocator"] is None:
            info["indexAllocator"] = index_allocator
        elif index_allocator != info["indexAllocator"]:
            return httpx.Response(400, json={"name": "DataError", "message": "Index allocator mismatch."})
        info["status"] = body.get("status", True)
        self.status_updates.append(body)
        return httpx.Response(200)


def status_update(
    credential_id: str,
    value: bool = True,
    index_allocator: str | None = "urn:correct",
    credential_status: dict | None = None,
    **fields,
) -> dict:
    """Status update addressing the credential by id; additional fields e.g. referenceUpdate or expand"""
    status = {"credentialStatus": credential_status or REVOCATION_STATUS, "value": value}
    if index_allocator is not None:
        status["indexAllocator"] = index_allocator
    return {
        "credentialId": credential_id,
        "status": status,
        "getCredentialCapability": GET_CREDENTIAL_CAPABILITY,
        "updateStatusCapability": UPDATE_STATUS_CAPABILITY,
        **fields,
    }


def page_function(credential_ids: list[str], **update_fields):
    """Pages through the credential ids; the cursor carries the index of the next one"""

    async def get_status_updates(cursor, limit):
        index = (cursor or {}).get("index", 0)
        page_ids = credential_ids[index : index + limit]
        index += len(page_ids)
        return {
            "updates": [status_update(credential_id, **update_fields) for credential_id in page_ids],
            "cursor": {"hasMore": index < len(credential_ids), "index": index},
        }

    return get_status_updates

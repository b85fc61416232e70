# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import asyncio
import urllib.parse

import httpx
import pytest

from common import parsing

from coordinator import models
from coordinator.exception import CredentialNotFoundError, RemoteOperationError
from coordinator.status_updater import RemoteStatusUpdater
from coordinator.test import helpers
from coordinator.zcap_client import ZcapClient, get_invocation_target


def test_invocation_target():
    assert get_invocation_target(helpers.GET_CREDENTIAL_CAPABILITY) == helpers.ISSUER_URL
    assert get_invocation_target(models.DelegatedCapability(invocationTarget=helpers.STATUS_URL)) == helpers.STATUS_URL
    with pytest.raises(ValueError):
        get_invocation_target("https://issuer.example")


def _recording_client(requests: list[httpx.Request], status_code: int = 200) -> httpx.AsyncClient:
    def handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json={})

    return httpx.AsyncClient(transport=httpx.MockTransport(handle))


def test_root_capability_header():
    requests = []
    client = ZcapClient(_recording_client(requests))
    asyncio.run(client.read(f"{helpers.ISSUER_URL}/1", helpers.GET_CREDENTIAL_CAPABILITY))
    assert requests[0].headers["capability-invocation"] == f'zcap id="{helpers.GET_CREDENTIAL_CAPABILITY}",action="read"'


def test_delegated_capability_header():
    requests = []
    client = ZcapClient(_recording_client(requests))
    capability = models.DelegatedCapability(invocationTarget=helpers.STATUS_URL, id="urn:uuid:zcap", parentCapability="urn:zcap:root:x")
    asyncio.run(client.write(capability, json={"status": True}))

    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == helpers.STATUS_URL
    header = request.headers["capability-invocation"]
    assert header.startswith('zcap capability="') and header.endswith('",action="write"')
    encoded = header[len('zcap capability="') : -len('",action="write"')]
    assert "=" not in encoded
    assert parsing.object_from_compressed_url_safe(encoded) == capability.model_dump(exclude_none=True)


def test_invocation_signer():
    requests = []

    async def sign(request: httpx.Request) -> None:
        request.headers["signature"] = "signed"

    client = ZcapClient(_recording_client(requests), invocation_signer=sign)
    asyncio.run(client.read(helpers.ISSUER_URL, helpers.GET_CREDENTIAL_CAPABILITY))
    assert requests[0].headers["signature"] == "signed"


def test_get_credential(status_service):
    updater = RemoteStatusUpdater(ZcapClient(status_service.client()))
    credential = asyncio.run(updater.get_credential("urn:uuid:1", helpers.GET_CREDENTIAL_CAPABILITY))
    assert credential["credentialStatus"]["type"] == "BitstringStatusListEntry"
    # The credential id is url encoded as last path segment
    assert urllib.parse.unquote(str(status_service.requests[0].url)) == f"{helpers.ISSUER_URL}/urn:uuid:1"

    with pytest.raises(CredentialNotFoundError):
        asyncio.run(updater.get_credential(f"{helpers.NOT_FOUND_PREFIX}1", helpers.GET_CREDENTIAL_CAPABILITY))


def test_remote_failures():
    updater = RemoteStatusUpdater(ZcapClient(_recording_client([], 503)))
    with pytest.raises(RemoteOperationError) as exc_info:
        asyncio.run(updater.get_credential("urn:uuid:1", helpers.GET_CREDENTIAL_CAPABILITY))
    assert exc_info.value.details["remote_status"] == 503
    assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    with pytest.raises(RemoteOperationError):
        asyncio.run(updater.update_status("urn:uuid:1", {}, True, helpers.UPDATE_STATUS_CAPABILITY))


def test_update_status_payload(status_service):
    updater = RemoteStatusUpdater(ZcapClient(status_service.client()))
    entry = status_service.status_info("urn:uuid:1")["entry"]
    asyncio.run(updater.update_status("urn:uuid:1", entry, True, helpers.UPDATE_STATUS_CAPABILITY, index_allocator="urn:a"))
    assert status_service.status_updates == [{"credentialId": "urn:uuid:1", "credentialStatus": entry, "status": True, "indexAllocator": "urn:a"}]

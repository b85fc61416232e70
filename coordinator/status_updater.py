# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Reading credentials from the issuer & writing their status to the status service, both through capabilities
"""

import logging
import urllib.parse

import httpx
from fastapi import status

from coordinator import models
from coordinator.exception import CredentialNotFoundError, RemoteOperationError
from coordinator.zcap_client import ZcapClient

_logger = logging.getLogger(__name__)


class RemoteStatusUpdater:
    def __init__(self, zcap_client: ZcapClient) -> None:
        self.zcap_client = zcap_client

    async def get_credential(self, credential_id: str, capability: models.Capability) -> dict:
        """
        Fetches the verifiable credential from `<invocation target>/<url encoded credential id>`.

        Raises CredentialNotFoundError if the issuer responds with 404, RemoteOperationError on any other failure.
        """
        invocation_target = self.zcap_client.get_invocation_target(capability)
        url = f"{invocation_target}/{urllib.parse.quote(credential_id, safe='')}"
        try:
            response = await self.zcap_client.read(url, capability)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == status.HTTP_404_NOT_FOUND:
                raise CredentialNotFoundError(credential_id=credential_id) from e
            raise RemoteOperationError("Could not get verifiable credential.", credential_id=credential_id, remote_status=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise RemoteOperationError("Could not get verifiable credential.", credential_id=credential_id) from e
        try:
            return response.json()["verifiableCredential"]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteOperationError("Issuer response carries no verifiable credential.", credential_id=credential_id) from e

    async def update_status(
        self,
        credential_id: str,
        credential_status: dict,
        value: bool,
        capability: models.Capability,
        index_allocator: str | None = None,
    ) -> None:
        """
        Sets the status of the credential status entry on the status service.
        Without index allocator the status service decides; it may require one.
        """
        payload = {
            "credentialId": credential_id,
            "credentialStatus": credential_status,
            "status": value,
        }
        if index_allocator is not None:
            payload["indexAllocator"] = index_allocator
        try:
            await self.zcap_client.write(capability, json=payload)
        except httpx.HTTPStatusError as e:
            raise RemoteOperationError(
                "Could not update verifiable credential status.",
                credential_id=credential_id,
                remote_status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteOperationError("Could not update verifiable credential status.", credential_id=credential_id) from e
        _logger.debug(f"Updated remote status of {credential_id} to {value}")

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
HTTP client invoking authorization capabilities (zcaps)
https://w3c-ccg.github.io/zcap-spec/

Root capabilities are referenced by their id, delegated capabilities are sent along
gzip compressed. Signing the invocation is left to an `invocation_signer` hook.
"""

import logging
import urllib.parse
from typing import Awaitable, Callable

import httpx

from common import parsing

from coordinator import models

_logger = logging.getLogger(__name__)

CAPABILITY_INVOCATION_HEADER = "capability-invocation"

InvocationSigner = Callable[[httpx.Request], Awaitable[None] | None]
"""Hook signing the capability invocation of the request, e.g. by adding http signature headers"""


def get_invocation_target(capability: models.Capability) -> str:
    """
    Target url of the capability.
    For root capabilities it is the url decoded remainder after the `urn:zcap:root:` prefix.
    """
    if isinstance(capability, str):
        if not capability.startswith(models.ROOT_ZCAP_PREFIX):
            raise ValueError(f"Root capability must start with '{models.ROOT_ZCAP_PREFIX}'.")
        return urllib.parse.unquote(capability[len(models.ROOT_ZCAP_PREFIX) :])
    return capability.invocationTarget


def capability_invocation_header(capability: models.Capability, action: str) -> str:
    if isinstance(capability, str):
        return f'zcap id="{capability}",action="{action}"'
    encoded = parsing.object_to_compressed_url_safe(capability.model_dump(mode="json", exclude_none=True))
    return f'zcap capability="{encoded}",action="{action}"'


class ZcapClient:
    def __init__(self, client: httpx.AsyncClient, invocation_signer: InvocationSigner | None = None) -> None:
        """
        * client: async httpx client doing the actual requests, e.g. with timeouts & ssl settings configured
        * invocation_signer: optional hook called with every request before it is sent
        """
        self._client = client
        self._invocation_signer = invocation_signer

    get_invocation_target = staticmethod(get_invocation_target)

    async def _invoke(self, method: str, url: str, capability: models.Capability, action: str, json=None) -> httpx.Response:
        request = self._client.build_request(
            method,
            url,
            json=json,
            headers={
                "accept": "application/json",
                CAPABILITY_INVOCATION_HEADER: capability_invocation_header(capability, action),
            },
        )
        _logger.debug(f"Invoking capability with action {action}: {method} {url}")
        if self._invocation_signer:
            signed = self._invocation_signer(request)
            if signed is not None:
                await signed
        try:
            response = await self._client.send(request)
        except httpx.TransportError as e:
            e.add_note(f"Failed to invoke capability with {method} {url=}")
            raise
        response.raise_for_status()
        return response

    async def read(self, url: str, capability: models.Capability) -> httpx.Response:
        """
        GETs the url, which has to be within the invocation target of the capability.
        Raises httpx.HTTPStatusError on non success responses.
        """
        return await self._invoke("GET", url, capability, "read")

    async def write(self, capability: models.Capability, json: dict, url: str | None = None) -> httpx.Response:
        """
        POSTs the json to the invocation target of the capability, or the given url.
        Raises httpx.HTTPStatusError on non success responses.
        """
        return await self._invoke("POST", url or get_invocation_target(capability), capability, "write", json=json)

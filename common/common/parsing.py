# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import gzip
import hashlib
import hmac
import json
import re

# multihash header for sha2-256 (0x12) with a 32 byte digest
_SHA256_MULTIHASH_HEADER = bytes([0x12, 0x20])


def remove_padding(base64_encoded: str) -> str:
    """Remove padding form b64 encoded string"""
    return base64_encoded.rstrip('=')


def add_padding(base64_encoded: str) -> str:
    """Add padding (=) for b64 encoded string, so it can be decoded"""
    return f'{base64_encoded}==='


def canonicalize(content) -> str:
    """
    Serializes JSON compatible content deterministically;
    sorted keys, no insignificant whitespace.
    """
    return json.dumps(content, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def create_content_id(content, secret: str | bytes | None = None) -> str:
    """
    Creates an identifier from some JSON compatible content, so the same content always yields the same id.

    The canonical content is hashed with sha-256, or HMAC-sha-256 if a secret is given,
    and expressed as url safe base64 multihash without padding.
    """
    data = canonicalize(content).encode()
    if secret:
        key = secret.encode() if isinstance(secret, str) else secret
        digest = hmac.new(key, data, hashlib.sha256).digest()
    else:
        digest = hashlib.sha256(data).digest()
    return remove_padding(base64.urlsafe_b64encode(_SHA256_MULTIHASH_HEADER + digest).decode())


def interpret_as_bool(boolify: str) -> bool:
    """
    Converts an inpput to an boolean according to commonly used patterns.
    """
    if isinstance(boolify, bool):
        return boolify
    if isinstance(boolify, int):
        return boolify > 0
    elif isinstance(boolify, str):
        return re.match(r"^(y|yes|1|true)$", boolify, re.IGNORECASE | re.MULTILINE) is not None
    raise Exception(f"Can't boolify a {boolify}.")


def object_to_compressed_url_safe(obj) -> str:
    """Gzip compressed json of the object as url safe base64, without padding"""
    return remove_padding(base64.urlsafe_b64encode(gzip.compress(json.dumps(obj).encode())).decode())


def object_from_compressed_url_safe(b64_str: str):
    return json.loads(gzip.decompress(base64.urlsafe_b64decode(add_padding(b64_str))))

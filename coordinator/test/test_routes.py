# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests for the coordinator app using fastapi's TestClient & a sqlite database
"""

import typing

import pytest
from fastapi.testclient import TestClient

import common.config as common_conf
import common.db.postgres as db

from coordinator import models
from coordinator.coordinator import app
import coordinator.db.sync_record as db_sync

API_KEY = "test-api-key"


def t_config() -> common_conf.Config:
    config = common_conf.Config()
    config.api_key = API_KEY
    return config


@pytest.fixture()
def client(session_factory) -> typing.Generator[TestClient, None, None]:
    def t_session() -> typing.Generator[db.Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    client = TestClient(app, headers={"x-api-key": API_KEY})
    app.dependency_overrides[db.env_session] = t_session
    app.dependency_overrides[common_conf.Config] = t_config
    yield client
    client.close()
    app.dependency_overrides.clear()


def test_reference_lifecycle(client: TestClient):
    r = client.post("/references", json={"credentialId": "urn:uuid:1", "holder": "did:example:holder"})
    assert r.status_code == 201, r.text
    reference = r.json()["reference"]
    assert reference["sequence"] == 0
    assert reference["holder"] == "did:example:holder"
    assert reference.get("indexAllocator") is None

    r = client.get("/references/urn:uuid:1")
    assert r.status_code == 200, r.text
    assert r.json()["reference"]["holder"] == "did:example:holder"

    r = client.put("/references/urn:uuid:1", json={"credentialId": "urn:uuid:1", "sequence": 1, "indexAllocator": "urn:a"})
    assert r.status_code == 200, r.text
    assert r.json()["reference"]["sequence"] == 1

    # Replayed sequence
    r = client.put("/references/urn:uuid:1", json={"credentialId": "urn:uuid:1", "sequence": 1})
    assert r.status_code == 409, r.text
    assert r.json()["error"] == "invalid_state"
    assert r.json()["expected"] == 2

    r = client.put("/references/urn:uuid:1", json={"credentialId": "urn:uuid:1", "sequence": 2, "indexAllocator": "urn:b"})
    assert r.status_code == 409, r.text
    assert r.json()["error"] == "index_allocator_conflict"


def test_reference_errors(client: TestClient):
    r = client.get("/references/urn:uuid:missing")
    assert r.status_code == 404, r.text
    assert r.json()["error"] == "not_found"
    assert r.json()["credential_id"] == "urn:uuid:missing"

    client.post("/references", json={"credentialId": "urn:uuid:dup"})
    r = client.post("/references", json={"credentialId": "urn:uuid:dup"})
    assert r.status_code == 409, r.text
    assert r.json()["error"] == "duplicate"

    r = client.put("/references/urn:uuid:other", json={"credentialId": "urn:uuid:dup", "sequence": 1})
    assert r.status_code == 400, r.text

    r = client.post("/references", json={"credentialId": "urn:uuid:2", "sequence": 3})
    assert r.status_code == 409, r.text


def test_api_key_required(client: TestClient):
    r = client.post("/references", json={"credentialId": "urn:uuid:1"}, headers={"x-api-key": "wrong"})
    assert r.status_code == 401, r.text
    r = client.put("/references/urn:uuid:1", json={"credentialId": "urn:uuid:1", "sequence": 1}, headers={"x-api-key": ""})
    assert r.status_code == 401, r.text


def test_list_references(client: TestClient):
    for i in range(5):
        client.post("/references", json={"credentialId": f"urn:test:{i}"})

    assert client.get("/references/count").json() == {"count": 5}
    r = client.get("/references", params={"limit": 3})
    assert [record["reference"]["credentialId"] for record in r.json()] == ["urn:test:0", "urn:test:1", "urn:test:2"]
    r = client.get("/references", params={"limit": 3, "after": "urn:test:2"})
    assert [record["reference"]["credentialId"] for record in r.json()] == ["urn:test:3", "urn:test:4"]
    assert client.get("/references", params={"limit": 0}).status_code == 422


def test_sync_progress(client: TestClient, session):
    assert client.get("/sync/unknown").status_code == 404

    db_sync.create(session, "known")
    db_sync.update(session, models.SyncState(id="known", sequence=1, cursor={"hasMore": True, "index": 100}))
    r = client.get("/sync/known")
    assert r.status_code == 200, r.text
    assert r.json()["sync"] == {"id": "known", "sequence": 1, "cursor": {"hasMore": True, "index": 100}}


def test_health(client: TestClient):
    r = client.get("/health/liveness")
    assert r.status_code == 200, r.text
    r = client.get("/health/readiness")
    assert r.status_code == 200, r.text
    assert r.json()["db_connectivity"] == "HEALTHY"

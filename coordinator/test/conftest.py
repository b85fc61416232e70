# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import typing

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import common.db.postgres as db

from coordinator import models
import coordinator.db.reference as db_reference
import coordinator.db.sync_record  # noqa:F401 registers the table
import coordinator.db.task  # noqa:F401
from coordinator.status_updater import RemoteStatusUpdater
from coordinator.sync import StatusSynchronizer
from coordinator.test import helpers
from coordinator.zcap_client import ZcapClient


@pytest.fixture()
def session_factory(tmp_path) -> typing.Generator[sessionmaker, None, None]:
    """Sqlite database standing in for postgres"""
    engine = create_engine(f"sqlite:///{tmp_path / 'coordinator.db'}", connect_args={"check_same_thread": False, "timeout": 30})
    db.Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture()
def session(session_factory) -> typing.Generator[db.Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture()
def status_service() -> helpers.MockStatusService:
    return helpers.MockStatusService()


@pytest.fixture()
def zcap_client(status_service: helpers.MockStatusService) -> ZcapClient:
    return ZcapClient(status_service.client())


@pytest.fixture()
def synchronizer(session_factory, zcap_client: ZcapClient) -> StatusSynchronizer:
    return StatusSynchronizer(session_factory, RemoteStatusUpdater(zcap_client))


@pytest.fixture()
def credential_ids(session) -> list[str]:
    """Three fresh credential references"""
    credential_ids = [helpers.new_credential_id() for _ in range(3)]
    for credential_id in credential_ids:
        db_reference.insert(session, models.CredentialReference(credentialId=credential_id))
    return credential_ids

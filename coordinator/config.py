# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
from typing import Annotated
from functools import cache

import httpx

from fastapi import Depends

import common.config as conf
import common.db.postgres as db
from common.parsing import interpret_as_bool

from coordinator import models
from coordinator.db.task import HmacKey
from coordinator.status_updater import RemoteStatusUpdater
from coordinator.sync import StatusSynchronizer
from coordinator.zcap_client import ZcapClient


class CoordinatorConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "VC Status Coordinator")

        # Status Sync
        self.sync_concurrency = int(os.getenv("SYNC_CONCURRENCY", "4"))
        """Maximum number of status updates applied at the same time"""
        self.sync_page_limit = int(os.getenv("SYNC_PAGE_LIMIT", "100"))
        """Number of status updates requested per sync pass"""
        self.sync_rate_limit = int(os.getenv("SYNC_RATE_LIMIT", "60"))
        self.sync_rate_interval = float(os.getenv("SYNC_RATE_INTERVAL", "1.0"))
        """Seconds; at most SYNC_RATE_LIMIT status updates are started within this interval"""
        self.sync_ignore_credential_not_found: bool = interpret_as_bool(os.getenv("SYNC_IGNORE_CREDENTIAL_NOT_FOUND", "False"))

        # Remote services
        self.zcap_request_timeout = float(os.getenv("ZCAP_REQUEST_TIMEOUT", "10"))
        """Seconds until a request to the issuer or status service is abandoned"""

        self.enable_database_migration: bool = interpret_as_bool(os.getenv("ENABLE_DATABASE_MIGRATION", "True"))
        """Run the alembic migrations when the app starts"""

        # Coordinator tasks
        self.task_hmac_key_id = os.getenv("TASK_HMAC_KEY_ID")
        self.task_hmac_key_secret = os.getenv("TASK_HMAC_KEY")
        """Keeps task ids from disclosing the request; plain hashes are used if unset"""

    def task_hmac_key(self) -> HmacKey | None:
        if not (self.task_hmac_key_id and self.task_hmac_key_secret):
            return None
        return HmacKey(self.task_hmac_key_id, self.task_hmac_key_secret)

    def sync_options(self, **overrides) -> models.SyncOptions:
        """Sync options as configured; keyword arguments replace single options"""
        options = {
            "concurrency": self.sync_concurrency,
            "limit": self.sync_page_limit,
            "rate_limit": self.sync_rate_limit,
            "rate_interval": self.sync_rate_interval,
            "ignore_credential_not_found": self.sync_ignore_credential_not_found,
        }
        options.update(overrides)
        return models.SyncOptions(**options)


@cache
def get_zcap_client(timeout: float, verify: bool) -> ZcapClient:
    """Create a zcap client capable of interacting with the issuer & status service"""
    return ZcapClient(httpx.AsyncClient(timeout=timeout, verify=verify))


def get_synchronizer(config: CoordinatorConfig, db_config: conf.DBConfig) -> StatusSynchronizer:
    zcap_client = get_zcap_client(config.zcap_request_timeout, config.enable_ssl_verification)
    return StatusSynchronizer(db.session_factory(db_config), RemoteStatusUpdater(zcap_client))


inject = Annotated[CoordinatorConfig, Depends(CoordinatorConfig)]

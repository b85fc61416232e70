# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
from importlib import metadata

DISTRIBUTION_NAME = "vc-status-coordinator"

commit_hash = os.getenv("COMMIT_HASH", "no hash")


def get_version() -> str:
    version = os.getenv("VERSION")
    if not version:
        try:
            version = metadata.version(DISTRIBUTION_NAME)
        except metadata.PackageNotFoundError:
            version = "no version"
    return f"{version} ({commit_hash})"

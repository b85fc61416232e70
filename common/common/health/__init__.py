# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from .base import *  # noqa:F403,F401 Convenience imports
from .db_connection_check import *  # noqa:F403,F401 Convenience imports

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Collection of Exceptions & Errors
"""
from .sync_errors import *  # noqa:F403,F401 Convenience imports
from .handler import ErrorResponse, configure_exception_handlers  # noqa:F401

# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Splunk compatible json log lines"""

import datetime
import json
import logging
from enum import Enum

from pydantic import BaseModel


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    return value


class SplunkExtendedLogEntry(BaseModel):
    """
    Log message carrying additional, machine readable fields.

    Logged like a regular message; `str()` renders the message followed by all set fields as key=value.
    The `SplunkFormatter` adds the fields as top level keys to the json line.
    """

    message: str

    def extended_fields(self) -> dict[str, object]:
        """All fields besides the message which have a value"""
        return {k: _plain(v) for k, v in iter(self) if k != "message" and v is not None}

    def __str__(self) -> str:
        fields = " ".join(f"{k}={v}" for k, v in self.extended_fields().items())
        return f"{self.message} {fields}" if fields else self.message


class SplunkFormatter(logging.Formatter):
    """
    Formats every record as a single json line.

    defaults provide values for `app_name` and `correlation_id` if the record does not carry them.
    """

    def __init__(self, defaults: dict[str, str] | None = None) -> None:
        super().__init__()
        self._defaults = defaults or {}

    def _get(self, record: logging.LogRecord, key: str):
        value = getattr(record, key, None)
        return value if value is not None else self._defaults.get(key)

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.datetime.fromtimestamp(record.created).astimezone()
        data = {
            "@timestamp": timestamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "app": self._get(record, "app_name"),
            "hash": self._get(record, "correlation_id"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if isinstance(record.msg, SplunkExtendedLogEntry):
            data.update(record.msg.extended_fields())
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)

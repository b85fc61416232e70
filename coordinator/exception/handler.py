# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .sync_errors import CoordinatorError


class ErrorResponse(BaseModel):
    """
    * error: Machine readable code identifying the error
    * error_description: Human readable error description
    """

    error: str
    error_description: str


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Render coordinator errors with their error code, description & details instead of the plain `detail`.
    """

    @app.exception_handler(CoordinatorError)
    async def coordinator_exception_handler(request: Request, exc: CoordinatorError):
        content = {
            "error": exc.error,
            "error_description": exc.error_description,
        }
        content.update({k: v for k, v in exc.details.items() if v is not None})
        return JSONResponse(status_code=exc.status_code, headers=exc.headers, content=content)

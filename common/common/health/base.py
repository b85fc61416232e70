# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from pydantic import BaseModel

from fastapi import APIRouter, status, Response

import common.config as conf


class HealthStatus(Enum):
    """Indicator of system health."""

    healthy = "HEALTHY"
    unhealthy = "UNHEALTHY"


class HealthResponse(BaseModel):
    """Response body model for health request operation.

    May only contain `HealthStatus` fields. Those can be set with boolean values,
    they get converted before the model is returned to the client."""

    http_server_connectivity: HealthStatus = HealthStatus.unhealthy

    def convert_from_bool(self) -> None:
        '''Converts every boolean field into its `HealthStatus` representation.'''
        for k, v in iter(self):
            if isinstance(v, bool):
                setattr(self, k, HealthStatus.healthy if v else HealthStatus.unhealthy)

    def is_healthy(self) -> bool:
        """Summarizes all checks performed."""
        return all([v == HealthStatus.healthy for _, v in iter(self)])


class HealthAPIRouter(APIRouter):
    """Api router for the health endpoints `/health/liveness` and `/health/readiness`.

    Applications with additional checks extend `HealthResponse` and overwrite
    `get_readiness_probe` / `_build_readiness_probe`.
    """

    def __init__(
        self,
        readiness_response_model: type[HealthResponse] = HealthResponse,
        liveness_response_model: type[HealthResponse] = HealthResponse,
        *args,
        **kwargs,
    ) -> None:
        super().__init__(prefix="/health", tags=["Health"], *args, **kwargs)
        self.add_api_route(
            "/liveness",
            endpoint=self.get_liveness_probe,
            description="Determines whether the application instance needs to be restarted.",
            responses={
                status.HTTP_200_OK: {"model": liveness_response_model},
                status.HTTP_503_SERVICE_UNAVAILABLE: {"model": liveness_response_model},
            },
        )
        self.add_api_route(
            "/readiness",
            endpoint=self.get_readiness_probe,
            description="Determines whether the application instance is ready to accept requests.",
            responses={
                status.HTTP_200_OK: {"model": readiness_response_model},
                status.HTTP_503_SERVICE_UNAVAILABLE: {"model": readiness_response_model},
            },
        )

    def _resolve_probe(self, result: HealthResponse, response: Response) -> HealthResponse:
        """Sets the http status code of the response according to the checks in `result`."""
        result.http_server_connectivity = HealthStatus.healthy
        result.convert_from_bool()
        response.status_code = status.HTTP_200_OK if result.is_healthy() else status.HTTP_503_SERVICE_UNAVAILABLE
        return result

    def get_liveness_probe(self, response: Response, config: conf.inject) -> HealthResponse:
        """Determines whether the application instance needs to be restarted."""
        return self._resolve_probe(HealthResponse(), response)

    def _build_readiness_probe(self, result: HealthResponse, response: Response, config: conf.Config) -> HealthResponse:
        return self._resolve_probe(result, response)

    def get_readiness_probe(self, response: Response, config: conf.inject) -> HealthResponse:
        """Determines whether the application instance is ready to accept requests."""
        return self._build_readiness_probe(HealthResponse(), response, config)

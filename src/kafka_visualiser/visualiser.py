"""
kafka_visualiser - base application

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiohttp.web_request import Request
from collections.abc import Awaitable, Callable
from http import HTTPStatus
from kafka_visualiser.config import Config
from kafka_visualiser.dataclasses import default_dataclass
from kafka_visualiser.rapu import HTTPResponse, JSON_CONTENT_TYPE, RestApp
from kafka_visualiser.typing import JsonObject
from kafka_visualiser.utils import json_encode
from kafka_visualiser.version import __version__
from typing import NoReturn, TypeAlias

import aiohttp.web
import time


@default_dataclass
class HealthCheck:
    status: JsonObject
    healthy: bool


HealthHook: TypeAlias = Callable[[], Awaitable[HealthCheck]]


class VisualiserBase(RestApp):
    def __init__(self, config: Config) -> None:
        super().__init__(app_name="kafka_visualiser", config=config)

        self._process_start_time = time.monotonic()
        self.health_hooks: list[HealthHook] = []
        # Do not use rapu's etag and other wrapping
        self.app.router.add_route("GET", "/_health", self.health)

        self.route("/", callback=self.root_get, method="GET")
        self.log.info("Kafka visualiser initialized")

    @staticmethod
    def r(body: dict | list | int, content_type: str, status: HTTPStatus = HTTPStatus.OK) -> NoReturn:
        raise HTTPResponse(
            body=body,
            status=status,
            content_type=content_type,
            headers={},
        )

    @staticmethod
    def internal_error(message: str, content_type: str) -> NoReturn:
        VisualiserBase.r(
            content_type=content_type,
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            body={"message": message, "error_code": HTTPStatus.INTERNAL_SERVER_ERROR.value},
        )

    @staticmethod
    def produce_error(message: str, status: HTTPStatus) -> NoReturn:
        VisualiserBase.r(content_type=JSON_CONTENT_TYPE, status=status, body={"error": message})

    async def root_get(self) -> NoReturn:
        self.r({}, JSON_CONTENT_TYPE)

    async def health(self, _request: Request) -> aiohttp.web.Response:
        resp: JsonObject = {
            "process_uptime_sec": int(time.monotonic() - self._process_start_time),
            "kafka_visualiser_version": __version__,
        }
        status_code = HTTPStatus.OK
        for hook in self.health_hooks:
            check = await hook()
            resp.update(check.status)
            if not check.healthy:
                status_code = HTTPStatus.SERVICE_UNAVAILABLE
        return aiohttp.web.Response(
            body=json_encode(resp, binary=True),
            status=status_code.value,
            headers={"Content-Type": JSON_CONTENT_TYPE},
        )

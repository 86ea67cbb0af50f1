"""
kafka_visualiser - prometheus instrumentation

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""
# mypy: disable-error-code="call-overload"

from __future__ import annotations

from aiohttp.web import AppKey, middleware, Request, Response
from collections.abc import Awaitable, Callable
from kafka_visualiser.rapu import HTTPResponse, RestApp
from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest, Histogram
from typing import Final, NoReturn

import logging
import time

LOG = logging.getLogger(__name__)


class PrometheusInstrumentation:
    METRICS_ENDPOINT_PATH: Final[str] = "/metrics"
    CONTENT_TYPE_LATEST: Final[str] = "text/plain; version=0.0.4; charset=utf-8"
    START_TIME_REQUEST_KEY: Final[str] = "start_time"
    UNMATCHED_PATH: Final[str] = "unmatched"

    registry: Final[CollectorRegistry] = CollectorRegistry()

    http_requests_total: Final[Counter] = Counter(
        registry=registry,
        name="kafka_visualiser_http_requests_total",
        documentation="Total Request Count for HTTP/TCP Protocol",
        labelnames=("method", "path", "status"),
    )

    http_requests_duration_seconds: Final[Histogram] = Histogram(
        registry=registry,
        name="kafka_visualiser_http_requests_duration_seconds",
        documentation="Request Duration for HTTP/TCP Protocol",
        labelnames=("method", "path"),
    )

    http_requests_in_progress: Final[Gauge] = Gauge(
        registry=registry,
        name="kafka_visualiser_http_requests_in_progress",
        documentation="In-progress requests for HTTP/TCP Protocol",
        labelnames=("method", "path"),
    )

    http_requests_total_key: Final[AppKey[Counter]] = AppKey("http_requests_total", Counter)
    http_requests_duration_seconds_key: Final[AppKey[Histogram]] = AppKey("http_requests_duration_seconds", Histogram)
    http_requests_in_progress_key: Final[AppKey[Gauge]] = AppKey("http_requests_in_progress", Gauge)

    @classmethod
    def setup_metrics(cls, *, app: RestApp) -> None:
        LOG.info("Setting up prometheus metrics")
        app.route(
            cls.METRICS_ENDPOINT_PATH,
            callback=cls.serve_metrics,
            method="GET",
            with_request=False,
            json_body=False,
        )
        app.app.middlewares.insert(0, cls.http_request_metrics_middleware)  # type: ignore[arg-type]

        # The metric objects are kept in the application so the middleware reads them from the request
        app.app[cls.http_requests_total_key] = cls.http_requests_total
        app.app[cls.http_requests_duration_seconds_key] = cls.http_requests_duration_seconds
        app.app[cls.http_requests_in_progress_key] = cls.http_requests_in_progress

    @classmethod
    def path_label(cls, request: Request) -> str:
        """Route template of the request, so every topic shares the same series"""
        resource = request.match_info.route.resource
        if resource is None:
            return cls.UNMATCHED_PATH
        return resource.canonical

    @classmethod
    async def serve_metrics(cls) -> NoReturn:
        raise HTTPResponse(body=generate_latest(cls.registry), content_type=cls.CONTENT_TYPE_LATEST)

    @classmethod
    @middleware
    async def http_request_metrics_middleware(
        cls,
        request: Request,
        handler: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request[cls.START_TIME_REQUEST_KEY] = time.time()

        path = cls.path_label(request)
        method = request.method

        request.app[cls.http_requests_in_progress_key].labels(method, path).inc()
        try:
            response: Response = await handler(request)
        finally:
            request.app[cls.http_requests_duration_seconds_key].labels(method, path).observe(
                time.time() - request[cls.START_TIME_REQUEST_KEY]
            )
            request.app[cls.http_requests_in_progress_key].labels(method, path).dec()

        # Only requests which produced a response are counted
        request.app[cls.http_requests_total_key].labels(method, path, response.status).inc()

        return response

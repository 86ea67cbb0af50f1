"""
kafka_visualiser -
Custom middleware system on top of `aiohttp` implementing HTTP server
components for the visualiser REST application.

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiohttp.client_exceptions import ClientConnectionError
from email.message import Message
from http import HTTPStatus
from kafka_visualiser.config import Config, create_server_ssl_context
from kafka_visualiser.statsd import StatsClient
from kafka_visualiser.utils import json_decode, json_encode
from kafka_visualiser.version import __version__
from typing import NoReturn, overload

import aiohttp
import aiohttp.web
import aiohttp.web_exceptions
import asyncio
import hashlib
import logging
import re
import time

SERVER_NAME = f"KafkaVisualiser/{__version__}"
JSON_CONTENT_TYPE = "application/json"

# Anything declaring itself as JSON is accepted as a request body
JSON_CONTENT_TYPE_RE = re.compile(r"^application/([\w.+-]+\+)?json$")


def is_success(http_status: HTTPStatus) -> bool:
    """True if response has a 2xx status_code"""
    return http_status.value >= 200 and http_status.value < 300


def parse_content_type(header_value: str) -> tuple[str, dict[str, str]]:
    message = Message()
    message["Content-Type"] = header_value
    params = message.get_params() or [(JSON_CONTENT_TYPE, "")]
    (media_type, _), *options = params
    return media_type.lower(), {key.lower(): value for key, value in options}


class HTTPRequest:
    def __init__(
        self,
        *,
        url: str,
        query,
        headers: dict[str, str],
        path_for_stats: str,
        method: str,
    ):
        self.url = url
        self.headers = headers
        self._header_cache: dict[str, str | None] = {}
        self.query = query
        self.path_for_stats = path_for_stats
        self.method = method
        self.json: dict | list | None = None

    @overload
    def get_header(self, header: str) -> str | None: ...

    @overload
    def get_header(self, header: str, default_value: str) -> str: ...

    def get_header(self, header, default_value=None):
        upper_cased = header.upper()
        if upper_cased in self._header_cache:
            return self._header_cache[upper_cased]
        for h in self.headers.keys():
            if h.upper() == upper_cased:
                value = self.headers[h]
                self._header_cache[upper_cased] = value
                return value
        if upper_cased == "CONTENT-TYPE":
            # sensible default
            self._header_cache[upper_cased] = JSON_CONTENT_TYPE
        else:
            self._header_cache[upper_cased] = default_value
        return self._header_cache[upper_cased]

    def __repr__(self):
        return f"HTTPRequest(url={self.url} query={self.query} method={self.method} json={self.json!r})"


class HTTPResponse(Exception):
    """A custom Response object derived from Exception so it can be raised
    in response handler callbacks."""

    status: HTTPStatus
    json: None | list | dict | int

    def __init__(
        self,
        body,
        *,
        status: HTTPStatus = HTTPStatus.OK,
        content_type: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.body = body
        self.status = status
        self.headers = dict(headers) if headers else {}

        if isinstance(body, (dict, list, int)):
            self.headers["Content-Type"] = JSON_CONTENT_TYPE
            self.json = body
        else:
            self.json = None
        if content_type:
            self.headers["Content-Type"] = content_type
        super().__init__(f"HTTPResponse {status.value}")

    def ok(self) -> bool:
        """True if response has a 2xx status_code"""
        return is_success(self.status)

    def __repr__(self) -> str:
        return f"HTTPResponse(status={self.status} body={self.body})"


def http_error(message, content_type: str, code: HTTPStatus) -> NoReturn:
    raise HTTPResponse(
        body=json_encode(
            {
                "error_code": code,
                "message": message,
            },
            binary=True,
        ),
        headers={"Content-Type": content_type},
        status=code,
    )


class RestApp:
    def __init__(self, *, app_name: str, config: Config) -> None:
        self.app_name = app_name
        self.config = config
        self.app_request_metric = f"{app_name}_request"
        self.app = aiohttp.web.Application(client_max_size=config.http_request_max_size)
        self.log = logging.getLogger(self.app_name)
        self.stats = StatsClient(config=config)
        self.app.on_cleanup.append(self.close_by_app)

    async def close_by_app(self, app: aiohttp.web.Application) -> None:
        self.log.warning("=======> Received shutdown signal, closing Application <=======")
        self.stats.increase(f"{self.app_name}_shutdown_count")
        await self.close()

    async def close(self) -> None:
        """Method used to free all the resources allocated by the application.

        This will be called as a callback by the aiohttp server. It needs to be
        set as hook because the awaitables have to run inside the event loop
        created by the aiohttp library.
        """
        self.stats.close()

    @staticmethod
    def cors_and_server_headers_for_request(*, request, origin="*"):
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": "DELETE, GET, OPTIONS, POST, PUT",
            "Access-Control-Allow-Headers": "Authorization, Content-Type",
            "Server": SERVER_NAME,
        }

    def check_json_headers(self, request: HTTPRequest) -> None:
        media_type, _ = parse_content_type(request.get_header("Content-Type", JSON_CONTENT_TYPE))
        if request.method in {"POST", "PUT"} and not JSON_CONTENT_TYPE_RE.match(media_type):
            self.log.debug("Unexpected Content-Type value: %r", media_type)
            http_error(
                message="HTTP 415 Unsupported Media Type",
                content_type=JSON_CONTENT_TYPE,
                code=HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
            )

    async def _handle_request(
        self,
        *,
        request,
        path_for_stats,
        callback,
        callback_with_request=False,
        json_request=False,
    ):
        start_time = time.monotonic()
        resp = None
        rapu_request = HTTPRequest(
            headers=request.headers,
            query=request.query,
            method=request.method,
            url=request.url,
            path_for_stats=path_for_stats,
        )
        try:
            if request.method == "OPTIONS":
                origin = request.headers.get("Origin")
                if not origin:
                    raise HTTPResponse(body="OPTIONS missing Origin", status=HTTPStatus.BAD_REQUEST)
                headers = self.cors_and_server_headers_for_request(request=rapu_request, origin=origin)
                raise HTTPResponse(body=b"", status=HTTPStatus.OK, headers=headers)

            body = await request.read()
            if json_request:
                self.check_json_headers(rapu_request)
                if not body:
                    raise HTTPResponse(body="Missing request JSON body", status=HTTPStatus.BAD_REQUEST)
                _, options = parse_content_type(rapu_request.get_header("Content-Type"))
                charset = options.get("charset", "utf-8")
                try:
                    rapu_request.json = json_decode(body.decode(charset))
                except UnicodeDecodeError:
                    raise HTTPResponse(body=f"Request body is not valid {charset}", status=HTTPStatus.BAD_REQUEST)
                except LookupError:
                    raise HTTPResponse(body=f"Unknown charset {charset}", status=HTTPStatus.BAD_REQUEST)
                except ValueError:
                    raise HTTPResponse(body="Invalid request JSON body", status=HTTPStatus.BAD_REQUEST)
            else:
                if body not in {b"", b"{}"}:
                    raise HTTPResponse(body="No request body allowed for this operation", status=HTTPStatus.BAD_REQUEST)

            callback_kwargs = dict(request.match_info)
            if callback_with_request:
                callback_kwargs["request"] = rapu_request

            try:
                data = await callback(**callback_kwargs)
                status = HTTPStatus.OK
                headers = {}
            except HTTPResponse as ex:
                data = ex.body
                status = ex.status
                headers = ex.headers
            except Exception as ex:
                self.log.exception("Internal server error")
                self.stats.unexpected_exception(ex=ex, where="rapu_wrapped_callback")
                headers = {"Content-Type": JSON_CONTENT_TYPE}
                data = {"error_code": HTTPStatus.INTERNAL_SERVER_ERROR.value, "message": "Internal server error"}
                status = HTTPStatus.INTERNAL_SERVER_ERROR
            headers.update(self.cors_and_server_headers_for_request(request=rapu_request))

            if isinstance(data, (dict, list, int)):
                headers.setdefault("Content-Type", JSON_CONTENT_TYPE)
                resp_bytes = json_encode(data, binary=True)
            elif isinstance(data, str):
                if "Content-Type" not in headers:
                    headers["Content-Type"] = "text/plain; charset=utf-8"
                resp_bytes = data.encode("utf-8")
            else:
                resp_bytes = data

            # Only reads are conditional
            if request.method == "GET" and is_success(status):
                if resp_bytes:
                    etag = f'"{hashlib.md5(resp_bytes).hexdigest()}"'
                else:
                    etag = '""'
                if_none_match = request.headers.get("if-none-match")
                if if_none_match and if_none_match.replace("W/", "") == etag:
                    status = HTTPStatus.NOT_MODIFIED
                    resp_bytes = b""

                headers["access-control-expose-headers"] = "etag"
                headers["etag"] = etag

            resp = aiohttp.web.Response(body=resp_bytes, status=status.value, headers=headers)
        except HTTPResponse as ex:
            if isinstance(ex.body, str):
                resp = aiohttp.web.Response(text=ex.body, status=ex.status.value, headers=ex.headers)
            else:
                resp = aiohttp.web.Response(body=ex.body, status=ex.status.value, headers=ex.headers)
        except aiohttp.web_exceptions.HTTPRequestEntityTooLarge:
            # This exception is not our usual http response, so to keep a consistent error interface
            # we construct http response manually here
            status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
            body = json_encode(
                {
                    "error_code": status,
                    "message": "HTTP Request Entity Too Large",
                },
                binary=True,
            )
            headers = {"Content-Type": JSON_CONTENT_TYPE}
            resp = aiohttp.web.Response(body=body, status=status.value, headers=headers)
        except (ConnectionError, ClientConnectionError) as ex:
            self.log.warning("Connection error while handling request %s %s: %r", request.method, request.url, ex)
            status = HTTPStatus.SERVICE_UNAVAILABLE
            resp = aiohttp.web.Response(text="Service Unavailable", status=status.value)
        except asyncio.CancelledError:
            self.log.debug("Client closed connection")
            raise
        except Exception as ex:
            self.stats.unexpected_exception(ex=ex, where="rapu_wrapped_callback")
            self.log.exception("Unexpected error handling user request: %s %s", request.method, request.url)
            resp = aiohttp.web.Response(text="Internal Server Error", status=HTTPStatus.INTERNAL_SERVER_ERROR.value)
        finally:
            self.stats.timing(
                self.app_request_metric,
                time.monotonic() - start_time,
                tags={
                    "path": path_for_stats,
                    # no `resp` means that we had a failure in exception handler
                    "result": resp.status if resp else 0,
                    "method": request.method,
                },
            )

        return resp

    def route(
        self,
        path,
        *,
        callback,
        method,
        with_request=None,
        json_body=None,
    ):
        # pretty path for statsd reporting
        path_for_stats = re.sub(r"<[\w:]+>", "x", path)

        # bottle compatible routing
        aio_route = path
        aio_route = re.sub(r"<(\w+):path>", r"{\1:.+}", aio_route)
        aio_route = re.sub(r"<(\w+)>", r"{\1}", aio_route)

        if (method in {"POST", "PUT"}) and with_request is None:
            with_request = True

        if with_request and json_body is None:
            json_body = True

        async def wrapped_callback(request):
            return await self._handle_request(
                request=request,
                path_for_stats=path_for_stats,
                callback=callback,
                callback_with_request=with_request,
                json_request=json_body,
            )

        async def wrapped_cors(request):
            return await self._handle_request(
                request=request,
                path_for_stats=path_for_stats,
                callback=None,
            )

        if not aio_route.endswith("/"):
            self.app.router.add_route(method, aio_route + "/", wrapped_callback)
            self.app.router.add_route(method, aio_route, wrapped_callback)
        else:
            self.app.router.add_route(method, aio_route, wrapped_callback)
            self.app.router.add_route(method, aio_route[:-1], wrapped_callback)
        try:
            self.app.router.add_route("OPTIONS", aio_route, wrapped_cors)
        except RuntimeError as ex:
            if "Added route will never be executed, method OPTIONS is already registered" not in str(ex):
                raise

    def run(self) -> None:
        ssl_context = create_server_ssl_context(self.config)

        aiohttp.web.run_app(
            app=self.app,
            host=self.config.host,
            port=self.config.port,
            ssl_context=ssl_context,
            access_log_class=self.config.access_log_class,
            access_log_format='%Tfs %{x-client-ip}i "%r" %s "%{user-agent}i" response=%bb request_body=%{content-length}ib',
        )

"""
kafka_visualiser - utils

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiohttp.web_log import AccessLogger
from aiohttp.web_request import BaseRequest
from aiohttp.web_response import StreamResponse
from kafka_visualiser.typing import ArgJsonData, JsonData
from typing import Literal, overload

import json


@overload
def json_encode(obj: ArgJsonData) -> str: ...


@overload
def json_encode(obj: ArgJsonData, *, binary: Literal[True]) -> bytes: ...


def json_encode(obj: ArgJsonData, *, binary: bool = False) -> str | bytes:
    result = json.dumps(obj, separators=(",", ":"))
    return result.encode("utf8") if binary is True else result


def json_decode(content: str | bytes) -> JsonData:
    return json.loads(content)


class DebugAccessLogger(AccessLogger):
    """
    Logs access logs as DEBUG instead of INFO.
    Source: https://github.com/aio-libs/aiohttp/blob/d01e257da9b37c35c68b3931026a2d918c271446/aiohttp/web_log.py#L191-L210
    """

    def log(
        self,
        request: BaseRequest,
        response: StreamResponse,
        time: float,
    ) -> None:
        try:
            fmt_info = self._format_line(request, response, time)

            values = list()
            extra = dict()
            for key, value in fmt_info:
                values.append(value)

                if key.__class__ is str:
                    extra[key] = value
                else:
                    k1, k2 = key
                    dct = extra.get(k1, {})
                    dct[k2] = value
                    extra[k1] = dct

            self.logger.debug(self._log_format % tuple(values), extra=extra)
        except Exception:
            self.logger.exception("Error in logging")

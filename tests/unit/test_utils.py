"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from aiohttp.web_log import AccessLogger
from kafka_visualiser.utils import DebugAccessLogger, json_decode, json_encode
from unittest.mock import MagicMock

import logging
import pytest


def test_json_encode_compact() -> None:
    assert json_encode({"a": 1, "b": [1, 2]}) == '{"a":1,"b":[1,2]}'
    assert json_encode({"a": 1}, binary=True) == b'{"a":1}'


def test_json_encode_unknown_type() -> None:
    with pytest.raises(TypeError, match="Object of type object is not JSON serializable"):
        json_encode({"value": object()})


def test_json_decode() -> None:
    assert json_decode('{"a": [1, 2]}') == {"a": [1, 2]}
    assert json_decode(b"[1]") == [1]


def test_debug_access_logger() -> None:
    logger = MagicMock(spec=logging.Logger)
    access_logger = DebugAccessLogger(logger, AccessLogger.LOG_FORMAT)
    request = MagicMock()
    response = MagicMock()
    access_logger._format_line = MagicMock(return_value=[("remote_address", "127.0.0.1"), (("i", "user-agent"), "test")])
    access_logger._log_format = "%s %s"

    access_logger.log(request, response, 0.1)

    logger.debug.assert_called_once_with(
        "127.0.0.1 test",
        extra={"remote_address": "127.0.0.1", "i": {"user-agent": "test"}},
    )
    logger.info.assert_not_called()

"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from kafka_visualiser.config import Config
from kafka_visualiser.statsd import StatsClient
from unittest.mock import patch

import datetime


def test_disabled_without_host(config: Config) -> None:
    stats = StatsClient(config=config)
    with patch.object(stats, "_socket") as mock_socket:
        stats.increase("requests")
    mock_socket.sendto.assert_not_called()
    stats.close()


def test_send_with_tags(config: Config) -> None:
    config = config.model_copy(update={"statsd_host": "127.0.0.1", "statsd_port": 8125})
    stats = StatsClient(config=config)
    with patch.object(stats, "_socket") as mock_socket:
        stats.timing("kafka_visualiser_request", 0.5, tags={"path": "/api/v1/cluster", "result": 200})

    mock_socket.sendto.assert_called_once_with(
        b"kafka_visualiser_request,result=200,path=/api/v1/cluster,app=kafka-visualiser:0.5|ms",
        ("127.0.0.1", 8125),
    )


def test_tag_value_formatting(config: Config) -> None:
    config = config.model_copy(update={"statsd_host": "127.0.0.1"})
    stats = StatsClient(config=config)
    with patch.object(stats, "_socket") as mock_socket:
        stats.increase(
            "lag",
            3,
            tags={
                "at": datetime.datetime(2024, 1, 2, 3, 4, 5),
                "window": datetime.timedelta(minutes=2),
                "bad": "a b",
                "empty": None,
            },
        )

    (payload, _), _ = mock_socket.sendto.call_args
    assert payload == b"lag,window=120s,empty=,bad=INVALID,at=20240102T030405Z,app=kafka-visualiser:3|c"


def test_unexpected_exception(config: Config) -> None:
    stats = StatsClient(config=config)
    with patch.object(stats, "increase") as mock_increase:
        stats.unexpected_exception(ValueError("bad"), where="produce")
    mock_increase.assert_called_once_with("exception", tags={"exception": "ValueError", "where": "produce"})

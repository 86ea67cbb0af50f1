"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from aiokafka.errors import KafkaTimeoutError, UnknownTopicOrPartitionError
from collections.abc import Iterator
from concurrent.futures import Future
from confluent_kafka import TopicCollection
from confluent_kafka.error import KafkaError, KafkaException
from kafka_visualiser.kafka.admin import KafkaAdminClient
from tests.utils import make_topic_description, MockClusterDescription
from unittest.mock import Mock, patch

import pytest


def _resolved(result: object) -> Future:
    future: Future = Future()
    future.set_result(result)
    return future


def _failed(code: int) -> Future:
    future: Future = Future()
    future.set_exception(KafkaException(KafkaError(code)))
    return future


@pytest.fixture(name="admin_client")
def fixture_admin_client() -> Iterator[KafkaAdminClient]:
    yield KafkaAdminClient(bootstrap_servers="localhost:9092", request_timeout=2.5, verify_connection=False)


def test_describe_cluster_info(admin_client: KafkaAdminClient, cluster_description: MockClusterDescription) -> None:
    with patch.object(admin_client, "describe_cluster", return_value=_resolved(cluster_description)) as mock:
        assert admin_client.describe_cluster_info() is cluster_description
    mock.assert_called_once_with(request_timeout=2.5)


def test_describe_cluster_info_translates_errors(admin_client: KafkaAdminClient) -> None:
    with patch.object(admin_client, "describe_cluster", return_value=_failed(KafkaError._TIMED_OUT)):
        with pytest.raises(KafkaTimeoutError):
            admin_client.describe_cluster_info()


def test_list_topic_names(admin_client: KafkaAdminClient) -> None:
    metadata = Mock(topics={"orders": Mock(), "__consumer_offsets": Mock(), "audit": Mock(), "__transaction_state": Mock()})

    with patch.object(admin_client, "list_topics", return_value=metadata) as mock:
        assert admin_client.list_topic_names() == ["audit", "orders"]
        assert admin_client.list_topic_names(include_internal=True) == [
            "__consumer_offsets",
            "__transaction_state",
            "audit",
            "orders",
        ]
    mock.assert_called_with(timeout=2.5)


def test_list_topic_names_translates_errors(admin_client: KafkaAdminClient) -> None:
    with patch.object(admin_client, "list_topics", side_effect=KafkaException(KafkaError(KafkaError._TIMED_OUT))):
        with pytest.raises(KafkaTimeoutError):
            admin_client.list_topic_names()


def test_describe_topic_descriptions(admin_client: KafkaAdminClient) -> None:
    orders = make_topic_description("orders", partition_count=3, replication_factor=2)
    audit = make_topic_description("audit", partition_count=1, replication_factor=1)

    with patch.object(
        admin_client, "describe_topics", return_value={"orders": _resolved(orders), "audit": _resolved(audit)}
    ) as mock:
        assert admin_client.describe_topic_descriptions(["audit", "orders"]) == {"orders": orders, "audit": audit}

    (collection,), kwargs = mock.call_args
    assert isinstance(collection, TopicCollection)
    assert collection.topic_names == ["audit", "orders"]
    assert kwargs == {"request_timeout": 2.5}


def test_describe_topic_descriptions_no_topics(admin_client: KafkaAdminClient) -> None:
    with patch.object(admin_client, "describe_topics") as mock:
        assert admin_client.describe_topic_descriptions([]) == {}
    mock.assert_not_called()


def test_describe_topic_descriptions_translates_errors(admin_client: KafkaAdminClient) -> None:
    futures = {"orders": _failed(KafkaError.UNKNOWN_TOPIC_OR_PART)}
    with patch.object(admin_client, "describe_topics", return_value=futures):
        with pytest.raises(UnknownTopicOrPartitionError):
            admin_client.describe_topic_descriptions(["orders"])

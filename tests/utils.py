"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from confluent_kafka import TIMESTAMP_CREATE_TIME
from unittest.mock import Mock


class MockNode:
    def __init__(self, id: int, host: str, port: int) -> None:
        self.id = id
        self.host = host
        self.port = port


class MockPartition:
    def __init__(self, id: int, replicas: list[MockNode]) -> None:
        self.id = id
        self.replicas = replicas


class MockTopicDescription:
    def __init__(self, name: str, partitions: list[MockPartition]) -> None:
        self.name = name
        self.partitions = partitions


class MockClusterDescription:
    def __init__(self, cluster_id: str | None, controller: MockNode | None, nodes: list[MockNode]) -> None:
        self.cluster_id = cluster_id
        self.controller = controller
        self.nodes = nodes


def make_topic_description(name: str, partition_count: int, replication_factor: int) -> MockTopicDescription:
    replicas = [MockNode(node_id, f"kafka-{node_id}", 9092) for node_id in range(replication_factor)]
    return MockTopicDescription(name, [MockPartition(partition_id, replicas) for partition_id in range(partition_count)])


def make_message(*, partition: int = 0, offset: int | None = 42, timestamp: int = 1700000000000) -> Mock:
    message = Mock()
    message.partition.return_value = partition
    message.offset.return_value = offset
    message.timestamp.return_value = (TIMESTAMP_CREATE_TIME, timestamp)
    return message

"""
kafka_visualiser - response and request models

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from confluent_kafka import Message, TIMESTAMP_NOT_AVAILABLE
from confluent_kafka.admin import DescribeClusterResult, TopicDescription
from kafka_visualiser.constants import NO_NODE_ID
from pydantic import BaseModel, ConfigDict, Field
from typing import Any


class _ResponseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class BrokerInfo(_ResponseModel):
    id: int
    host: str
    port: int

    @classmethod
    def from_node(cls, node) -> BrokerInfo:
        return cls(id=node.id, host=node.host, port=node.port)


class ClusterInfo(_ResponseModel):
    cluster_id: str | None = Field(alias="clusterId")
    brokers: list[BrokerInfo]
    controller_id: int = Field(alias="controllerId")

    @classmethod
    def from_description(cls, description: DescribeClusterResult) -> ClusterInfo:
        controller = description.controller
        return cls(
            cluster_id=description.cluster_id,
            brokers=[BrokerInfo.from_node(node) for node in description.nodes],
            controller_id=controller.id if controller is not None else NO_NODE_ID,
        )


class TopicInfo(_ResponseModel):
    name: str
    partitions: int
    # Taken from the first partition, replication is assumed uniform across partitions
    replication_factor: int = Field(alias="replicationFactor")

    @classmethod
    def from_description(cls, description: TopicDescription) -> TopicInfo:
        partitions = description.partitions
        return cls(
            name=description.name,
            partitions=len(partitions),
            replication_factor=len(partitions[0].replicas) if partitions else 0,
        )


class ProduceRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: Any = None
    value: Any = None
    headers: Any = None


class ProduceResponse(_ResponseModel):
    topic: str
    partition: int
    offset: int
    timestamp: int

    @classmethod
    def from_message(cls, topic: str, message: Message) -> ProduceResponse:
        timestamp_type, timestamp = message.timestamp()
        offset = message.offset()
        return cls(
            topic=topic,
            partition=message.partition(),
            # Unavailable offsets and timestamps are reported as -1
            offset=offset if offset is not None else -1,
            timestamp=timestamp if timestamp_type != TIMESTAMP_NOT_AVAILABLE else -1,
        )

"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Future
from confluent_kafka import TopicCollection
from confluent_kafka.admin import AdminClient, ClusterMetadata, DescribeClusterResult, TopicDescription
from confluent_kafka.error import KafkaException
from kafka_visualiser.constants import INTERNAL_TOPICS
from kafka_visualiser.kafka.common import _KafkaConfigMixin, KafkaClientParams, raise_from_kafkaexception
from typing_extensions import Unpack


class KafkaAdminClient(_KafkaConfigMixin, AdminClient):
    def __init__(
        self,
        bootstrap_servers: Iterable[str] | str,
        request_timeout: float = 10.0,
        **params: Unpack[KafkaClientParams],
    ) -> None:
        self.request_timeout = request_timeout
        super().__init__(bootstrap_servers, **params)

    def describe_cluster_info(self) -> DescribeClusterResult:
        """Describes the cluster: its id, controller node and broker nodes."""
        self.log.info("Describing cluster")
        future: Future[DescribeClusterResult] = self.describe_cluster(request_timeout=self.request_timeout)
        try:
            return future.result()
        except KafkaException as exc:
            raise_from_kafkaexception(exc)

    def list_topic_names(self, include_internal: bool = False) -> list[str]:
        """Returns the names of the topics in the cluster, sorted.

        Using the `list_topics` method of the `AdminClient`, which returns the
        metadata of the entire cluster. Internal topics are left out unless
        asked for, the same way the Kafka admin API lists topics by default.
        """
        self.log.info("Listing topic names (include_internal=%s)", include_internal)
        try:
            cluster_metadata: ClusterMetadata = self.list_topics(timeout=self.request_timeout)
        except KafkaException as exc:
            raise_from_kafkaexception(exc)
        return sorted(topic for topic in cluster_metadata.topics if include_internal or topic not in INTERNAL_TOPICS)

    def describe_topic_descriptions(self, topics: list[str]) -> dict[str, TopicDescription]:
        """Describes the given topics, returning the descriptions keyed by topic name.

        A failure to describe any of the topics fails the whole call.
        """
        if not topics:
            return {}
        self.log.info("Describing topics %s", topics)
        futmap: dict[str, Future[TopicDescription]] = self.describe_topics(
            TopicCollection(topics), request_timeout=self.request_timeout
        )
        try:
            return {topic: future.result() for topic, future in futmap.items()}
        except KafkaException as exc:
            raise_from_kafkaexception(exc)

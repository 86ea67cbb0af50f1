"""
kafka_visualiser - cluster metadata and produce REST API

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiokafka.errors import KafkaError
from collections.abc import Awaitable
from confluent_kafka.error import KafkaException
from contextlib import AsyncExitStack
from http import HTTPStatus
from kafka_visualiser.config import Config
from kafka_visualiser.constants import API_PREFIX
from kafka_visualiser.models import ProduceRequest, ProduceResponse
from kafka_visualiser.rapu import HTTPRequest, JSON_CONTENT_TYPE
from kafka_visualiser.services import ClusterService, encode_record_value, ProducerService
from kafka_visualiser.visualiser import HealthCheck, VisualiserBase
from pydantic import ValidationError
from typing import NoReturn, TypeVar

import asyncio
import logging

T = TypeVar("T")

# Failures of the Kafka client itself, as opposed to failures of our own code
KAFKA_CLIENT_ERRORS = (KafkaError, KafkaException)

log = logging.getLogger(__name__)


class KafkaVisualiserRest(VisualiserBase):
    def __init__(
        self,
        config: Config,
        cluster_service: ClusterService | None = None,
        producer_service: ProducerService | None = None,
    ) -> None:
        super().__init__(config=config)
        self.cluster_service = cluster_service if cluster_service is not None else ClusterService(config)
        self.producer_service = producer_service if producer_service is not None else ProducerService(config)
        self._add_visualiser_routes()
        self.health_hooks.append(self.kafka_clients_health)
        log.info("Kafka visualiser REST API starting, bootstrap servers %s", config.bootstrap_uri)

    async def close(self) -> None:
        log.info("Closing Kafka visualiser REST API")
        async with AsyncExitStack() as stack:
            stack.push_async_callback(super().close)
            stack.push_async_callback(self.cluster_service.close)
            stack.push_async_callback(self.producer_service.stop)

    def _add_visualiser_routes(self) -> None:
        # Cluster
        self.route(f"{API_PREFIX}/cluster", callback=self.get_cluster, method="GET")

        # Brokers
        self.route(f"{API_PREFIX}/brokers", callback=self.get_brokers, method="GET")
        self.route(f"{API_PREFIX}/brokers/count", callback=self.get_number_of_brokers, method="GET")

        # Topics
        self.route(f"{API_PREFIX}/topics", callback=self.get_topics, method="GET")
        self.route(f"{API_PREFIX}/topics/count", callback=self.get_number_of_topics, method="GET")
        self.route(f"{API_PREFIX}/topics/<topic>/produce", callback=self.produce, method="POST", with_request=True)

    async def kafka_clients_health(self) -> HealthCheck:
        return HealthCheck(
            status={"admin_client_initialized": self.cluster_service.admin_client is not None},
            healthy=True,
        )

    async def _read_metadata(self, what: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except KAFKA_CLIENT_ERRORS as e:
            log.warning("Could not read %s from the Kafka cluster: %s", what, e)
            self.internal_error(message=f"Could not read {what}: {e}", content_type=JSON_CONTENT_TYPE)

    async def get_cluster(self) -> NoReturn:
        cluster_info = await self._read_metadata("cluster", self.cluster_service.get_cluster_info())
        self.r(cluster_info.to_json(), JSON_CONTENT_TYPE)

    async def get_brokers(self) -> NoReturn:
        brokers = await self._read_metadata("brokers", self.cluster_service.get_broker_info())
        self.r([broker.to_json() for broker in brokers], JSON_CONTENT_TYPE)

    async def get_number_of_brokers(self) -> NoReturn:
        self.r(await self._read_metadata("brokers", self.cluster_service.get_number_of_brokers()), JSON_CONTENT_TYPE)

    async def get_topics(self) -> NoReturn:
        topics = await self._read_metadata("topics", self.cluster_service.get_topic_info())
        self.r([topic.to_json() for topic in topics], JSON_CONTENT_TYPE)

    async def get_number_of_topics(self) -> NoReturn:
        self.r(await self._read_metadata("topics", self.cluster_service.get_number_of_topics()), JSON_CONTENT_TYPE)

    @staticmethod
    def _parse_partition(request: HTTPRequest) -> int | None:
        partition = request.query.get("partition")
        # An empty value is the same as no value
        if not partition:
            return None
        try:
            return int(partition)
        except ValueError:
            VisualiserBase.produce_error(f"partition is not a valid int: {partition}", HTTPStatus.BAD_REQUEST)

    async def produce(self, topic: str, *, request: HTTPRequest) -> NoReturn:
        log.debug("Executing produce on topic %s", topic)
        partition = self._parse_partition(request)
        try:
            body = ProduceRequest.model_validate(request.json)
        except ValidationError:
            self.produce_error("Request body must be a JSON object", HTTPStatus.BAD_REQUEST)

        if body.value is None:
            self.produce_error("Missing 'value' in request body", HTTPStatus.BAD_REQUEST)
        key = encode_record_value(body.key) if body.key is not None else None
        value = encode_record_value(body.value)
        # Headers are only taken from a JSON object, anything else is ignored
        headers = body.headers if isinstance(body.headers, dict) else None

        try:
            delivery = await self.producer_service.enqueue(topic, key, value, partition, headers)
        except Exception as e:
            log.warning("Could not publish to topic %s: %s", topic, e)
            self.produce_error(str(e), HTTPStatus.BAD_REQUEST)

        try:
            message = await self.producer_service.wait_for_delivery(delivery)
        except KAFKA_CLIENT_ERRORS as e:
            log.warning("Delivery to topic %s failed: %s", topic, e)
            self.produce_error(str(e), HTTPStatus.INTERNAL_SERVER_ERROR)
        except asyncio.TimeoutError:
            log.warning("Timed out waiting for delivery to topic %s", topic)
            self.produce_error("Timed out waiting for the record to be delivered", HTTPStatus.INTERNAL_SERVER_ERROR)

        self.r(ProduceResponse.from_message(topic, message).to_json(), JSON_CONTENT_TYPE)

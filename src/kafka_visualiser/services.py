"""
kafka_visualiser - cluster and producer services

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from aiokafka.errors import AuthenticationFailedError, NoBrokersAvailable
from collections.abc import Callable, Mapping
from confluent_kafka import Message
from contextlib import AsyncExitStack
from kafka_visualiser.config import Config
from kafka_visualiser.kafka.admin import KafkaAdminClient
from kafka_visualiser.kafka.producer import AsyncKafkaProducer
from kafka_visualiser.models import BrokerInfo, ClusterInfo, TopicInfo
from kafka_visualiser.utils import json_encode
from operator import methodcaller
from typing import Any, TypeVar

import asyncio
import logging
import time

LOG = logging.getLogger(__name__)

T = TypeVar("T")


def encode_record_value(value: Any) -> str:
    """Strings are published as they are, anything else as its JSON encoding.

    Values which can't be JSON encoded fall back to their `str` representation.
    """
    if isinstance(value, str):
        return value
    try:
        return json_encode(value)
    except (TypeError, ValueError):
        LOG.debug("Value of type %s is not JSON serializable, falling back to str()", type(value).__name__)
        return str(value)


def encode_record_headers(headers: Mapping[Any, Any]) -> list[tuple[str, bytes]]:
    return [
        (encode_record_value(name), encode_record_value(value).encode("utf-8"))
        for name, value in headers.items()
        if value is not None
    ]


class ClusterService:
    """Reads cluster, broker and topic metadata through a Kafka admin client.

    The admin client is blocking, its calls are made one at a time in the
    default executor.
    """

    def __init__(self, config: Config, admin_client: KafkaAdminClient | None = None) -> None:
        self.config = config
        self.admin_client = admin_client
        self.admin_lock = asyncio.Lock()

    def init_admin_client(self) -> KafkaAdminClient:
        for retry in [True, True, False]:
            try:
                self.admin_client = KafkaAdminClient(
                    bootstrap_servers=self.config.bootstrap_uri,
                    request_timeout=self.config.kafka_timeout,
                    client_id=self.config.client_id,
                    security_protocol=self.config.security_protocol,
                    ssl_cafile=self.config.ssl_cafile,
                    ssl_certfile=self.config.ssl_certfile,
                    ssl_keyfile=self.config.ssl_keyfile,
                    ssl_crlfile=self.config.ssl_crlfile,
                    ssl_password=self.config.ssl_password,
                    metadata_max_age_ms=self.config.metadata_max_age_ms,
                    connections_max_idle_ms=self.config.connections_max_idle_ms,
                    **self.config.get_kafka_client_auth_parameters(),
                )
                break
            except (NoBrokersAvailable, AuthenticationFailedError):
                if retry:
                    LOG.warning("Unable to start admin client, retrying")
                else:
                    LOG.warning("Giving up after failing to start admin client")
                    raise
                time.sleep(1)
        return self.admin_client

    async def _call(self, func: Callable[[KafkaAdminClient], T]) -> T:
        loop = asyncio.get_running_loop()
        async with self.admin_lock:
            admin_client = self.admin_client
            if admin_client is None:
                admin_client = await loop.run_in_executor(None, self.init_admin_client)
            return await loop.run_in_executor(None, func, admin_client)

    async def get_cluster_info(self) -> ClusterInfo:
        description = await self._call(methodcaller("describe_cluster_info"))
        return ClusterInfo.from_description(description)

    async def get_broker_info(self) -> list[BrokerInfo]:
        description = await self._call(methodcaller("describe_cluster_info"))
        return [BrokerInfo.from_node(node) for node in description.nodes]

    async def get_number_of_brokers(self) -> int:
        description = await self._call(methodcaller("describe_cluster_info"))
        return len(description.nodes)

    async def get_topic_info(self) -> list[TopicInfo]:
        def describe_all_topics(admin_client: KafkaAdminClient) -> list[TopicInfo]:
            names = admin_client.list_topic_names()
            descriptions = admin_client.describe_topic_descriptions(names)
            return [TopicInfo.from_description(descriptions[name]) for name in names]

        return await self._call(describe_all_topics)

    async def get_number_of_topics(self) -> int:
        names = await self._call(methodcaller("list_topic_names"))
        return len(names)

    async def close(self) -> None:
        # The admin client has no explicit close, dropping the reference releases it
        self.admin_client = None


class ProducerService:
    """Publishes single records with a lazily created async producer."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._async_producer_lock = asyncio.Lock()
        self._async_producer: AsyncKafkaProducer | None = None

    async def _maybe_create_async_producer(self) -> AsyncKafkaProducer:
        """
        :raises NoBrokersAvailable:
        :raises AuthenticationFailedError:
        """
        if self._async_producer is not None:
            return self._async_producer

        async with self._async_producer_lock:
            for retry in [True, True, False]:
                if self._async_producer is not None:
                    break

                LOG.info("Creating async producer")

                producer = AsyncKafkaProducer(
                    bootstrap_servers=self.config.bootstrap_uri,
                    acks=self.config.get_producer_acks(),
                    client_id=self.config.client_id,
                    connections_max_idle_ms=self.config.connections_max_idle_ms,
                    linger_ms=self.config.producer_linger_ms,
                    metadata_max_age_ms=self.config.metadata_max_age_ms,
                    security_protocol=self.config.security_protocol,
                    ssl_cafile=self.config.ssl_cafile,
                    ssl_certfile=self.config.ssl_certfile,
                    ssl_keyfile=self.config.ssl_keyfile,
                    ssl_crlfile=self.config.ssl_crlfile,
                    ssl_password=self.config.ssl_password,
                    **self.config.get_kafka_client_auth_parameters(),
                )
                try:
                    await producer.start()
                except (NoBrokersAvailable, AuthenticationFailedError):
                    await producer.stop()
                    if retry:
                        LOG.warning("Unable to connect to the bootstrap servers, retrying")
                    else:
                        LOG.warning("Giving up after trying to connect to the bootstrap servers")
                        raise
                    await asyncio.sleep(1)
                except Exception:
                    await producer.stop()
                    raise
                else:
                    self._async_producer = producer

        return self._async_producer

    async def start(self) -> None:
        await self._maybe_create_async_producer()

    async def enqueue(
        self,
        topic: str,
        key: str | None,
        value: str | None,
        partition: int | None = None,
        headers: Mapping[Any, Any] | None = None,
    ) -> asyncio.Future[Message]:
        """Hands the record to the producer, returning the future of its delivery report.

        Errors raised here happen before the record is sent to Kafka.
        """
        producer = await self._maybe_create_async_producer()
        return await producer.send(
            topic,
            key=key.encode("utf-8") if key is not None else None,
            value=value.encode("utf-8") if value is not None else None,
            partition=partition,
            headers=encode_record_headers(headers) if headers else None,
        )

    async def wait_for_delivery(self, delivery: asyncio.Future[Message]) -> Message:
        # Shielded, a delivery report may still arrive for a record that timed out
        return await asyncio.wait_for(asyncio.shield(delivery), timeout=self.config.kafka_timeout)

    async def produce(
        self,
        topic: str,
        key: str | None,
        value: str | None,
        partition: int | None = None,
        headers: Mapping[Any, Any] | None = None,
    ) -> Message:
        delivery = await self.enqueue(topic, key, value, partition, headers)
        return await self.wait_for_delivery(delivery)

    async def stop(self) -> None:
        async with AsyncExitStack() as stack, self._async_producer_lock:
            if self._async_producer is not None:
                LOG.info("Disposing async producer")
                stack.push_async_callback(self._async_producer.stop)
            self._async_producer = None

"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from collections.abc import Iterator
from kafka_visualiser.config import Config
from kafka_visualiser.container import KafkaVisualiserContainer
from tests.utils import MockClusterDescription, MockNode

import pytest


@pytest.fixture(name="config")
def fixture_config(visualiser_container: KafkaVisualiserContainer) -> Iterator[Config]:
    yield visualiser_container.config().model_copy(
        update={
            "bootstrap_uri": "kafka-1:9092",
            "kafka_timeout": 0.5,
        }
    )


@pytest.fixture(name="cluster_description")
def fixture_cluster_description() -> MockClusterDescription:
    brokers = [MockNode(1, "kafka-1", 9092), MockNode(2, "kafka-2", 9093)]
    return MockClusterDescription("Y4kgmUx6RkqDyd8nHb5Dkg", brokers[0], brokers)

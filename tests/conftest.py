"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from kafka_visualiser.container import KafkaVisualiserContainer

import pytest


@pytest.fixture(name="visualiser_container")
def fixture_visualiser_container() -> KafkaVisualiserContainer:
    return KafkaVisualiserContainer()

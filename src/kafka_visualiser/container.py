"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from dependency_injector import containers, providers
from kafka_visualiser.config import Config
from kafka_visualiser.instrumentation.prometheus import PrometheusInstrumentation


class KafkaVisualiserContainer(containers.DeclarativeContainer):
    config = providers.Singleton(Config)
    prometheus = providers.Singleton(PrometheusInstrumentation)

"""
kafka_visualiser - configuration validation

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from kafka_visualiser.constants import (
    DEFAULT_AIOHTTP_CLIENT_MAX_SIZE,
    DEFAULT_BOOTSTRAP_URI,
    DEFAULT_CLIENT_ID,
    DEFAULT_KAFKA_TIMEOUT_S,
)
from kafka_visualiser.typing import ProducerAcks, SecurityProtocol
from pathlib import Path
from pydantic import BaseModel, ImportString
from pydantic_settings import BaseSettings, SettingsConfigDict

import os
import ssl


class VisualiserTags(BaseModel):
    app: str = "kafka-visualiser"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="kafka_visualiser_", env_ignore_empty=True, env_nested_delimiter="__")

    access_logs_debug: bool = False
    access_log_class: ImportString = "aiohttp.web_log.AccessLogger"
    bootstrap_uri: str = DEFAULT_BOOTSTRAP_URI
    client_id: str = DEFAULT_CLIENT_ID
    connections_max_idle_ms: int = 15000
    host: str = "127.0.0.1"
    port: int = 8080
    http_request_max_size: int = DEFAULT_AIOHTTP_CLIENT_MAX_SIZE
    kafka_timeout: float = DEFAULT_KAFKA_TIMEOUT_S
    server_tls_certfile: str | None = None
    server_tls_keyfile: str | None = None
    log_handler: str | None = "stdout"
    log_level: str = "INFO"
    log_format: str = "%(name)-20s\t%(threadName)s\t%(levelname)-8s\t%(message)s"
    metadata_max_age_ms: int = 60000
    producer_acks: str = ProducerAcks.all.value
    producer_linger_ms: int = 0
    security_protocol: str = SecurityProtocol.PLAINTEXT.value
    ssl_cafile: str | None = None
    ssl_certfile: str | None = None
    ssl_keyfile: str | None = None
    ssl_crlfile: str | None = None
    ssl_password: str | None = None
    sasl_mechanism: str | None = None
    sasl_plain_username: str | None = None
    sasl_plain_password: str | None = None
    statsd_host: str | None = None
    statsd_port: int = 8125

    tags: VisualiserTags = VisualiserTags()

    def get_producer_acks(self) -> int:
        if self.producer_acks == ProducerAcks.all:
            return -1
        return int(self.producer_acks)

    def get_kafka_client_auth_parameters(self) -> dict[str, str | None]:
        if self.sasl_mechanism is None:
            return {}
        return {
            "sasl_mechanism": self.sasl_mechanism,
            "sasl_plain_username": self.sasl_plain_username,
            "sasl_plain_password": self.sasl_plain_password,
        }


class InvalidConfiguration(Exception):
    pass


def validate_config(config: Config) -> None:
    try:
        SecurityProtocol(config.security_protocol)
    except ValueError:
        valid_protocols = [protocol.value for protocol in SecurityProtocol]
        raise InvalidConfiguration(
            f"Invalid security protocol: {config.security_protocol}, valid values are {valid_protocols}"
        ) from None

    try:
        ProducerAcks(config.producer_acks)
    except ValueError:
        valid_acks = [acks.value for acks in ProducerAcks]
        raise InvalidConfiguration(f"Invalid producer acks: {config.producer_acks}, valid values are {valid_acks}") from None

    uses_sasl = config.security_protocol in (SecurityProtocol.SASL_PLAINTEXT, SecurityProtocol.SASL_SSL)
    if uses_sasl and config.sasl_mechanism is None:
        raise InvalidConfiguration(f"Using '{config.security_protocol}' requires 'sasl_mechanism' to be set")
    if config.sasl_mechanism is not None and not uses_sasl:
        raise InvalidConfiguration("'sasl_mechanism' requires a SASL_PLAINTEXT or SASL_SSL 'security_protocol'")

    if config.kafka_timeout <= 0:
        raise InvalidConfiguration("'kafka_timeout' must be a positive number of seconds")


def read_env_file(env_file_path: str | Path) -> Config:
    config = Config(_env_file=env_file_path, _env_file_encoding="utf-8")
    validate_config(config)
    return config


def create_server_ssl_context(config: Config) -> ssl.SSLContext | None:
    tls_certfile = config.server_tls_certfile
    tls_keyfile = config.server_tls_keyfile
    if tls_certfile is None:
        if tls_keyfile is None:
            # Neither config value set, do not use TLS
            return None
        raise InvalidConfiguration("`server_tls_keyfile` defined but `server_tls_certfile` not defined")
    if tls_keyfile is None:
        raise InvalidConfiguration("`server_tls_certfile` defined but `server_tls_keyfile` not defined")
    if not os.path.exists(tls_certfile):
        raise InvalidConfiguration("`server_tls_certfile` file does not exist")
    if not os.path.exists(tls_keyfile):
        raise InvalidConfiguration("`server_tls_keyfile` file does not exist")

    ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ssl_context.options |= ssl.OP_NO_SSLv2
    ssl_context.options |= ssl.OP_NO_SSLv3
    ssl_context.options |= ssl.OP_NO_TLSv1
    ssl_context.options |= ssl.OP_NO_TLSv1_1

    ssl_context.load_cert_chain(certfile=tls_certfile, keyfile=tls_keyfile)
    return ssl_context

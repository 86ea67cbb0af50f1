"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from __future__ import annotations

from dependency_injector import providers
from kafka_visualiser import version as visualiser_version
from kafka_visualiser.config import read_env_file, validate_config
from kafka_visualiser.container import KafkaVisualiserContainer
from kafka_visualiser.logging_setup import configure_logging, log_config_without_secrets
from kafka_visualiser.visualiser_apis import KafkaVisualiserRest
from typing import Final

import argparse
import logging
import sys

PROGRAM_NAME: Final[str] = "kafka-visualiser"


def main() -> int:
    container = KafkaVisualiserContainer()

    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Kafka visualiser: browse cluster metadata and produce records over HTTP",
    )
    parser.add_argument("--version", action="version", help="show program version", version=visualiser_version.__version__)
    parser.add_argument("env_file", nargs="?", help="optional .env file with KAFKA_VISUALISER_ settings")
    arg = parser.parse_args()

    if arg.env_file is not None:
        container.config.override(providers.Object(read_env_file(arg.env_file)))
    config = container.config()
    validate_config(config)

    configure_logging(config=config)
    log_config_without_secrets(config=config)

    logging.info("\n%s\nStarting %s\n%s", ("=" * 100), PROGRAM_NAME, ("=" * 100))
    app = KafkaVisualiserRest(config=config)

    try:
        container.prometheus().setup_metrics(app=app)
        app.run()  # `close` will be called by the callback `close_by_app` set by `RestApp`
    except Exception as ex:
        app.stats.unexpected_exception(ex=ex, where=PROGRAM_NAME)
        raise
    return 0


if __name__ == "__main__":
    sys.exit(main())

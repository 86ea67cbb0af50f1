"""
kafka_visualiser - constants

Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from typing import Final

API_PREFIX: Final = "/api/v1"
DEFAULT_BOOTSTRAP_URI: Final = "localhost:9092"
DEFAULT_CLIENT_ID: Final = "kv-producer-ui"
DEFAULT_AIOHTTP_CLIENT_MAX_SIZE: Final = 1048576
DEFAULT_KAFKA_TIMEOUT_S: Final = 10.0

# Topics the Kafka admin API leaves out of a default topic listing
INTERNAL_TOPICS: Final = frozenset({"__consumer_offsets", "__transaction_state"})

# Node id Kafka uses when there is no such node, e.g. no active controller
NO_NODE_ID: Final = -1

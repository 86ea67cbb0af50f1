"""
Copyright (c) 2024 Aiven Ltd
See LICENSE for details
"""

from kafka_visualiser.visualiser_apis.__main__ import main
from pathlib import Path
from unittest.mock import patch

import pytest


def test_main_runs_application() -> None:
    with (
        patch("kafka_visualiser.visualiser_apis.__main__.KafkaVisualiserRest") as mock_app_class,
        patch("kafka_visualiser.visualiser_apis.__main__.configure_logging") as mock_configure_logging,
        patch("kafka_visualiser.instrumentation.prometheus.PrometheusInstrumentation.setup_metrics") as mock_setup_metrics,
        patch("sys.argv", ["kafka-visualiser"]),
    ):
        assert main() == 0

    (_, kwargs) = mock_app_class.call_args
    config = kwargs["config"]
    mock_configure_logging.assert_called_once_with(config=config)
    mock_setup_metrics.assert_called_once_with(app=mock_app_class.return_value)
    mock_app_class.return_value.run.assert_called_once_with()


def test_main_reads_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("KAFKA_VISUALISER_BOOTSTRAP_URI=broker-from-file:9092\n")

    with (
        patch("kafka_visualiser.visualiser_apis.__main__.KafkaVisualiserRest") as mock_app_class,
        patch("kafka_visualiser.visualiser_apis.__main__.configure_logging"),
        patch("kafka_visualiser.instrumentation.prometheus.PrometheusInstrumentation.setup_metrics"),
        patch("sys.argv", ["kafka-visualiser", str(env_file)]),
    ):
        main()

    (_, kwargs) = mock_app_class.call_args
    assert kwargs["config"].bootstrap_uri == "broker-from-file:9092"


def test_main_counts_unexpected_exception() -> None:
    with (
        patch("kafka_visualiser.visualiser_apis.__main__.KafkaVisualiserRest") as mock_app_class,
        patch("kafka_visualiser.visualiser_apis.__main__.configure_logging"),
        patch("kafka_visualiser.instrumentation.prometheus.PrometheusInstrumentation.setup_metrics"),
        patch("sys.argv", ["kafka-visualiser"]),
    ):
        error = OSError("address already in use")
        mock_app_class.return_value.run.side_effect = error
        with pytest.raises(OSError):
            main()

    mock_app_class.return_value.stats.unexpected_exception.assert_called_once_with(ex=error, where="kafka-visualiser")

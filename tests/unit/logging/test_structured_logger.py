"""
Tests unitaires Logging - Structured Logger

- Une ligne JSON par événement, champs obligatoires présents
- Timestamp ISO 8601 UTC
- Niveaux DEBUG < INFO < WARN < ERROR < CRITICAL
- Secrets masqués avant écriture
- Corrélation par tentative de failover
"""

import io
import json
import re

import pytest

from dbfailover.logging import (
    ContextualLogger,
    FileOutputHandler,
    IStructuredLogger,
    LogConfig,
    LogLevel,
    MissingRequiredFieldError,
    StructuredLogger,
    stream_output_handler,
)


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def json_logger(stream):
    logger = StructuredLogger("failover-controller", output_handlers=[stream_output_handler(stream)])
    logger.set_default_cluster("orders")
    return logger


def lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestJsonFormat:
    """Une ligne JSON par événement."""

    def test_output_is_valid_json(self, json_logger, stream):
        json_logger.info("Primary health check failed", region="us-east-1", consecutive_failures=2)

        [line] = lines(stream)
        assert line["message"] == "Primary health check failed"
        assert line["level"] == "INFO"
        assert line["cluster_id"] == "orders"
        assert line["logger"] == "failover-controller"
        assert line["extra"] == {"region": "us-east-1", "consecutive_failures": 2}
        assert line["correlation_id"]

    def test_timestamp_iso_utc(self, json_logger):
        entry = json_logger.info("x")

        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", entry.timestamp)

    def test_implements_interface(self, json_logger):
        assert isinstance(json_logger, IStructuredLogger)

    def test_file_handler(self, tmp_path):
        path = tmp_path / "logs" / "dbfailover.log"
        logger = StructuredLogger("cli", output_handlers=[FileOutputHandler(path)])
        logger.set_default_cluster("orders")

        logger.info("first")
        logger.warn("second")

        written = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [w["message"] for w in written] == ["first", "second"]


class TestRequiredFields:
    def test_cluster_id_required(self):
        logger = StructuredLogger("test")

        with pytest.raises(MissingRequiredFieldError) as exc_info:
            logger.info("no cluster")

        assert exc_info.value.field_name == "cluster_id"

    def test_message_required(self, json_logger):
        with pytest.raises(MissingRequiredFieldError):
            json_logger.info("")

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            StructuredLogger("  ")


class TestLevels:
    def test_min_level_filters(self, stream):
        logger = StructuredLogger(
            "test",
            config=LogConfig(min_level=LogLevel.WARN, default_cluster_id="orders"),
            output_handlers=[stream_output_handler(stream)],
        )

        assert logger.info("ignored") is None
        assert logger.critical("kept") is not None
        assert [line["level"] for line in lines(stream)] == ["CRITICAL"]

    @pytest.mark.parametrize("value,expected", [("warning", LogLevel.WARN), ("DEBUG", LogLevel.DEBUG), (" error ", LogLevel.ERROR)])
    def test_parse(self, value, expected):
        assert LogLevel.parse(value) == expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            LogLevel.parse("verbose")

    def test_entries_bounded(self):
        logger = StructuredLogger("test", config=LogConfig(default_cluster_id="c", max_entries=3))
        for i in range(5):
            logger.info(f"line {i}")

        assert [e.message for e in logger.get_entries()] == ["line 2", "line 3", "line 4"]


class TestMasking:
    def test_secrets_masked(self, json_logger, stream):
        json_logger.error(
            "Notification delivery failed",
            routing_key="R0UT1NG",
            db_password="s3cret",
            error="could not connect to postgresql://failover:s3cret@db:5432/orders",
        )

        [line] = lines(stream)
        assert line["extra"]["routing_key"] == "***MASKED***"
        assert line["extra"]["db_password"] == "***MASKED***"
        assert "s3cret" not in json.dumps(line)

    def test_masking_disabled(self):
        logger = StructuredLogger("t", config=LogConfig(default_cluster_id="c", mask_sensitive=False))

        entry = logger.info("x", password="visible")

        assert entry.extra["password"] == "visible"


class TestCorrelation:
    def test_default_correlation(self, json_logger):
        json_logger.set_default_correlation("event-1")
        first = json_logger.info("Failover initiated")
        second = json_logger.warn("Promotion step started")
        json_logger.set_default_correlation(None)
        third = json_logger.info("after")

        assert first.correlation_id == second.correlation_id == "event-1"
        assert third.correlation_id != "event-1"
        assert len(json_logger.get_entries_by_correlation("event-1")) == 2

    def test_explicit_correlation_wins(self, json_logger):
        json_logger.set_default_correlation("event-1")

        entry = json_logger.info("x", correlation_id="other")

        assert entry.correlation_id == "other"

    def test_contextual_logger(self, json_logger):
        ctx = json_logger.with_context(correlation_id="event-2")

        entry = ctx.critical("Failover failed, manual intervention required", outcome="promotion_failed")

        assert isinstance(ctx, ContextualLogger)
        assert ctx.correlation_id == "event-2"
        assert entry.correlation_id == "event-2"
        assert entry.cluster_id == "orders"
        assert json_logger.get_entries_by_level(LogLevel.CRITICAL) == [entry]

    def test_clear_entries(self, json_logger):
        json_logger.info("x")
        json_logger.clear_entries()

        assert json_logger.get_entries() == []

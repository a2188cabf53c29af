"""Tests del constructor de registros de log."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import TMP_THRESHOLDS
from factory_monitor.classification import Device, Severity, create_default_evaluator
from factory_monitor.errors import StorageError
from factory_monitor.identifiers import ULID_LENGTH, decode_timestamp
from factory_monitor.ingest import LogRecordBuilder, group_collection_name, sanitize_group_name
from factory_monitor.storage import LogCriteria, LogRepository


NOW = 1_700_000_000.5  # 2023-11-14 22:13:20.500 UTC
NOW_MS = 1_700_000_000_500


@pytest.fixture
def device() -> Device:
    return Device(
        device_id="dev1",
        device_code="PR1",
        device_name="Press 1",
        device_type="press",
        location="Hall A",
        log_group="/factory/line-a",
        thresholds=TMP_THRESHOLDS,
    )


@pytest.fixture
def builder(engine) -> LogRecordBuilder:
    return LogRecordBuilder(create_default_evaluator(), LogRepository(engine), clock=lambda: NOW)


# =============================================================================
# CONSTRUCCIÓN
# =============================================================================

class TestBuild:

    def test_temperature_event_end_to_end(self, builder, device):
        record = builder.build(
            "dev1",
            "INFO",
            {"log_code": "TMP", "message": "hot", "metadata": {"temperature": 95}},
            "factory/dev1/log/INFO",
            device,
        )

        day = datetime.fromtimestamp(NOW, tz=timezone.utc).strftime("%Y/%m/%d")
        assert record.severity is Severity.CRITICAL
        assert record.log_stream == f"dev1/{day}/INFO"
        assert record.log_group == "/factory/line-a"
        assert record.timestamp == NOW_MS
        assert record.ingestion_time == NOW_MS

    def test_structured_id(self, builder, device):
        record = builder.build("dev1", "INFO", {"log_code": "TMP"}, "t", device)

        prefix, code, ulid = record.id.split("-")
        assert (prefix, code) == ("PR1", "TMP")
        assert len(ulid) == ULID_LENGTH
        assert decode_timestamp(ulid) == NOW_MS

    def test_defaults_for_missing_fields(self, builder):
        bare = Device(device_id="dev9")
        record = builder.build("dev9", "WARN", {}, "factory/dev9/log/WARN", bare)

        assert record.id.startswith("NA-UNKNOWN-")
        assert record.log_code == "UNKNOWN"
        assert record.log_group == "unknown_group"
        assert record.device_name == "N/A"
        assert record.device_type == "N/A"
        assert record.location == "N/A"
        assert record.message == ""
        assert record.severity is Severity.UNKNOWN
        assert "metadata" not in record.to_document()

    def test_event_timestamp_kept_when_integer(self, builder, device):
        record = builder.build("dev1", "INFO", {"timestamp": 123}, "t", device)
        assert record.timestamp == 123
        assert record.ingestion_time == NOW_MS

    @pytest.mark.parametrize("value", ["123", 1.5, True, None])
    def test_non_integer_timestamp_uses_ingestion_time(self, builder, device, value):
        record = builder.build("dev1", "INFO", {"timestamp": value}, "t", device)
        assert record.timestamp == NOW_MS

    def test_record_is_immutable(self, builder, device):
        record = builder.build("dev1", "INFO", {}, "t", device)
        with pytest.raises(Exception):
            record.message = "changed"


class TestGroupNames:

    @pytest.mark.parametrize(
        "group,expected",
        [
            ("/factory/line-a/robots", "factory_line_a_robots"),
            ("line-b", "line_b"),
            ("plain", "plain"),
        ],
    )
    def test_sanitize(self, group, expected):
        assert sanitize_group_name(group) == expected

    def test_collection_name(self):
        assert group_collection_name("/factory/line-a") == "logs_factory_line_a"


# =============================================================================
# ALMACENAMIENTO
# =============================================================================

class TestStore:

    def test_written_to_group_and_all(self, builder, engine, device):
        record = builder.build_and_store(
            "dev1", "INFO", {"log_code": "TMP", "metadata": {"temperature": 40}},
            "factory/dev1/log/INFO", device,
        )
        repository = LogRepository(engine)

        for collection in ("logs_factory_line_a", "logs_all"):
            docs = repository.find(collection, LogCriteria(), limit=10)
            assert [d["_id"] for d in docs] == [record.id]
            assert docs[0]["severity"] == "LOW"
            assert docs[0]["metadata"] == {"temperature": 40}

    def test_device_without_group_only_all(self, builder, engine):
        device = Device(device_id="dev2", device_code="X")
        builder.build_and_store("dev2", "INFO", {}, "factory/dev2/log/INFO", device)
        repository = LogRepository(engine)

        assert len(repository.find("logs_all", LogCriteria(), limit=10)) == 1
        assert repository.find("logs_unknown_group", LogCriteria(), limit=10) == []

    def test_group_write_failure_still_writes_all(self, device):
        repository = MagicMock()
        repository.insert.side_effect = [StorageError("boom"), None]
        builder = LogRecordBuilder(create_default_evaluator(), repository, clock=lambda: NOW)

        record = builder.build("dev1", "INFO", {}, "t", device)
        written = builder.store(record, device)

        assert written == ["logs_all"]
        assert repository.insert.call_count == 2

    def test_missing_device_skipped(self, device):
        repository = MagicMock()
        builder = LogRecordBuilder(create_default_evaluator(), repository)

        assert builder.build_and_store("ghost", "INFO", {}, "t", None) is None
        repository.insert.assert_not_called()

"""Tests del motor de estadísticas de velocidad."""

from unittest.mock import MagicMock

import pytest

from conftest import log_document
from factory_monitor.errors import RequestValidationError, StorageError
from factory_monitor.queries import StatisticsEngine
from factory_monitor.queries.statistics_engine import DEFAULT_WINDOW_MS, is_speed_reading
from factory_monitor.storage import LogRepository


NOW_MS = 1_700_000_000_000


@pytest.fixture
def repository(engine) -> LogRepository:
    return LogRepository(engine)


@pytest.fixture
def stats(repository) -> StatisticsEngine:
    return StatisticsEngine(repository, clock=lambda: NOW_MS / 1000)


def _speed(repository, doc_id, device_id, message, timestamp):
    repository.insert(
        "logs_all",
        log_document(doc_id, device_id=device_id, timestamp=timestamp, log_code="SPD", message=message),
    )


# =============================================================================
# CÁLCULO
# =============================================================================

class TestCompute:

    def test_average_and_current(self, repository, stats):
        for i, value in enumerate(("10", "20", "30")):
            _speed(repository, f"s{i}", "dev1", value, NOW_MS - 3_000 + i * 1_000)

        [result] = stats.compute(stats.parse({"device_id": "dev1", "request_id": "r1"}))

        assert result.average == 20
        assert result.current_speed == 30
        assert result.to_payload() == {
            "device_id": "dev1",
            "average": 20,
            "current_speed": 30,
            "request_id": "r1",
        }

    def test_average_is_truncated(self, repository, stats):
        for i, value in enumerate(("1", "2")):
            _speed(repository, f"s{i}", "dev1", value, NOW_MS - 10 + i)

        [result] = stats.compute(stats.parse({"device_id": "dev1"}))
        assert result.average == 1

    def test_non_numeric_messages_ignored(self, repository, stats):
        _speed(repository, "a", "dev1", "10", NOW_MS - 300)
        _speed(repository, "b", "dev1", "-5", NOW_MS - 200)
        _speed(repository, "c", "dev1", "fast", NOW_MS - 100)
        _speed(repository, "d", "dev1", "1.5", NOW_MS - 50)

        [result] = stats.compute(stats.parse({"device_id": "dev1"}))

        assert result.average == 10
        assert result.current_speed == 10

    def test_no_readings_gives_zeros(self, stats):
        [result] = stats.compute(stats.parse({"device_id": "dev1"}))

        assert (result.average, result.current_speed) == (0, 0)

    def test_default_window_is_last_day(self, repository, stats):
        _speed(repository, "old", "dev1", "500", NOW_MS - DEFAULT_WINDOW_MS - 1)
        _speed(repository, "new", "dev1", "50", NOW_MS - 1)

        [result] = stats.compute(stats.parse({"device_id": "dev1"}))
        assert result.average == 50

    def test_explicit_time_range(self, repository, stats):
        _speed(repository, "a", "dev1", "10", 100)
        _speed(repository, "b", "dev1", "30", 200)
        _speed(repository, "c", "dev1", "90", 300)

        request = stats.parse({"device_id": "dev1", "time_range": {"start": 100, "end": 200}})
        [result] = stats.compute(request)

        assert result.average == 20
        assert result.current_speed == 30

    def test_other_log_codes_ignored(self, repository, stats):
        repository.insert("logs_all", log_document("t", log_code="TMP", message="99", timestamp=NOW_MS))

        [result] = stats.compute(stats.parse({"device_id": "dev1"}))
        assert result.average == 0


class TestAllDevices:

    def test_fan_out_to_devices_with_readings(self, repository, stats):
        _speed(repository, "a", "dev2", "40", NOW_MS - 10)
        _speed(repository, "b", "dev1", "10", NOW_MS - 10)
        _speed(repository, "c", "dev3", "idle", NOW_MS - 10)

        results = stats.compute(stats.parse({"device_id": "All", "request_id": 5}))

        assert [r.device_id for r in results] == ["dev1", "dev2"]
        assert [r.current_speed for r in results] == [10, 40]
        assert all(r.request_id == 5 for r in results)

    def test_all_is_case_insensitive(self, repository, stats):
        _speed(repository, "a", "dev1", "10", NOW_MS - 10)
        assert len(stats.compute(stats.parse({"device_id": "all"}))) == 1

    def test_enumeration_failure_gives_nothing(self):
        repository = MagicMock()
        repository.device_messages.side_effect = StorageError("down")
        engine = StatisticsEngine(repository, clock=lambda: NOW_MS / 1000)

        assert engine.compute(engine.parse({"device_id": "All"})) == []

    def test_single_device_failure_skipped(self):
        repository = MagicMock()
        repository.device_messages.return_value = [("dev1", "10"), ("dev2", "20")]
        repository.find_messages.side_effect = [StorageError("down"), [("20", NOW_MS)]]
        engine = StatisticsEngine(repository, clock=lambda: NOW_MS / 1000)

        results = engine.compute(engine.parse({"device_id": "All"}))

        assert [r.device_id for r in results] == ["dev2"]


# =============================================================================
# DEDUPLICACIÓN
# =============================================================================

class TestDeduplication:

    def test_repeated_request_id_dropped(self, stats):
        request = stats.parse({"device_id": "dev1", "request_id": "r1"})

        assert len(stats.compute(request)) == 1
        assert stats.compute(request) == []

    def test_slot_holds_only_last_id(self, stats):
        first = stats.parse({"device_id": "dev1", "request_id": "r1"})
        second = stats.parse({"device_id": "dev1", "request_id": "r2"})

        stats.compute(first)
        stats.compute(second)

        # r1 ya no está en el slot
        assert len(stats.compute(first)) == 1
        assert stats.last_request_id == "r1"

    def test_missing_request_id_never_deduplicated(self, stats):
        request = stats.parse({"device_id": "dev1"})

        assert len(stats.compute(request)) == 1
        assert len(stats.compute(request)) == 1


class TestParse:

    @pytest.mark.parametrize("raw", [{}, {"device_id": ""}, {"device_id": "   "}, ["dev1"]])
    def test_invalid_requests(self, stats, raw):
        with pytest.raises(RequestValidationError):
            stats.parse(raw)

    def test_single_device_storage_error_reported(self):
        repository = MagicMock()
        repository.find_messages.side_effect = StorageError("down")
        engine = StatisticsEngine(repository, clock=lambda: NOW_MS / 1000)

        [result] = engine.compute(engine.parse({"device_id": "dev1", "request_id": "r"}))

        assert result.to_payload()["error"] == "down"
        assert result.request_id == "r"


@pytest.mark.parametrize(
    "message,expected",
    [
        ("0", True), ("120", True), ("9" * 18, True), ("9" * 19, False),
        ("", False), ("-1", False), ("12a", False), ("7\n", False), (7, False),
    ],
)
def test_is_speed_reading(message, expected):
    assert is_speed_reading(message) is expected


# =============================================================================
# LECTURAS FUERA DE RANGO
# =============================================================================

class TestOversizedReadings:
    """Un message numérico gigantesco no es una lectura de velocidad."""

    def test_oversized_reading_does_not_break_fan_out(self, repository, stats):
        _speed(repository, "a", "dev1", "10", NOW_MS - 10)
        _speed(repository, "b", "dev2", "9" * 5000, NOW_MS - 10)

        results = stats.compute(stats.parse({"device_id": "All"}))

        assert [(r.device_id, r.current_speed) for r in results] == [("dev1", 10)]

    def test_oversized_reading_ignored_for_single_device(self, repository, stats):
        _speed(repository, "a", "dev2", "40", NOW_MS - 20)
        _speed(repository, "b", "dev2", "9" * 5000, NOW_MS - 10)

        [result] = stats.compute(stats.parse({"device_id": "dev2"}))

        assert (result.average, result.current_speed) == (40, 40)
        assert result.error is None

    def test_unexpected_device_failure_skipped(self):
        repository = MagicMock()
        repository.device_messages.return_value = [("dev1", "10"), ("dev2", "20")]
        repository.find_messages.side_effect = [RuntimeError("bad row"), [("20", NOW_MS)]]
        engine = StatisticsEngine(repository, clock=lambda: NOW_MS / 1000)

        results = engine.compute(engine.parse({"device_id": "All"}))

        assert [r.device_id for r in results] == ["dev2"]


class TestRejection:

    def test_invalid_field_answered_for_named_device(self, stats):
        raw = {"device_id": "dev1", "request_id": "r9", "time_range": {"start": "yesterday"}}

        with pytest.raises(RequestValidationError) as exc:
            stats.parse(raw)
        result = stats.rejection(raw, exc.value)

        assert result.device_id == "dev1"
        assert result.request_id == "r9"
        assert (result.average, result.current_speed) == (0, 0)
        assert "Invalid statistics request" in result.error

    @pytest.mark.parametrize(
        "raw",
        [{"request_id": "r"}, {"device_id": "  "}, {"device_id": "All", "time_range": 5}, ["dev1"]],
    )
    def test_no_named_device_no_result(self, stats, raw):
        assert stats.rejection(raw, RequestValidationError("bad")) is None

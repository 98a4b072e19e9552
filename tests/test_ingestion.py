"""Tests for telemetry ingestion and administrative updates."""

from datetime import timedelta

import pytest

from coolerwatch.exceptions import NotFoundError, StaleSampleError, ValidationError
from coolerwatch.ingestion import TelemetryIngestor, update_cooler, update_drug
from coolerwatch.models.enums import UnusableReason
from coolerwatch.storage import InMemoryFleetStore

from factories import NOW, make_cooler, make_drug


@pytest.fixture
def ingestor(store: InMemoryFleetStore) -> TelemetryIngestor:
    store.add_cooler(make_cooler("c1"))
    store.add_drug(make_drug("d1", "c1", max_temperature=8, unsuitable_time_threshold=2))
    store.add_drug(make_drug("d2", "c1", max_temperature=12, unsuitable_time_threshold=2))
    return TelemetryIngestor(store)


class TestApplyTemperatureSample:
    """Tests for TelemetryIngestor.apply_temperature_sample."""

    def test_in_range_sample_updates_cooler(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        result = ingestor.apply_temperature_sample("c1", 4.5, battery_level=60, timestamp=NOW)

        cooler = store.get_cooler("c1")
        assert cooler.current_temperature == 4.5
        assert cooler.last_updated_at == NOW
        assert cooler.battery_level == 60
        assert cooler.temperature_warning is False
        assert cooler.battery_warning is False
        assert result.newly_unusable == []

    def test_excursion_starts_exceedance_only_for_affected_drugs(
        self, ingestor: TelemetryIngestor, store: InMemoryFleetStore
    ) -> None:
        ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW)

        assert store.get_drug("d1").temperature_exceeded_since == NOW
        assert store.get_drug("d2").temperature_exceeded_since is None
        assert store.get_cooler("c1").temperature_warning is True

    def test_drug_unusable_once_threshold_reached(
        self, ingestor: TelemetryIngestor, store: InMemoryFleetStore
    ) -> None:
        ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW)
        ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW + timedelta(hours=1))
        assert store.get_drug("d1").unusable is False

        result = ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW + timedelta(hours=2))

        drug = store.get_drug("d1")
        assert drug.unusable is True
        assert drug.unusable_reason == UnusableReason.TEMPERATURE
        assert drug.temperature_exceeded_since == NOW
        assert [d.id for d in result.newly_unusable] == ["d1"]

    def test_recovery_clears_exceedance(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW)
        ingestor.apply_temperature_sample("c1", 6.0, timestamp=NOW + timedelta(hours=1))

        assert store.get_drug("d1").temperature_exceeded_since is None
        assert store.get_cooler("c1").temperature_warning is False

    def test_unusable_is_terminal(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        for hours in (0, 2, 3):
            ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW + timedelta(hours=hours))
        ingestor.apply_temperature_sample("c1", 4.0, timestamp=NOW + timedelta(hours=4))

        drug = store.get_drug("d1")
        assert drug.unusable is True
        assert drug.unusable_reason == UnusableReason.TEMPERATURE

    def test_stale_sample_rejected(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        ingestor.apply_temperature_sample("c1", 5.0, timestamp=NOW)

        with pytest.raises(StaleSampleError):
            ingestor.apply_temperature_sample("c1", 20.0, timestamp=NOW)
        with pytest.raises(StaleSampleError):
            ingestor.apply_temperature_sample("c1", 20.0, timestamp=NOW - timedelta(minutes=1))
        assert store.get_cooler("c1").current_temperature == 5.0

    def test_timestamp_formats(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        ingestor.apply_temperature_sample("c1", 5.0, timestamp="2026-03-02T12:00:00Z")
        ingestor.apply_temperature_sample("c1", 5.5, timestamp=NOW.timestamp() + 60)

        assert store.get_cooler("c1").last_updated_at == NOW + timedelta(seconds=60)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"temperature": float("nan")},
            {"temperature": "warm"},
            {"temperature": True},
            {"temperature": 5.0, "battery_level": 101},
            {"temperature": 5.0, "battery_level": -1},
            {"temperature": 5.0, "timestamp": "not a date"},
        ],
    )
    def test_malformed_sample_rejected(
        self, ingestor: TelemetryIngestor, store: InMemoryFleetStore, kwargs: dict
    ) -> None:
        sample = {"timestamp": NOW, **kwargs}
        with pytest.raises(ValidationError):
            ingestor.apply_temperature_sample("c1", **sample)
        assert store.temperature_history("c1") == []

    def test_unknown_cooler(self, ingestor: TelemetryIngestor) -> None:
        with pytest.raises(NotFoundError):
            ingestor.apply_temperature_sample("nope", 5.0, timestamp=NOW)

    def test_drug_with_invalid_threshold_skipped(
        self, ingestor: TelemetryIngestor, store: InMemoryFleetStore
    ) -> None:
        store.add_drug(make_drug("d3", "c1", unsuitable_time_threshold=0))

        result = ingestor.apply_temperature_sample("c1", 10.0, timestamp=NOW)

        assert "d3" in result.skipped
        assert store.get_drug("d1").temperature_exceeded_since == NOW
        assert store.get_cooler("c1").current_temperature == 10.0

    def test_availability_signal(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        ingestor.apply_temperature_sample("c1", 5.0, availability=False, timestamp=NOW)
        assert store.get_cooler("c1").availability is False


class TestTemperatureHistory:
    """Tests for TelemetryIngestor.temperature_history."""

    def test_window(self, ingestor: TelemetryIngestor, store: InMemoryFleetStore) -> None:
        store.add_cooler(make_cooler("c2", last_updated_at=None))
        for days_ago in (10, 3, 1):
            ingestor.apply_temperature_sample(
                "c2", float(days_ago), timestamp=NOW - timedelta(days=days_ago) + timedelta(minutes=1)
            )
        history = ingestor.temperature_history("c2", now=NOW + timedelta(hours=1))

        assert [r.temperature for r in history] == [3.0, 1.0]

    def test_rejects_non_positive_days(self, ingestor: TelemetryIngestor) -> None:
        with pytest.raises(ValidationError):
            ingestor.temperature_history("c1", days=0)

    def test_unknown_cooler(self, ingestor: TelemetryIngestor) -> None:
        with pytest.raises(NotFoundError):
            ingestor.temperature_history("nope")


class TestUpdateDrug:
    """Tests for update_drug."""

    def test_unusable_cannot_be_reverted(self, store: InMemoryFleetStore) -> None:
        store.add_cooler(make_cooler("c1"))
        store.add_drug(make_drug("d1", "c1", unusable=True, unusable_reason=UnusableReason.EXPIRED))

        result = update_drug(store, "d1", {"unusable": False, "unusable_reason": "manual", "name": "Renamed"})

        assert result.entity.unusable is True
        assert result.entity.unusable_reason == UnusableReason.EXPIRED
        assert result.entity.name == "Renamed"
        assert "Drug is unusable; this cannot be reverted" in result.notes

    def test_manual_unusable_records_reason(self, store: InMemoryFleetStore) -> None:
        store.add_cooler(make_cooler("c1"))
        store.add_drug(make_drug("d1", "c1"))

        result = update_drug(store, "d1", {"unusable": True})

        assert result.entity.unusable is True
        assert result.entity.unusable_reason == UnusableReason.MANUAL

    def test_system_fields_ignored(self, store: InMemoryFleetStore) -> None:
        store.add_cooler(make_cooler("c1"))
        store.add_drug(make_drug("d1", "c1", notified={"one_week": True}))

        result = update_drug(store, "d1", {"notified": {"one_week": False}, "temperature_exceeded_since": NOW})

        assert result.entity.notified.one_week is True
        assert result.entity.temperature_exceeded_since is None
        assert len(result.notes) == 2

    def test_invalid_update(self, store: InMemoryFleetStore) -> None:
        store.add_cooler(make_cooler("c1"))
        store.add_drug(make_drug("d1", "c1"))

        with pytest.raises(ValidationError):
            update_drug(store, "d1", {"number_of_packages": -3})


class TestUpdateCooler:
    """Tests for update_cooler."""

    def test_disable_requires_admin(self, store: InMemoryFleetStore) -> None:
        store.add_cooler(make_cooler("c1"))

        result = update_cooler(store, "c1", {"disabled": True, "address": "Ward 3"})
        assert result.entity.disabled is False
        assert result.entity.address == "Ward 3"
        assert result.notes == ["Only administrators can enable or disable a cooler"]

        result = update_cooler(store, "c1", {"disabled": True}, admin=True)
        assert result.entity.disabled is True
        assert result.notes == []

    def test_unknown_cooler(self, store: InMemoryFleetStore) -> None:
        with pytest.raises(NotFoundError):
            update_cooler(store, "nope", {"address": "x"})

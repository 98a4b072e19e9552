"""End-to-end scenarios: telemetry ingestion feeding alert sweeps."""

from datetime import timedelta
from pathlib import Path

import pytest

from coolerwatch.alerts import AlertEngine
from coolerwatch.delivery import DispatchManager
from coolerwatch.exceptions import StaleSampleError
from coolerwatch.ingestion import TelemetryIngestor
from coolerwatch.storage import JsonFleetStore
from coolerwatch.utils.locks import KeyedLocks

from factories import NOW, RecordingGateway, make_cooler, make_drug


@pytest.fixture
def fleet_path(tmp_path: Path) -> Path:
    path = tmp_path / "fleet.json"
    store = JsonFleetStore(str(path))
    store.add_cooler(make_cooler("c1", cooler_model="Pharmacy A", last_updated_at=NOW - timedelta(minutes=1)))
    store.add_drug(make_drug("d1", "c1", name="Insulin", max_temperature=8, unsuitable_time_threshold=1))
    return path


class TestTemperatureExcursion:
    """A cooler overheats, its drug spoils, the cooler goes silent and recovers."""

    def test_excursion_lifecycle(self, fleet_path: Path, dispatcher: DispatchManager, gateway: RecordingGateway) -> None:
        store = JsonFleetStore(str(fleet_path))
        locks = KeyedLocks()
        ingestor = TelemetryIngestor(store, locks=locks)
        engine = AlertEngine(store, dispatcher, locks=locks)

        ingestor.apply_temperature_sample("c1", 11.0, timestamp=NOW)
        engine.sweep(NOW + timedelta(seconds=30))
        assert gateway.titles == ["Temperature Warning: Pharmacy A"]

        ingestor.apply_temperature_sample("c1", 11.5, timestamp=NOW + timedelta(minutes=2))
        engine.sweep(NOW + timedelta(minutes=2, seconds=30))
        assert len(gateway.sent) == 1

        # Cooler goes silent while still warm; the sweep spoils the drug on its own
        engine.sweep(NOW + timedelta(hours=1, minutes=5))
        assert gateway.titles[1:] == [
            "Unusable Drugs in Pharmacy A",
            "Cooler Unreachable: Pharmacy A",
        ]
        assert "Insulin" in gateway.sent[1][1]

        # Recovery
        ingestor.apply_temperature_sample("c1", 4.0, timestamp=NOW + timedelta(hours=2))
        report = engine.sweep(NOW + timedelta(hours=2, seconds=30))
        assert report.alerts_dispatched == 0
        assert report.flags_cleared == 2

        reopened = JsonFleetStore(str(fleet_path))
        cooler = reopened.get_cooler("c1")
        drug = reopened.get_drug("d1")
        assert cooler.notified.temperature_warning is False
        assert cooler.notified.unreachable is False
        assert drug.unusable is True
        assert drug.notified.unusable is True

    def test_flags_survive_restart(self, fleet_path: Path) -> None:
        """A new process does not re-send alerts already dispatched."""
        first = RecordingGateway()
        store = JsonFleetStore(str(fleet_path))
        TelemetryIngestor(store).apply_temperature_sample("c1", 11.0, timestamp=NOW)
        AlertEngine(store, DispatchManager(first)).sweep(NOW)

        second = RecordingGateway()
        AlertEngine(JsonFleetStore(str(fleet_path)), DispatchManager(second)).sweep(NOW + timedelta(seconds=10))

        assert first.titles == ["Temperature Warning: Pharmacy A"]
        assert second.sent == []


class TestSharedStoreFile:
    """Telemetry and sweeps running in separate processes on one store file."""

    def test_sweep_flag_write_keeps_newer_sample(self, tmp_path: Path, dispatcher: DispatchManager) -> None:
        path = tmp_path / "fleet.json"
        seed = JsonFleetStore(str(path))
        seed.add_cooler(make_cooler("c1", battery_level=10.0, last_updated_at=NOW - timedelta(seconds=30)))

        engine_store = JsonFleetStore(str(path))
        engine_store.reload()
        telemetry_store = JsonFleetStore(str(path))
        TelemetryIngestor(telemetry_store).apply_temperature_sample(
            "c1", 5.0, battery_level=10.0, timestamp=NOW
        )

        report = AlertEngine(engine_store, dispatcher).sweep(NOW + timedelta(seconds=10))
        assert report.alerts_dispatched == 1

        on_disk = JsonFleetStore(str(path))
        cooler = on_disk.get_cooler("c1")
        assert cooler.last_updated_at == NOW
        assert cooler.notified.battery_warning is True
        assert [r.timestamp for r in on_disk.temperature_history("c1")] == [NOW]

    def test_stale_sample_rejected_after_other_process_wrote(self, fleet_path: Path) -> None:
        first = JsonFleetStore(str(fleet_path))
        second = JsonFleetStore(str(fleet_path))
        TelemetryIngestor(first).apply_temperature_sample("c1", 5.0, timestamp=NOW)

        with pytest.raises(StaleSampleError):
            TelemetryIngestor(second).apply_temperature_sample("c1", 6.0, timestamp=NOW)

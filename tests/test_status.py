"""Tests for the cooler status aggregator."""

import math
from datetime import timedelta

import pytest

from coolerwatch.compliance import CoolerStatusAggregator, StatusThresholds
from coolerwatch.exceptions import ValidationError

from factories import NOW, make_cooler, make_drug


@pytest.fixture
def aggregator() -> CoolerStatusAggregator:
    return CoolerStatusAggregator()


class TestTemperatureWarning:
    """temperature_warning is true when any drug is below the cooler temperature."""

    def test_any_drug_over_max(self, aggregator: CoolerStatusAggregator) -> None:
        cooler = make_cooler(current_temperature=7.0)
        drugs = [make_drug("d1", max_temperature=8), make_drug("d2", max_temperature=6)]
        status = aggregator.evaluate(cooler, drugs, NOW)
        assert status.temperature_warning is True
        assert status.drugs_over_max == ["d2"]

    def test_all_within_limits(self, aggregator: CoolerStatusAggregator) -> None:
        cooler = make_cooler(current_temperature=8.0)
        status = aggregator.evaluate(cooler, [make_drug(max_temperature=8)], NOW)
        assert status.temperature_warning is False

    def test_empty_cooler_has_no_warning(self, aggregator: CoolerStatusAggregator) -> None:
        status = aggregator.evaluate(make_cooler(current_temperature=30.0), [], NOW)
        assert status.temperature_warning is False
        assert status.total_drug_count == 0

    def test_no_temperature_reported(self, aggregator: CoolerStatusAggregator) -> None:
        status = aggregator.evaluate(make_cooler(current_temperature=None), [make_drug()], NOW)
        assert status.temperature_warning is False

    def test_non_finite_temperature_rejected(self, aggregator: CoolerStatusAggregator) -> None:
        with pytest.raises(ValidationError):
            aggregator.evaluate(make_cooler(current_temperature=math.nan), [], NOW)

    def test_non_finite_drug_max_rejected(self, aggregator: CoolerStatusAggregator) -> None:
        with pytest.raises(ValidationError):
            aggregator.evaluate(make_cooler(), [make_drug(max_temperature=math.inf)], NOW)


class TestReachability:
    """Tests for is_unreachable()."""

    def test_recent_sample_is_reachable(self, aggregator: CoolerStatusAggregator) -> None:
        cooler = make_cooler(last_updated_at=NOW - timedelta(seconds=180))
        assert aggregator.is_unreachable(cooler, NOW) is False

    def test_silence_past_timeout_is_unreachable(self, aggregator: CoolerStatusAggregator) -> None:
        cooler = make_cooler(last_updated_at=NOW - timedelta(seconds=181))
        assert aggregator.is_unreachable(cooler, NOW) is True

    def test_never_reported_is_unreachable(self, aggregator: CoolerStatusAggregator) -> None:
        assert aggregator.is_unreachable(make_cooler(last_updated_at=None), NOW) is True

    def test_custom_timeout(self) -> None:
        aggregator = CoolerStatusAggregator(StatusThresholds(reachability_timeout_seconds=600))
        cooler = make_cooler(last_updated_at=NOW - timedelta(minutes=9))
        assert aggregator.is_unreachable(cooler, NOW) is False


class TestBattery:
    """Battery tiers: warning < 20, below average < 35, recovered >= 25."""

    @pytest.mark.parametrize(
        "level,warning,below_average",
        [(5.0, True, False), (19.9, True, False), (20.0, False, True), (34.9, False, True), (35.0, False, False)],
    )
    def test_tiers(
        self, aggregator: CoolerStatusAggregator, level: float, warning: bool, below_average: bool
    ) -> None:
        status = aggregator.evaluate(make_cooler(battery_level=level), [], NOW)
        assert status.battery_warning is warning
        assert status.battery_below_average is below_average

    def test_unknown_battery(self, aggregator: CoolerStatusAggregator) -> None:
        assert aggregator.is_battery_warning(None) is False
        assert aggregator.is_battery_recovered(None) is False

    def test_recovery_hysteresis(self, aggregator: CoolerStatusAggregator) -> None:
        assert aggregator.is_battery_recovered(24.9) is False
        assert aggregator.is_battery_recovered(25.0) is True

    @pytest.mark.parametrize("level,recovered", [(10.0, False), (24.9, False), (25.0, True), (80.0, True)])
    def test_status_reports_recovery(
        self, aggregator: CoolerStatusAggregator, level: float, recovered: bool
    ) -> None:
        assert aggregator.evaluate(make_cooler(battery_level=level), [], NOW).battery_recovered is recovered


class TestFleet:
    """Tests for evaluate_fleet() and CoolerStatus summaries."""

    def test_counts_and_skips(self, aggregator: CoolerStatusAggregator) -> None:
        coolers = [
            make_cooler("ok"),
            make_cooler("hot", current_temperature=12.0),
            make_cooler("broken", current_temperature=math.nan),
        ]
        drugs = {
            "ok": [make_drug("d1", "ok")],
            "hot": [make_drug("d2", "hot"), make_drug("d3", "hot", unusable=True)],
        }
        fleet = aggregator.evaluate_fleet(coolers, drugs, NOW)

        assert fleet.total_coolers == 2
        assert fleet.all_clear_count == 1
        assert [s.cooler_id for s in fleet.attention_required] == ["hot"]
        assert "broken" in fleet.skipped
        hot = fleet.attention_required[0]
        assert hot.unusable_drug_count == 1
        assert hot.total_drug_count == 2

    def test_expired_drugs_counted(self, aggregator: CoolerStatusAggregator) -> None:
        drug = make_drug(expiration_date=NOW - timedelta(days=1))
        status = aggregator.evaluate(make_cooler(), [drug], NOW)
        assert status.expired_drug_count == 1
        assert status.all_clear is False

    def test_disabled_cooler_is_not_all_clear(self, aggregator: CoolerStatusAggregator) -> None:
        status = aggregator.evaluate(make_cooler(disabled=True), [], NOW)
        assert status.disabled is True
        assert status.all_clear is False

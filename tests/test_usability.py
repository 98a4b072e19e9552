"""Tests for the drug usability state machine."""

import math
from datetime import timedelta

import pytest

from coolerwatch.compliance.usability import (
    DrugUsabilityMachine,
    Exceeding,
    Unusable,
    Usable,
    fields_for,
    state_of,
    step,
)
from coolerwatch.exceptions import ValidationError
from coolerwatch.models.enums import UnusableReason

from factories import NOW, make_drug


@pytest.fixture
def machine() -> DrugUsabilityMachine:
    return DrugUsabilityMachine()


class TestStep:
    """Tests for the pure transition function."""

    def test_usable_over_max_starts_exceeding(self) -> None:
        """First sample above max records the exceedance start."""
        state = step(Usable(), over_max=True, threshold_hours=24, expired=False, now=NOW)
        assert state == Exceeding(since=NOW)

    def test_usable_within_limits_stays_usable(self) -> None:
        state = step(Usable(), over_max=False, threshold_hours=24, expired=False, now=NOW)
        assert state == Usable()

    def test_exceeding_back_within_limits_is_usable(self) -> None:
        """Recovery before the threshold clears the exceedance."""
        state = step(
            Exceeding(since=NOW),
            over_max=False,
            threshold_hours=24,
            expired=False,
            now=NOW + timedelta(hours=23),
        )
        assert state == Usable()

    def test_exceeding_keeps_original_start(self) -> None:
        """Continued exceedance does not move the start time."""
        state = step(
            Exceeding(since=NOW),
            over_max=True,
            threshold_hours=24,
            expired=False,
            now=NOW + timedelta(hours=5),
        )
        assert state == Exceeding(since=NOW)

    def test_unusable_exactly_at_threshold(self) -> None:
        """Elapsed time equal to the threshold makes the drug unusable."""
        state = step(
            Exceeding(since=NOW),
            over_max=True,
            threshold_hours=24,
            expired=False,
            now=NOW + timedelta(hours=24),
        )
        assert state == Unusable(reason=UnusableReason.TEMPERATURE, exceeded_since=NOW)

    def test_not_unusable_just_before_threshold(self) -> None:
        state = step(
            Exceeding(since=NOW),
            over_max=True,
            threshold_hours=24,
            expired=False,
            now=NOW + timedelta(hours=24) - timedelta(microseconds=1),
        )
        assert isinstance(state, Exceeding)

    def test_unusable_is_terminal(self) -> None:
        """No observation leads out of Unusable."""
        unusable = Unusable(reason=UnusableReason.TEMPERATURE, exceeded_since=NOW)
        for over_max in (True, False):
            for expired in (True, False):
                assert step(unusable, over_max, 24, expired, NOW + timedelta(days=30)) is unusable

    def test_expired_overrides_temperature(self) -> None:
        """Expiration makes a drug unusable even within limits."""
        state = step(Usable(), over_max=False, threshold_hours=24, expired=True, now=NOW)
        assert state == Unusable(reason=UnusableReason.EXPIRED)

    def test_expired_while_exceeding_keeps_marker(self) -> None:
        since = NOW - timedelta(hours=2)
        state = step(Exceeding(since=since), over_max=True, threshold_hours=24, expired=True, now=NOW)
        assert state == Unusable(reason=UnusableReason.EXPIRED, exceeded_since=since)


class TestStateOf:
    """Tests for reading the state of a stored drug."""

    def test_usable(self) -> None:
        assert state_of(make_drug()) == Usable()

    def test_exceeding(self) -> None:
        drug = make_drug(temperature_exceeded_since=NOW)
        assert state_of(drug) == Exceeding(since=NOW)

    def test_unusable_with_stored_reason(self) -> None:
        drug = make_drug(unusable=True, unusable_reason=UnusableReason.EXPIRED)
        assert state_of(drug) == Unusable(reason=UnusableReason.EXPIRED)

    def test_unusable_without_reason_after_exceedance(self) -> None:
        """Records written before reasons existed infer temperature."""
        drug = make_drug(unusable=True, temperature_exceeded_since=NOW)
        assert state_of(drug) == Unusable(reason=UnusableReason.TEMPERATURE, exceeded_since=NOW)

    def test_unusable_without_reason_or_exceedance(self) -> None:
        drug = make_drug(unusable=True)
        assert state_of(drug).reason == UnusableReason.MANUAL

    def test_fields_round_trip(self) -> None:
        """fields_for() writes back exactly what state_of() reads."""
        for state in (
            Usable(),
            Exceeding(since=NOW),
            Unusable(reason=UnusableReason.TEMPERATURE, exceeded_since=NOW),
        ):
            drug = make_drug().model_copy(update=fields_for(state))
            assert state_of(drug) == state


class TestApplySample:
    """Tests for DrugUsabilityMachine.apply_sample()."""

    def test_excursion_scenario(self, machine: DrugUsabilityMachine) -> None:
        """max=8, threshold=24h: 9 at t0, 9 at t0+23h, 9 at t0+24h."""
        drug = make_drug(max_temperature=8, unsuitable_time_threshold=24)

        first = machine.apply_sample(drug, 9.0, NOW)
        assert first.drug.temperature_exceeded_since == NOW
        assert first.temperature_warning is True
        assert first.drug.unusable is False

        second = machine.apply_sample(first.drug, 9.0, NOW + timedelta(hours=23))
        assert second.drug.unusable is False
        assert second.changes == {}

        third = machine.apply_sample(second.drug, 9.0, NOW + timedelta(hours=24))
        assert third.drug.unusable is True
        assert third.drug.unusable_reason == UnusableReason.TEMPERATURE
        assert third.became_unusable is True

    def test_recovery_clears_exceedance(self, machine: DrugUsabilityMachine) -> None:
        drug = make_drug(temperature_exceeded_since=NOW - timedelta(hours=3))
        evaluation = machine.apply_sample(drug, 7.5, NOW)
        assert evaluation.changes == {"temperature_exceeded_since": None}
        assert evaluation.drug.temperature_exceeded_since is None
        assert evaluation.temperature_warning is False

    def test_temperature_equal_to_max_is_within_limits(self, machine: DrugUsabilityMachine) -> None:
        evaluation = machine.apply_sample(make_drug(max_temperature=8), 8.0, NOW)
        assert evaluation.state == Usable()
        assert evaluation.temperature_warning is False

    def test_unusable_never_reverts(self, machine: DrugUsabilityMachine) -> None:
        """Samples within limits leave an unusable drug unusable."""
        drug = make_drug(
            unusable=True,
            unusable_reason=UnusableReason.TEMPERATURE,
            temperature_exceeded_since=NOW - timedelta(days=2),
        )
        for offset in range(5):
            evaluation = machine.apply_sample(drug, 2.0, NOW + timedelta(hours=offset))
            assert evaluation.drug.unusable is True
            assert "unusable" not in evaluation.changes
            assert evaluation.became_unusable is False

    def test_temperature_warning_reported_for_unusable_drug(self, machine: DrugUsabilityMachine) -> None:
        drug = make_drug(unusable=True, unusable_reason=UnusableReason.MANUAL)
        assert machine.apply_sample(drug, 12.0, NOW).temperature_warning is True

    @pytest.mark.parametrize("threshold", [0, -1, math.nan, math.inf])
    def test_invalid_threshold_rejected(self, machine: DrugUsabilityMachine, threshold: float) -> None:
        with pytest.raises(ValidationError, match="unsuitable time threshold"):
            machine.apply_sample(make_drug(unsuitable_time_threshold=threshold), 9.0, NOW)

    def test_non_finite_max_rejected(self, machine: DrugUsabilityMachine) -> None:
        with pytest.raises(ValidationError, match="max temperature"):
            machine.apply_sample(make_drug(max_temperature=math.nan), 5.0, NOW)

    @pytest.mark.parametrize("temperature", [math.nan, math.inf, -math.inf])
    def test_non_finite_temperature_rejected(self, machine: DrugUsabilityMachine, temperature: float) -> None:
        with pytest.raises(ValidationError, match="not a finite number"):
            machine.apply_sample(make_drug(), temperature, NOW)


class TestRefresh:
    """Tests for DrugUsabilityMachine.refresh()."""

    def test_silent_exceedance_becomes_unusable(self, machine: DrugUsabilityMachine) -> None:
        """An exceedance is assumed to continue when the cooler goes quiet."""
        drug = make_drug(temperature_exceeded_since=NOW - timedelta(hours=25))
        evaluation = machine.refresh(drug, NOW)
        assert evaluation.drug.unusable is True
        assert evaluation.drug.unusable_reason == UnusableReason.TEMPERATURE

    def test_refresh_marks_expired(self, machine: DrugUsabilityMachine) -> None:
        drug = make_drug(expiration_date=NOW - timedelta(minutes=1))
        evaluation = machine.refresh(drug, NOW)
        assert evaluation.drug.unusable is True
        assert evaluation.drug.unusable_reason == UnusableReason.EXPIRED

    def test_refresh_of_usable_drug_changes_nothing(self, machine: DrugUsabilityMachine) -> None:
        evaluation = machine.refresh(make_drug(), NOW)
        assert evaluation.changes == {}
        assert evaluation.state == Usable()

    def test_drug_expiring_now_is_not_expired(self, machine: DrugUsabilityMachine) -> None:
        """Expired means strictly before now."""
        evaluation = machine.refresh(make_drug(expiration_date=NOW), NOW)
        assert evaluation.drug.unusable is False

"""Drug usability state machine.

A drug is in exactly one of three states:

    Usable --[T > max]--> Exceeding(since)
    Exceeding(since) --[T <= max]--> Usable
    Exceeding(since) --[T > max, elapsed >= threshold]--> Unusable(temperature)
    any --[expiration date passed]--> Unusable(expired)

Unusable is terminal. step() returns an Unusable state unchanged, so no
sequence of samples can lead back to Usable or Exceeding.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Union

import structlog

from coolerwatch.exceptions import ValidationError
from coolerwatch.models.drug import Drug
from coolerwatch.models.enums import UnusableReason
from coolerwatch.utils.timestamps import hours_between

log = structlog.get_logger()


@dataclass(frozen=True)
class Usable:
    """Within limits, or back within limits after an exceedance."""


@dataclass(frozen=True)
class Exceeding:
    """Above max temperature since the given time, not yet unusable."""

    since: datetime


@dataclass(frozen=True)
class Unusable:
    """Terminal state.

    exceeded_since keeps the start of the exceedance that caused it (if any)
    as a historical marker.
    """

    reason: UnusableReason
    exceeded_since: Optional[datetime] = None


UsabilityState = Union[Usable, Exceeding, Unusable]


def state_of(drug: Drug) -> UsabilityState:
    """Read the state a stored drug is in."""
    if drug.unusable:
        reason = drug.unusable_reason
        if reason is None:
            reason = (
                UnusableReason.TEMPERATURE
                if drug.temperature_exceeded_since is not None
                else UnusableReason.MANUAL
            )
        return Unusable(reason=reason, exceeded_since=drug.temperature_exceeded_since)
    if drug.temperature_exceeded_since is not None:
        return Exceeding(since=drug.temperature_exceeded_since)
    return Usable()


def step(
    state: UsabilityState,
    over_max: bool,
    threshold_hours: float,
    expired: bool,
    now: datetime,
) -> UsabilityState:
    """Apply one observation to a state.

    Args:
        state: Current state
        over_max: Whether the cooler temperature is above the drug's maximum
        threshold_hours: Hours of continuous exceedance tolerated
        expired: Whether the expiration date has passed
        now: Observation time

    Returns:
        The next state
    """
    if isinstance(state, Unusable):
        return state

    if expired:
        since = state.since if isinstance(state, Exceeding) else None
        return Unusable(reason=UnusableReason.EXPIRED, exceeded_since=since)

    if isinstance(state, Exceeding):
        if not over_max:
            return Usable()
        if hours_between(state.since, now) >= threshold_hours:
            return Unusable(reason=UnusableReason.TEMPERATURE, exceeded_since=state.since)
        return state

    if over_max:
        return Exceeding(since=now)
    return state


def fields_for(state: UsabilityState) -> Dict[str, Any]:
    """Drug fields that persist a state."""
    if isinstance(state, Unusable):
        return {
            "unusable": True,
            "unusable_reason": state.reason,
            "temperature_exceeded_since": state.exceeded_since,
        }
    if isinstance(state, Exceeding):
        return {"unusable": False, "temperature_exceeded_since": state.since}
    return {"unusable": False, "temperature_exceeded_since": None}


@dataclass
class UsabilityEvaluation:
    """Outcome of evaluating one drug.

    Attributes:
        drug: Drug with the changes applied
        previous: State before the evaluation
        state: State after the evaluation
        temperature_warning: T > max at this sample (display only)
        changes: Fields that differ from the stored drug
    """

    drug: Drug
    previous: UsabilityState
    state: UsabilityState
    temperature_warning: bool = False
    changes: Dict[str, Any] = field(default_factory=dict)

    @property
    def became_unusable(self) -> bool:
        return isinstance(self.state, Unusable) and not isinstance(self.previous, Unusable)


class DrugUsabilityMachine:
    """Applies temperature samples and the passage of time to drugs."""

    def apply_sample(self, drug: Drug, temperature: float, now: datetime) -> UsabilityEvaluation:
        """Evaluate a drug against a new temperature sample of its cooler.

        Raises:
            ValidationError: If the drug thresholds or the temperature are invalid
        """
        self._validate(drug)
        if not _is_finite(temperature):
            raise ValidationError(
                f"Temperature for drug '{drug.id}' is not a finite number: {temperature!r}"
            )
        over_max = temperature > drug.max_temperature
        return self._evaluate(drug, over_max=over_max, now=now, temperature_warning=over_max)

    def refresh(self, drug: Drug, now: datetime) -> UsabilityEvaluation:
        """Re-evaluate a drug without a new sample.

        An ongoing exceedance is assumed to continue, so a drug whose cooler
        stopped reporting still becomes unusable once the threshold elapses.
        Expiration is checked as well.
        """
        self._validate(drug)
        previous = state_of(drug)
        return self._evaluate(drug, over_max=isinstance(previous, Exceeding), now=now)

    def _evaluate(
        self,
        drug: Drug,
        over_max: bool,
        now: datetime,
        temperature_warning: bool = False,
    ) -> UsabilityEvaluation:
        previous = state_of(drug)
        state = step(
            previous,
            over_max=over_max,
            threshold_hours=drug.unsuitable_time_threshold,
            expired=drug.is_expired(now),
            now=now,
        )

        changes = {
            key: value
            for key, value in fields_for(state).items()
            if getattr(drug, key) != value
        }
        # The stored flag is authoritative for terminality
        if drug.unusable:
            changes.pop("unusable", None)

        evaluation = UsabilityEvaluation(
            drug=drug.model_copy(update=changes) if changes else drug,
            previous=previous,
            state=state,
            temperature_warning=temperature_warning,
            changes=changes,
        )
        if evaluation.became_unusable:
            log.info(
                "drug_became_unusable",
                drug_id=drug.id,
                cooler_id=drug.cooler_id,
                reason=state.reason.value,  # type: ignore[union-attr]
            )
        return evaluation

    @staticmethod
    def _validate(drug: Drug) -> None:
        threshold = drug.unsuitable_time_threshold
        if not _is_finite(threshold) or threshold <= 0:
            raise ValidationError(
                f"Drug '{drug.id}' has an invalid unsuitable time threshold: {threshold!r}",
                hint="unsuitable_time_threshold is in hours and must be greater than 0.",
            )
        if not _is_finite(drug.max_temperature):
            raise ValidationError(
                f"Drug '{drug.id}' has an invalid max temperature: {drug.max_temperature!r}"
            )


def _is_finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)

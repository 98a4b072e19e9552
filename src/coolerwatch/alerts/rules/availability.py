"""Unavailable and unreachable cooler rules."""

from typing import List

from coolerwatch.alerts.dedup import is_notified
from coolerwatch.alerts.models import FlagTarget, PendingAlert
from coolerwatch.alerts.rules.base import AlertRule
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.models.enums import AlertKind


def _format_timeout(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


class AvailabilityRule(AlertRule):
    """Alert when a cooler is marked unavailable or stops reporting.

    The two conditions alert independently, but both flags are released
    together, and only once the cooler is available and reachable again.
    """

    name = "availability"
    kinds = (AlertKind.UNREACHABLE, AlertKind.UNAVAILABLE)

    def evaluate(self, snapshot: FleetSnapshot) -> List[PendingAlert]:
        alerts: List[PendingAlert] = []
        timeout = _format_timeout(self.options.thresholds.reachability_timeout_seconds)

        for cooler, status in snapshot.evaluated_coolers(self.options.alert_disabled_coolers):
            if status.is_unreachable and not is_notified(cooler, AlertKind.UNREACHABLE):
                if cooler.last_updated_at is None:
                    detail = "The cooler has never reported telemetry."
                else:
                    detail = (
                        f"No telemetry for more than {timeout} "
                        f"(last sample {cooler.last_updated_at.isoformat()})."
                    )
                alerts.append(
                    PendingAlert(
                        kind=AlertKind.UNREACHABLE,
                        title=f"Cooler Unreachable: {cooler.label}",
                        body=detail,
                        cooler_id=cooler.id,
                        targets=[FlagTarget(AlertKind.UNREACHABLE, cooler.id)],
                    )
                )

            if not status.availability and not is_notified(cooler, AlertKind.UNAVAILABLE):
                alerts.append(
                    PendingAlert(
                        kind=AlertKind.UNAVAILABLE,
                        title=f"Cooler Unavailable: {cooler.label}",
                        body="The cooler has been marked as unavailable.",
                        cooler_id=cooler.id,
                        targets=[FlagTarget(AlertKind.UNAVAILABLE, cooler.id)],
                    )
                )
        return alerts

    def resets(self, snapshot: FleetSnapshot) -> List[FlagTarget]:
        targets: List[FlagTarget] = []
        for cooler, status in snapshot.evaluated_coolers():
            if not (status.availability and status.is_reachable):
                continue
            for kind in self.kinds:
                if is_notified(cooler, kind):
                    targets.append(FlagTarget(kind, cooler.id))
        return targets

"""Battery warning rule."""

from typing import List

from coolerwatch.alerts.dedup import is_notified
from coolerwatch.alerts.models import FlagTarget, PendingAlert
from coolerwatch.alerts.rules.base import AlertRule
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.models.enums import AlertKind

KIND = AlertKind.BATTERY_WARNING


class BatteryWarningRule(AlertRule):
    """Alert once when the battery drops below the warning level.

    The flag is released only when the battery climbs back to the reset
    level, so a battery hovering around the warning level alerts once.
    """

    name = "battery"
    kinds = (KIND,)

    def evaluate(self, snapshot: FleetSnapshot) -> List[PendingAlert]:
        alerts: List[PendingAlert] = []
        warning_level = self.options.thresholds.battery_warning_level

        for cooler, status in snapshot.evaluated_coolers(self.options.alert_disabled_coolers):
            if not status.battery_warning or is_notified(cooler, KIND):
                continue
            alerts.append(
                PendingAlert(
                    kind=KIND,
                    title=f"Battery Warning: {cooler.label}",
                    body=(
                        f"Battery level is {cooler.battery_level:g}%, below the "
                        f"{warning_level:g}% warning level. Replace or recharge the "
                        f"battery to keep the cooler reporting."
                    ),
                    cooler_id=cooler.id,
                    targets=[FlagTarget(KIND, cooler.id)],
                )
            )
        return alerts

    def resets(self, snapshot: FleetSnapshot) -> List[FlagTarget]:
        return [
            FlagTarget(KIND, cooler.id)
            for cooler, status in snapshot.evaluated_coolers()
            if is_notified(cooler, KIND) and status.battery_recovered
        ]

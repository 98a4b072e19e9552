"""Temperature warning rule."""

from typing import List

from coolerwatch.alerts.dedup import is_notified
from coolerwatch.alerts.models import FlagTarget, PendingAlert
from coolerwatch.alerts.rules.base import AlertRule
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.models.enums import AlertKind, TemperatureAlertMode

KIND = AlertKind.TEMPERATURE_WARNING


class TemperatureWarningRule(AlertRule):
    """Alert when a cooler's temperature is above any stored drug's maximum.

    In EDGE mode the cooler's temperature_warning flag is set after the
    alert and released once every drug is back within limits. In LEVEL
    mode the alert repeats on every sweep and no flag is written.
    """

    name = "temperature"
    kinds = (KIND,)

    def evaluate(self, snapshot: FleetSnapshot) -> List[PendingAlert]:
        alerts: List[PendingAlert] = []
        edge = self.options.temperature_alert_mode == TemperatureAlertMode.EDGE

        for cooler, status in snapshot.evaluated_coolers(self.options.alert_disabled_coolers):
            if not status.temperature_warning:
                continue
            if edge and is_notified(cooler, KIND):
                continue

            count = len(status.drugs_over_max)
            alerts.append(
                PendingAlert(
                    kind=KIND,
                    title=f"Temperature Warning: {cooler.label}",
                    body=(
                        f"Temperature ({cooler.current_temperature}°C) exceeds the safe "
                        f"maximum for {count} drug(s) in this cooler."
                    ),
                    cooler_id=cooler.id,
                    targets=[FlagTarget(KIND, cooler.id)] if edge else [],
                )
            )
        return alerts

    def resets(self, snapshot: FleetSnapshot) -> List[FlagTarget]:
        return [
            FlagTarget(KIND, cooler.id)
            for cooler, status in snapshot.evaluated_coolers()
            if is_notified(cooler, KIND) and not status.temperature_warning
        ]

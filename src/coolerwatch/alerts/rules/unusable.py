"""Unusable drug rule."""

from collections import defaultdict
from typing import Dict, List

from coolerwatch.alerts.dedup import is_notified
from coolerwatch.alerts.models import FlagTarget, PendingAlert
from coolerwatch.alerts.rules.base import AlertRule
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.models.drug import Drug
from coolerwatch.models.enums import AlertKind

KIND = AlertKind.UNUSABLE


class UnusableDrugRule(AlertRule):
    """One alert per cooler listing drugs that became unusable.

    The flag is one-shot: an unusable drug never becomes usable again.
    """

    name = "unusable"
    kinds = (KIND,)

    def evaluate(self, snapshot: FleetSnapshot) -> List[PendingAlert]:
        alerts: List[PendingAlert] = []
        by_cooler: Dict[str, List[Drug]] = defaultdict(list)
        for drug in snapshot.drugs.values():
            if drug.unusable and not is_notified(drug, KIND):
                by_cooler[drug.cooler_id].append(drug)

        for cooler_id, drugs in by_cooler.items():
            names = ", ".join(sorted(d.name for d in drugs))
            alerts.append(
                PendingAlert(
                    kind=KIND,
                    title=f"Unusable Drugs in {snapshot.cooler_label(cooler_id)}",
                    body=f"{len(drugs)} drug(s) are no longer usable and must be discarded: {names}.",
                    cooler_id=cooler_id,
                    targets=[FlagTarget(KIND, d.id) for d in drugs],
                )
            )
        return alerts

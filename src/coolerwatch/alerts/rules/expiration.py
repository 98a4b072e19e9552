"""Expiration tier rule.

A drug belongs to at most one tier, the most urgent its expiration date
falls into:

    expired         expiration_date < now
    1 week          now <= expiration_date <= now + 7 days
    1 month         now + 7 days < expiration_date <= now + 1 month
    3 months        now + 1 month < expiration_date <= now + 3 months

Each tier's flag is one-shot, so a drug alerts at most once per tier.
A drug already notified for its current tier is not re-alerted for a
less urgent one.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from coolerwatch.alerts.dedup import is_notified
from coolerwatch.alerts.models import FlagTarget, PendingAlert
from coolerwatch.alerts.rules.base import AlertRule
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.models.drug import Drug
from coolerwatch.models.enums import AlertKind


@dataclass(frozen=True)
class ExpirationTier:
    kind: AlertKind
    label: str
    horizon: Optional[relativedelta]  # None for already expired


# Most urgent first
TIERS: Tuple[ExpirationTier, ...] = (
    ExpirationTier(AlertKind.EXPIRED, "expired", None),
    ExpirationTier(AlertKind.EXPIRY_ONE_WEEK, "1 Week", relativedelta(weeks=1)),
    ExpirationTier(AlertKind.EXPIRY_ONE_MONTH, "1 Month", relativedelta(months=1)),
    ExpirationTier(AlertKind.EXPIRY_THREE_MONTHS, "3 Months", relativedelta(months=3)),
)


def tier_for(drug: Drug, now: datetime) -> Optional[ExpirationTier]:
    """Most urgent tier the drug's expiration date falls into, if any."""
    if drug.is_expired(now):
        return TIERS[0]
    for tier in TIERS[1:]:
        if drug.expiration_date <= now + tier.horizon:
            return tier
    return None


class ExpirationRule(AlertRule):
    """Batch expiring drugs per cooler and tier into one alert."""

    name = "expiration"
    kinds = tuple(tier.kind for tier in TIERS)

    def evaluate(self, snapshot: FleetSnapshot) -> List[PendingAlert]:
        alerts: List[PendingAlert] = []
        batches: Dict[Tuple[str, AlertKind], List[Drug]] = defaultdict(list)
        tiers_by_kind = {tier.kind: tier for tier in TIERS}

        for drug in snapshot.drugs.values():
            tier = tier_for(drug, snapshot.now)
            if tier is None or is_notified(drug, tier.kind):
                continue
            batches[(drug.cooler_id, tier.kind)].append(drug)

        for (cooler_id, kind), drugs in batches.items():
            tier = tiers_by_kind[kind]
            label = snapshot.cooler_label(cooler_id)
            names = ", ".join(sorted(d.name for d in drugs))
            if kind == AlertKind.EXPIRED:
                title = f"Expired Drugs in {label}"
                body = f"{len(drugs)} drug(s) have passed their expiration date: {names}."
            else:
                title = f"Drugs Expiring in {tier.label}: {label}"
                body = f"{len(drugs)} drug(s) expire within {tier.label.lower()}: {names}."
            alerts.append(
                PendingAlert(
                    kind=kind,
                    title=title,
                    body=body,
                    cooler_id=cooler_id,
                    targets=[FlagTarget(kind, d.id) for d in drugs],
                )
            )
        return alerts

"""Alert rules and the default registry."""

from typing import Optional

from coolerwatch.alerts.rules.availability import AvailabilityRule
from coolerwatch.alerts.rules.base import AlertRule, RuleOptions, RuleRegistry
from coolerwatch.alerts.rules.battery import BatteryWarningRule
from coolerwatch.alerts.rules.expiration import TIERS, ExpirationRule, ExpirationTier, tier_for
from coolerwatch.alerts.rules.temperature import TemperatureWarningRule
from coolerwatch.alerts.rules.unusable import UnusableDrugRule

ALL_RULE_TYPES = (
    TemperatureWarningRule,
    BatteryWarningRule,
    ExpirationRule,
    UnusableDrugRule,
    AvailabilityRule,
)


def get_default_registry(
    options: Optional[RuleOptions] = None,
    disabled: Optional[set] = None,
) -> RuleRegistry:
    """Create a RuleRegistry with every built-in rule.

    Args:
        options: Options passed to each rule
        disabled: Rule names to leave out (e.g. {"battery"})

    Returns:
        RuleRegistry in evaluation order
    """
    registry = RuleRegistry()
    for rule_type in ALL_RULE_TYPES:
        if disabled and rule_type.name in disabled:
            continue
        registry.register(rule_type(options))
    return registry


__all__ = [
    "AlertRule",
    "RuleOptions",
    "RuleRegistry",
    "AvailabilityRule",
    "BatteryWarningRule",
    "ExpirationRule",
    "ExpirationTier",
    "TemperatureWarningRule",
    "UnusableDrugRule",
    "TIERS",
    "tier_for",
    "ALL_RULE_TYPES",
    "get_default_registry",
]

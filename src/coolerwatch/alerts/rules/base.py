"""Base alert rule and registry."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from coolerwatch.alerts.models import FlagTarget, PendingAlert
from coolerwatch.alerts.snapshot import FleetSnapshot
from coolerwatch.compliance.thresholds import DEFAULT_THRESHOLDS, StatusThresholds
from coolerwatch.models.enums import AlertKind, TemperatureAlertMode


@dataclass(frozen=True)
class RuleOptions:
    """Behavior switches shared by all rules.

    Attributes:
        temperature_alert_mode: EDGE alerts once per warning episode, LEVEL
            alerts on every sweep while the warning holds
        alert_disabled_coolers: Apply cooler-level rules to disabled coolers
        thresholds: Battery and reachability thresholds
    """

    temperature_alert_mode: TemperatureAlertMode = TemperatureAlertMode.EDGE
    alert_disabled_coolers: bool = False
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS


class AlertRule(ABC):
    """One alert rule: which alerts to send and which flags to release.

    Attributes:
        name: Stage name used in logs and sweep reports
        kinds: Alert kinds this rule produces
    """

    name: str = ""
    kinds: Tuple[AlertKind, ...] = ()

    def __init__(self, options: Optional[RuleOptions] = None) -> None:
        self.options = options or RuleOptions()

    @abstractmethod
    def evaluate(self, snapshot: FleetSnapshot) -> List[PendingAlert]:
        """Alerts to dispatch for the current snapshot."""

    def resets(self, snapshot: FleetSnapshot) -> List[FlagTarget]:
        """Reversible flags whose condition no longer holds."""
        return []


class RuleRegistry:
    """Ordered registry of alert rules, looked up by name."""

    def __init__(self) -> None:
        self._rules: List[AlertRule] = []
        self._index: Dict[str, AlertRule] = {}

    def register(self, rule: AlertRule) -> None:
        """Register a rule.

        Raises:
            ValueError: If a rule with the same name is already registered
        """
        if rule.name in self._index:
            raise ValueError(f"Alert rule '{rule.name}' is already registered")
        self._rules.append(rule)
        self._index[rule.name] = rule

    def get(self, name: str) -> Optional[AlertRule]:
        return self._index.get(name)

    @property
    def all_rules(self) -> List[AlertRule]:
        """Get all registered rules in evaluation order."""
        return list(self._rules)

    @property
    def names(self) -> List[str]:
        return [rule.name for rule in self._rules]

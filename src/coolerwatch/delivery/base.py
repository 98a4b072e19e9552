"""Alert gateway interface and dispatch result types.

The gateway is the only way alerts leave the service. It accepts a
title and body and fans them out to every registered endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable


@dataclass
class EndpointOutcome:
    """Delivery outcome for a single endpoint."""

    endpoint: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class DispatchResult:
    """Per-endpoint outcomes of one gateway send.

    A multicast can partially fail; whether that counts as dispatched is
    decided by the DispatchManager's policy, not here.
    """

    outcomes: List[EndpointOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def failed_endpoints(self) -> List[str]:
        return [o.endpoint for o in self.outcomes if not o.success]


@runtime_checkable
class AlertGateway(Protocol):
    """Contract for alert delivery backends.

    send() returns a DispatchResult, or raises GatewayError when nothing
    could be attempted (no endpoints, transport unusable).
    """

    name: str

    def send(self, title: str, body: str) -> DispatchResult:
        """Deliver a notification to all registered endpoints."""
        ...

"""Delivery subsystem: alert gateways and dispatch policy."""

from coolerwatch.delivery.base import AlertGateway, DispatchResult, EndpointOutcome
from coolerwatch.delivery.log import LogGateway
from coolerwatch.delivery.manager import DispatchManager, create_circuit_breaker
from coolerwatch.delivery.push import PushGateway

__all__ = [
    "AlertGateway",
    "DispatchManager",
    "DispatchResult",
    "EndpointOutcome",
    "LogGateway",
    "PushGateway",
    "create_circuit_breaker",
]

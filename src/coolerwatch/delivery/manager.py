"""Dispatch orchestration: circuit breaker and success policy.

Wraps any AlertGateway so the alert engine sees a single outcome per
alert: a DispatchResult when the alert counts as dispatched, or a
GatewayError when it does not (and its dedup flag must stay unset).
"""

from typing import Optional

import pybreaker
import structlog

from coolerwatch.delivery.base import AlertGateway, DispatchResult
from coolerwatch.exceptions import GatewayError
from coolerwatch.models.enums import DispatchPolicy

log = structlog.get_logger()

CIRCUIT_FAIL_MAX = 3  # open after 3 consecutive failed dispatches
CIRCUIT_RESET_TIMEOUT = 300  # seconds; a 15-minute sweep sees at most one probe


class CircuitBreakerLoggingListener(pybreaker.CircuitBreakerListener):
    """Logs gateway circuit transitions once, not on every skipped alert."""

    def state_change(
        self,
        cb: pybreaker.CircuitBreaker,
        old_state: pybreaker.CircuitBreakerState,
        new_state: pybreaker.CircuitBreakerState,
    ) -> None:
        if new_state.name == "open":
            log.warning(
                "gateway_circuit_opened",
                gateway=cb.name,
                failures=cb.fail_counter,
                reset_timeout=cb.reset_timeout,
            )
        elif new_state.name == "closed":
            log.info("gateway_circuit_closed", gateway=cb.name)


def create_circuit_breaker(
    name: str,
    fail_max: int = CIRCUIT_FAIL_MAX,
    reset_timeout: float = CIRCUIT_RESET_TIMEOUT,
) -> pybreaker.CircuitBreaker:
    """Create the circuit breaker guarding a gateway."""
    return pybreaker.CircuitBreaker(
        name=name,
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        listeners=[CircuitBreakerLoggingListener()],
    )


class DispatchManager:
    """Sends alerts through a gateway and decides whether they count.

    Policies:
    - ANY: at least one endpoint accepted the alert
    - ALL: every endpoint accepted the alert
    - NON_EXCEPTION: any returned result counts, even with zero successes
    """

    def __init__(
        self,
        gateway: AlertGateway,
        policy: DispatchPolicy = DispatchPolicy.ANY,
        breaker: Optional[pybreaker.CircuitBreaker] = None,
    ) -> None:
        """Initialize dispatch manager.

        Args:
            gateway: Delivery backend
            policy: When a partial result counts as dispatched
            breaker: Circuit breaker (a fresh one named after the gateway by default)
        """
        self.gateway = gateway
        self.policy = policy
        self.breaker = breaker or create_circuit_breaker(getattr(gateway, "name", "gateway"))

    def dispatch(self, title: str, body: str) -> DispatchResult:
        """Send one alert.

        Returns:
            DispatchResult of an accepted dispatch

        Raises:
            GatewayError: If the circuit is open, the gateway raised, or the
                result does not satisfy the policy
        """
        try:
            with self.breaker.calling():
                result = self.gateway.send(title, body)
                if not self.accepts(result):
                    raise GatewayError(
                        f"Dispatch rejected by '{self.policy.value}' policy: "
                        f"{result.success_count} succeeded, {result.failure_count} failed",
                        hint=f"Failed endpoints: {', '.join(result.failed_endpoints) or 'none'}",
                    )
        except pybreaker.CircuitBreakerError as e:
            raise GatewayError(f"Gateway '{self.breaker.name}' circuit is open; dispatch skipped: {e}") from e
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(f"Gateway '{self.breaker.name}' failed: {e}") from e

        if result.failure_count:
            log.warning(
                "dispatch_partial_failure",
                title=title,
                success_count=result.success_count,
                failure_count=result.failure_count,
                failed_endpoints=result.failed_endpoints,
            )
        return result

    def accepts(self, result: DispatchResult) -> bool:
        """Whether a gateway result counts as dispatched under the policy."""
        if self.policy == DispatchPolicy.NON_EXCEPTION:
            return True
        if self.policy == DispatchPolicy.ALL:
            return result.success_count > 0 and result.failure_count == 0
        return result.success_count > 0

"""Log-only gateway for dry runs."""

import structlog

from coolerwatch.delivery.base import DispatchResult, EndpointOutcome

log = structlog.get_logger()


class LogGateway:
    """Writes alerts to the log instead of sending them.

    Always reports one successful outcome, so dedup flags behave exactly
    as in production.
    """

    name = "log"

    def send(self, title: str, body: str) -> DispatchResult:
        log.warning("alert", title=title, body=body, gateway=self.name)
        return DispatchResult(outcomes=[EndpointOutcome(endpoint="log", success=True)])

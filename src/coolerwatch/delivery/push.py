"""Push gateway fanning alerts out to registered HTTP endpoints.

Each endpoint receives ``POST {"title": ..., "body": ...}``. Endpoints are
contacted concurrently; transient connection errors are retried with
exponential backoff, and every endpoint's outcome is reported separately.

Example usage:
    from coolerwatch.delivery import PushGateway

    gateway = PushGateway(endpoints=store.list_endpoints)
    result = gateway.send("Cooler Unreachable: CW-200", "No telemetry for 3 minutes.")
    print(result.success_count, result.failure_count)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from coolerwatch import __version__
from coolerwatch.delivery.base import DispatchResult, EndpointOutcome
from coolerwatch.exceptions import GatewayError

log = structlog.get_logger()

EndpointSource = Union[Sequence[str], Callable[[], List[str]]]


class PushGateway:
    """HTTP fan-out gateway.

    Attributes:
        timeout: Per-request timeout in seconds
        max_retries: Attempts per endpoint for connect/timeout errors
    """

    name = "push"

    def __init__(
        self,
        endpoints: EndpointSource,
        timeout: float = 10.0,
        max_retries: int = 3,
        min_wait: float = 0.5,
        max_wait: float = 8.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            endpoints: Endpoint URLs, or a callable returning them at send time
                (e.g. ``store.list_endpoints``)
            timeout: Per-request timeout in seconds
            max_retries: Attempts per endpoint for transient errors
            min_wait: Minimum backoff between attempts in seconds
            max_wait: Maximum backoff between attempts in seconds
            headers: Extra request headers (e.g. an auth token)
            transport: Optional httpx transport, used by tests
        """
        self._endpoints = endpoints
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.min_wait = min_wait
        self.max_wait = max_wait
        self._headers = {"User-Agent": f"coolerwatch/{__version__}", **(headers or {})}
        self._transport = transport

    def endpoints(self) -> List[str]:
        """Resolve the current endpoint list."""
        if callable(self._endpoints):
            return list(self._endpoints())
        return list(self._endpoints)

    def send(self, title: str, body: str) -> DispatchResult:
        """Deliver to all endpoints, blocking until every attempt finished.

        Raises:
            GatewayError: If no endpoints are registered
        """
        return asyncio.run(self.send_async(title, body))

    async def send_async(self, title: str, body: str) -> DispatchResult:
        """Async variant of send()."""
        endpoints = self.endpoints()
        if not endpoints:
            raise GatewayError(
                "No notification endpoints registered",
                hint="Register an endpoint or set gateway_endpoints in the configuration.",
            )

        payload = {"title": title, "body": body}
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(
                *[self._send_one(client, endpoint, payload) for endpoint in endpoints],
                return_exceptions=True,
            )

        outcomes: List[EndpointOutcome] = []
        for endpoint, result in zip(endpoints, results):
            if isinstance(result, BaseException):
                log.warning(
                    "endpoint_delivery_error",
                    endpoint=endpoint,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                outcomes.append(EndpointOutcome(endpoint=endpoint, success=False, error=str(result)))
            else:
                outcomes.append(result)

        dispatch = DispatchResult(outcomes=outcomes)
        log.debug(
            "push_sent",
            title=title,
            success_count=dispatch.success_count,
            failure_count=dispatch.failure_count,
        )
        return dispatch

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        payload: Dict[str, Any],
    ) -> EndpointOutcome:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await client.post(endpoint, json=payload)
        except httpx.HTTPError as e:
            return EndpointOutcome(endpoint=endpoint, success=False, error=str(e) or type(e).__name__)

        if response.is_success:
            return EndpointOutcome(endpoint=endpoint, success=True, status_code=response.status_code)

        log.warning("endpoint_rejected", endpoint=endpoint, status_code=response.status_code)
        return EndpointOutcome(
            endpoint=endpoint,
            success=False,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

"""HTTP client with retries, timeouts, and circuit breaker."""
import httpx
from typing import Optional, Dict, Any
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    RetryCallState,
)
import structlog
from datetime import datetime

logger = structlog.get_logger(__name__)


class CircuitBreakerOpenError(httpx.HTTPError):
    """Raised instead of calling a service whose breaker is open."""


class CircuitBreaker:
    """Simple circuit breaker to avoid hammering down services."""

    def __init__(self, failure_threshold: int = 5, timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = "closed"  # closed, open, half_open

    def call_succeeded(self):
        """Reset on success."""
        self.failure_count = 0
        self.state = "closed"

    def call_failed(self):
        """Record failure."""
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        if self.failure_count >= self.failure_threshold:
            self.state = "open"
            logger.warning(
                "circuit_breaker_opened",
                failure_count=self.failure_count,
                threshold=self.failure_threshold
            )

    def can_attempt(self) -> bool:
        """Check if we can attempt a call."""
        if self.state == "closed":
            return True

        if self.state == "open":
            if self.last_failure_time:
                elapsed = (datetime.now() - self.last_failure_time).total_seconds()
                if elapsed >= self.timeout:
                    self.state = "half_open"
                    logger.info("circuit_breaker_half_open")
                    return True
            return False

        # half_open: allow one attempt
        return True


class ServiceHTTPClient:
    """Blocking JSON client for one service, with a fixed per-call timeout.

    GETs are retried with exponential backoff; mutations are sent once.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        default_params: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.default_params = default_params or {}
        self.timeout = timeout
        self.max_retries = max_retries
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._transport = transport

    def _log_retry(self, retry_state: RetryCallState):
        """Log retry attempts."""
        logger.warning(
            "http_retry_attempt",
            service=self.service_name,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_retries + 1,
            exception=str(retry_state.outcome.exception())
        )

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        cb = self.circuit_breaker
        if not cb.can_attempt():
            raise CircuitBreakerOpenError(f"Circuit breaker open for {self.service_name}")

        url = f"{self.base_url}{path}"
        merged = {**self.default_params, **(params or {})}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(
                    method,
                    url,
                    headers=self.headers,
                    params=merged or None,
                    json=json,
                )
                response.raise_for_status()
                cb.call_succeeded()
                return response
        except httpx.HTTPError as e:
            cb.call_failed()
            logger.error(
                "http_request_failed",
                service=self.service_name,
                method=method,
                url=url,
                error=str(e),
                circuit_breaker_state=cb.state
            )
            raise

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET JSON with retries."""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        response = retrying(self._send, "GET", path, params=params)
        return response.json()

    def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return self._send("DELETE", path, params=params)

    def put(self, path: str, json: Any, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return self._send("PUT", path, params=params, json=json)

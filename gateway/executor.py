"""Outbound call execution with retry, backoff and response classification.

CallExecutor is the single place where the gateway talks to a provider. It
turns every outcome into an Envelope:

======================  ===============================================
Outcome                 Result
======================  ===============================================
rate limiter refuses    RateLimited, no network attempt
transport failure       retried with capped exponential backoff;
                        ConnectionFailed once attempts are exhausted
2xx                     Success with the decoded JSON body
401 / 403               AuthenticationFailed / AccessForbidden
429                     retried after the server-directed delay
                        (retry-after or x-ratelimit-reset, default 60s,
                        capped at 60s); RateLimited when exhausted
other 4xx (and 1xx/3xx) ApiError carrying the HTTP code
5xx                     ServerError, not retried
loop exhausted          MaxRetriesExceeded
deadline elapsed        ConnectionFailed with deadline_exceeded=True
======================  ===============================================

Every received response, whatever its status, is recorded in the rate
limiter's log.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Mapping, Optional

from gateway.config_resolver import ProviderConfig
from gateway.envelope import Envelope, ErrorKind, error, success
from gateway.rate_limiter import RateLimiter
from gateway.transport import HttpResponse, HttpTransport
from modules.constants import ERROR_MESSAGE_MAX_CHARS
from modules.error_handler import TransportError, handle_recoverable_error
from modules.logger import setup_logger
from modules.types import GatewaySettings

logger = setup_logger(__name__)

# Values above this are treated as absolute epoch seconds rather than deltas
_EPOCH_THRESHOLD = 1_000_000_000


# ============================================================================
# Response Helpers
# ============================================================================
def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def parse_retry_after(headers: Mapping[str, str], now: Optional[float] = None) -> Optional[float]:
    """Extract a server-directed delay in seconds from rate-limit headers.

    ``retry-after`` may hold seconds or an HTTP-date. ``x-ratelimit-reset``
    may hold absolute epoch seconds or a relative number of seconds.

    Returns:
        A positive delay, or None when no usable header is present
    """
    now = time.time() if now is None else now
    lowered = {str(k).lower(): v for k, v in headers.items()}

    retry_after = lowered.get("retry-after")
    if retry_after:
        seconds = _to_float(retry_after)
        if seconds is None:
            try:
                when = parsedate_to_datetime(str(retry_after))
            except (TypeError, ValueError):
                when = None
            if when is not None:
                if when.tzinfo is None:
                    when = when.replace(tzinfo=timezone.utc)
                seconds = when.timestamp() - now
        if seconds is not None and seconds > 0:
            return seconds

    reset = _to_float(lowered.get("x-ratelimit-reset"))
    if reset is not None:
        delay = reset - now if reset > _EPOCH_THRESHOLD else reset
        if delay > 0:
            return delay

    return None


def extract_rate_limit_info(headers: Mapping[str, str]) -> Dict[str, str]:
    """Collect the rate-limit headers a provider returned, keyed without prefix."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    info: Dict[str, str] = {}
    for name, key in (
        ("x-ratelimit-limit", "limit"),
        ("x-ratelimit-remaining", "remaining"),
        ("x-ratelimit-reset", "reset"),
        ("retry-after", "retry_after"),
    ):
        if lowered.get(name) is not None:
            info[key] = str(lowered[name])
    return info


def extract_error_message(response: HttpResponse) -> str:
    """Return a readable error message from a provider error response."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, str) and err.strip():
            return err.strip()
        if isinstance(err, dict) and isinstance(err.get("message"), str) and err["message"].strip():
            return err["message"].strip()
        if isinstance(data.get("message"), str) and data["message"].strip():
            return data["message"].strip()

    text = (response.text or "").strip()
    if text:
        return text[:ERROR_MESSAGE_MAX_CHARS]
    return f"HTTP {response.status_code}"


@dataclass(frozen=True)
class CallAttempt:
    """One attempt of an outbound call; used for logging only."""
    endpoint: str
    request_body: Any
    attempt_number: int
    started_at: float

    def describe(self, max_attempts: int) -> str:
        started = datetime.fromtimestamp(self.started_at, timezone.utc).strftime("%H:%M:%S")
        return f"attempt {self.attempt_number}/{max_attempts} to {self.endpoint} (started {started} UTC)"


# ============================================================================
# Executor
# ============================================================================
class CallExecutor:
    """Perform provider calls and convert every outcome into an Envelope.

    Args:
        transport: HTTP transport used for requests
        rate_limiter: Shared per-provider limiter
        settings: Timeout, retry and backoff settings
        sleep: Blocking sleep function (injectable for tests)
        clock: Monotonic clock used for deadlines (injectable for tests)
    """

    def __init__(
        self,
        transport: HttpTransport,
        rate_limiter: RateLimiter,
        settings: Optional[GatewaySettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.settings = settings or GatewaySettings()
        self._sleep = sleep
        self._clock = clock

    def _connection_backoff(self, attempt: int) -> float:
        base = self.settings.connection_backoff_base
        return min(base * (2 ** (attempt - 1)), self.settings.connection_backoff_cap)

    def execute(
        self,
        config: ProviderConfig,
        request_body: Any,
        max_retries: Optional[int] = None,
        *,
        url: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_budget: Optional[float] = None,
        operation: str = "chat",
    ) -> Envelope:
        """Send request_body to the provider and classify the outcome.

        Args:
            config: Resolved provider configuration
            request_body: JSON-serializable request payload
            max_retries: Total number of attempts (defaults to settings.max_retries)
            url: Target URL (defaults to config.endpoint)
            headers: Request headers (defaults to JSON content type plus auth headers)
            timeout_budget: Deadline in seconds for the whole call, retries included
            operation: Label recorded in error context

        Returns:
            Success with the decoded JSON body, or an Error envelope
        """
        try:
            return self._execute(config, request_body, max_retries, url, headers, timeout_budget, operation)
        except Exception as e:
            handle_recoverable_error(e, f"{operation} call to '{config.provider_id}'")
            return error(
                ErrorKind.PROCESSING_FAILED,
                f"Unexpected error while calling {config.provider_id}: {type(e).__name__}",
                provider=config.provider_id,
                operation=operation,
            )

    def _execute(
        self,
        config: ProviderConfig,
        request_body: Any,
        max_retries: Optional[int],
        url: Optional[str],
        headers: Optional[Mapping[str, str]],
        timeout_budget: Optional[float],
        operation: str,
    ) -> Envelope:
        provider_id = config.provider_id
        context = {"provider": provider_id, "operation": operation}
        attempts = self.settings.max_retries if max_retries is None else max(0, int(max_retries))
        target = url or config.endpoint
        request_headers = dict(headers) if headers is not None else {
            "Content-Type": "application/json",
            **config.auth_headers(),
        }

        if not self.rate_limiter.may_call(provider_id, config.rate_limits):
            return error(
                ErrorKind.RATE_LIMITED,
                f"Local rate limit reached for {provider_id}. Try again later.",
                **context,
                limits=config.rate_limits.to_dict(),
            )

        budget = timeout_budget if timeout_budget is not None else self.settings.call_deadline
        deadline = self._clock() + budget if budget is not None else None

        def remaining() -> Optional[float]:
            return None if deadline is None else deadline - self._clock()

        def deadline_error(attempt: int) -> Envelope:
            return error(
                ErrorKind.CONNECTION_FAILED,
                f"Call to {provider_id} did not complete within {budget:.1f}s",
                **context,
                attempts=attempt,
                deadline_exceeded=True,
            )

        last_transport_error = ""
        for attempt_number in range(1, attempts + 1):
            left = remaining()
            if left is not None and left <= 0:
                return deadline_error(attempt_number - 1)

            timeout = self.settings.request_timeout if left is None else min(self.settings.request_timeout, left)
            attempt = CallAttempt(target, request_body, attempt_number, time.time())
            logger.debug(f"{provider_id}: {attempt.describe(attempts)}")

            try:
                response = self.transport.post(target, request_headers, request_body, timeout)
            except TransportError as e:
                last_transport_error = str(e)
                logger.warning(f"{provider_id}: connection failed on attempt {attempt_number}/{attempts}: {e}")
                if attempt_number >= attempts:
                    return error(
                        ErrorKind.CONNECTION_FAILED,
                        f"Could not reach {provider_id}: {last_transport_error}",
                        **context,
                        attempts=attempt_number,
                    )
                delay = self._connection_backoff(attempt_number)
                left = remaining()
                if left is not None and delay >= left:
                    return deadline_error(attempt_number)
                self._sleep(delay)
                continue

            self.rate_limiter.record(provider_id)
            status = response.status_code

            if status >= 500:
                return error(
                    ErrorKind.SERVER_ERROR,
                    f"{provider_id} server error ({status}): {extract_error_message(response)}",
                    **context,
                    http_code=status,
                )

            if status == 401:
                return error(
                    ErrorKind.AUTHENTICATION_FAILED,
                    f"Authentication with {provider_id} failed. Check the API credential.",
                    **context,
                    http_code=status,
                    detail=extract_error_message(response),
                )

            if status == 403:
                return error(
                    ErrorKind.ACCESS_FORBIDDEN,
                    f"Access to {provider_id} was denied. Check the credential's permissions.",
                    **context,
                    http_code=status,
                    detail=extract_error_message(response),
                )

            if status == 429:
                extracted = parse_retry_after(response.headers)
                delay = extracted if extracted else self.settings.default_retry_after
                if attempt_number >= attempts:
                    return error(
                        ErrorKind.RATE_LIMITED,
                        f"{provider_id} rate limit exceeded. Retry after {delay:.0f} seconds.",
                        **context,
                        http_code=status,
                        retry_after=delay,
                        rate_limit_info=extract_rate_limit_info(response.headers),
                    )
                wait = min(delay, self.settings.max_retry_after)
                left = remaining()
                if left is not None and wait >= left:
                    return deadline_error(attempt_number)
                logger.warning(
                    f"{provider_id}: rate limited (429), retrying in {wait:.1f}s "
                    f"(attempt {attempt_number}/{attempts})"
                )
                self._sleep(wait)
                continue

            if 200 <= status < 300:
                try:
                    body = response.json()
                except ValueError:
                    return error(
                        ErrorKind.INVALID_RESPONSE_FORMAT,
                        f"{provider_id} returned a response that is not valid JSON",
                        **context,
                        http_code=status,
                    )
                logger.debug(f"{provider_id}: {operation} succeeded on attempt {attempt_number}")
                return success(body, source=provider_id, http_code=status, attempts=attempt_number)

            return error(
                ErrorKind.API_ERROR,
                f"{provider_id} rejected the request ({status}): {extract_error_message(response)}",
                **context,
                http_code=status,
            )

        return error(
            ErrorKind.MAX_RETRIES_EXCEEDED,
            f"Gave up calling {provider_id} after {attempts} attempt(s)",
            **context,
            attempts=attempts,
        )


__all__ = [
    "CallAttempt",
    "CallExecutor",
    "extract_error_message",
    "extract_rate_limit_info",
    "parse_retry_after",
]

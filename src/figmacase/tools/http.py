"""Figma REST client - authenticated, timed, rate-limit aware.

Every request yields exactly one CallOutcome carrying the parsed JSON (or the
UpstreamError) together with the StatsUpdate describing the call: one call,
one failure on error, the observed latency, the rate-limit headers and, on
failure, an error record. The caller decides where the update goes.

No retries happen here.

Example:
    >>> client = FigmaClient(token="figd_xxx")
    >>> outcome = await client.request("/files/abc123")
    >>> outcome.json()["name"]
    'Design System'
    >>> aggregator.merge(outcome.update)
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, Callable, Literal

import httpx
from pydantic import SecretStr

from figmacase.foundation.errors import UpstreamError
from figmacase.runtime.observability import get_logger
from figmacase.runtime.telemetry import ApiErrorRecord, StatsUpdate

if TYPE_CHECKING:
    from figmacase.foundation.config import ApiSettings

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

DEFAULT_BASE_URL = "https://api.figma.com/v1"
TOKEN_HEADER = "X-Figma-Token"
RATE_LIMIT_REMAINING_HEADER = "x-rate-limit-remaining"
RATE_LIMIT_RESET_HEADER = "x-rate-limit-reset"

log = get_logger("figmacase.http")


# ─────────────────────────────────────────────────────────────────────────────
# Rate-limit Header Parsing
# ─────────────────────────────────────────────────────────────────────────────


def parse_rate_limit_remaining(value: str | None) -> int | None:
    """Remaining-call count, None when absent, unparseable or not finite."""
    if value is None:
        return None
    try:
        number = float(value.strip())
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def parse_rate_limit_reset(value: str | None) -> float | None:
    """Reset time as a unix timestamp in seconds.

    Accepts epoch seconds, epoch milliseconds, ISO-8601 and HTTP dates.
    Dates without a zone are taken as UTC.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    try:
        number = float(raw)
    except ValueError:
        pass
    else:
        if not math.isfinite(number):
            return None
        return number / 1000 if number > 1e11 else number
    try:
        return _utc_timestamp(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _utc_timestamp(parsedate_to_datetime(raw))
    except (TypeError, ValueError):
        return None


def _utc_timestamp(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.timestamp()


# ─────────────────────────────────────────────────────────────────────────────
# Call Outcome
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CallOutcome:
    """Result of one upstream call plus its telemetry update."""

    endpoint: str
    method: str
    latency_ms: float
    update: StatsUpdate
    data: Any = None
    status: int | None = None
    error: UpstreamError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def json(self) -> Any:
        """Parsed response body, raising the UpstreamError on failure."""
        if self.error is not None:
            raise self.error
        return self.data


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────


class FigmaClient:
    """Async client for the Figma REST API.

    Args:
        token: Personal access token, sent as X-Figma-Token on every request
        base_url: API root (default https://api.figma.com/v1)
        timeout: Per-request timeout in seconds
        client: Pre-built httpx.AsyncClient (tests pass one with MockTransport)
        clock: Monotonic clock used for latency measurement
    """

    __slots__ = ("_token", "_base_url", "_timeout", "_client", "_owns_client", "_clock")

    def __init__(
        self,
        token: str | SecretStr,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._token = token if isinstance(token, SecretStr) else SecretStr(token)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: ApiSettings, **kwargs: Any) -> FigmaClient:
        return cls(settings.require_token(), base_url=settings.base_url, timeout=settings.timeout, **kwargs)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        return {TOKEN_HEADER: self._token.get_secret_value(), "Content-Type": "application/json"}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the httpx client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        endpoint: str,
        *,
        method: HttpMethod = "GET",
        json: Any = None,
    ) -> CallOutcome:
        """Issue one API call. Never raises; failures are carried on the outcome."""
        url = f"{self._base_url}{endpoint}"
        start = self._clock()
        response: httpx.Response | None = None
        try:
            client = await self._get_client()
            response = await client.request(method, url, headers=self._headers(), json=json)
            if not response.is_success:
                raise UpstreamError(_status_message(response), endpoint=endpoint, status=response.status_code)
            try:
                data = response.json()
            except ValueError as e:
                raise UpstreamError(f"Invalid JSON in Figma API response: {e}", endpoint=endpoint,
                                    status=response.status_code) from e
        except UpstreamError as e:
            return self._outcome(endpoint, method, start, response, error=e)
        except httpx.TimeoutException as e:
            err = UpstreamError(f"Request timed out after {self._timeout}s", endpoint=endpoint)
            err.__cause__ = e
            return self._outcome(endpoint, method, start, response, error=err)
        except httpx.HTTPError as e:
            err = UpstreamError(f"Network error: {e}", endpoint=endpoint)
            err.__cause__ = e
            return self._outcome(endpoint, method, start, response, error=err)
        return self._outcome(endpoint, method, start, response, data=data)

    def _outcome(
        self,
        endpoint: str,
        method: str,
        start: float,
        response: httpx.Response | None,
        *,
        data: Any = None,
        error: UpstreamError | None = None,
    ) -> CallOutcome:
        latency_ms = (self._clock() - start) * 1000
        headers = response.headers if response is not None else httpx.Headers()
        update = StatsUpdate(
            total_calls=1,
            failed_calls=1 if error is not None else 0,
            latency_ms=latency_ms,
            rate_limit_remaining=parse_rate_limit_remaining(headers.get(RATE_LIMIT_REMAINING_HEADER)),
            rate_limit_reset_at=parse_rate_limit_reset(headers.get(RATE_LIMIT_RESET_HEADER)),
            last_error=(
                ApiErrorRecord(message=str(error), endpoint=endpoint, time=time.time())
                if error is not None else None
            ),
        )
        if error is not None:
            log.warning("figma api call failed", endpoint=endpoint, method=method,
                        status=error.status, duration_ms=latency_ms, error=str(error))
        else:
            log.debug("figma api call", endpoint=endpoint, method=method,
                      status=response.status_code if response is not None else None, duration_ms=latency_ms)
        return CallOutcome(
            endpoint=endpoint,
            method=method,
            latency_ms=latency_ms,
            update=update,
            data=data,
            status=response.status_code if response is not None else None,
            error=error,
        )

    async def verify_token(self) -> CallOutcome:
        """Call `/me` to check the credential is accepted."""
        return await self.request("/me")


def _status_message(response: httpx.Response) -> str:
    """`Figma API error: <status> <reason>[ - <detail>]` using the body's err/message when present."""
    message = f"Figma API error: {response.status_code} {response.reason_phrase}".rstrip()
    try:
        body = response.json()
    except ValueError:
        return message
    if isinstance(body, dict):
        detail = body.get("err") or body.get("message")
        if detail:
            return f"{message} - {detail}"
    return message

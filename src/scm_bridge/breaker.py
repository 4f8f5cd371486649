"""
Circuit breaking HTTP transport used by the SCM adapters.

The adapters only ever call :meth:`Breaker.execute` and :meth:`Breaker.stats`,
any object providing those (plus ``close``) can be injected instead.
"""

import asyncio
from time import monotonic
from typing import Any

import aiohttp
from pydantic import BaseModel
from sanic.log import logger

from scm_bridge import metrics
from scm_bridge.config import Config
from scm_bridge.exceptions import CircuitOpenError


class HttpRequest(BaseModel):
    url: str
    method: str = "GET"
    token: str | None = None
    json_body: dict[str, Any] | None = None
    # return the body as text even for JSON responses
    raw: bool = False
    # metrics label of the calling operation
    name: str = "unknown"


class HttpResponse(BaseModel):
    status_code: int
    body: Any = None


class BreakerStats(BaseModel):
    total: int = 0
    failures: int = 0
    rejected: int = 0
    concurrent: int = 0
    consecutive_failures: int = 0
    is_open: bool = False


class Breaker:
    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        max_failures: int = 5,
        reset_timeout: float = 30.0,
        timeout: float = 10.0,
    ):
        self.session = session
        self._owns_session = session is None
        self.max_failures = max_failures
        self.reset_timeout = reset_timeout
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._stats = BreakerStats()
        self._opened_at: float | None = None
        self._trial_in_flight = False

    @classmethod
    def from_config(
        cls, config: Config, session: aiohttp.ClientSession | None = None
    ) -> "Breaker":
        return cls(
            session,
            max_failures=config.BREAKER_MAX_FAILURES,
            reset_timeout=config.BREAKER_RESET_TIMEOUT,
            timeout=config.REQUEST_TIMEOUT,
        )

    @property
    def is_open(self) -> bool:
        return self._opened_at is not None

    def stats(self) -> BreakerStats:
        return self._stats.model_copy(update={"is_open": self.is_open})

    async def close(self):
        if self._owns_session and self.session is not None:
            logger.debug("Closing aiohttp session")
            await self.session.close()
            self.session = None

    def _admit(self, request: HttpRequest) -> bool:
        """Check whether a request may pass, returns True for a half-open trial."""
        if self._opened_at is None:
            return False

        if (
            not self._trial_in_flight
            and monotonic() - self._opened_at >= self.reset_timeout
        ):
            logger.debug("Circuit half-open, admitting trial request %s", request.url)
            self._trial_in_flight = True
            return True

        self._stats.rejected += 1
        raise CircuitOpenError(
            f"Circuit is open, rejected {request.method} {request.url}"
        )

    def _record_success(self):
        self._stats.consecutive_failures = 0
        if self._opened_at is not None:
            logger.info("Circuit closed again")
            self._opened_at = None
            metrics.breaker_open.set(0)

    def _record_failure(self, trial: bool):
        self._stats.failures += 1
        self._stats.consecutive_failures += 1
        if trial or (
            self._opened_at is None
            and self._stats.consecutive_failures >= self.max_failures
        ):
            logger.warning(
                "Opening circuit after %d consecutive failures",
                self._stats.consecutive_failures,
            )
            self._opened_at = monotonic()
            metrics.breaker_open.set(1)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            logger.debug("Creating aiohttp session")
            self.session = aiohttp.ClientSession()
        return self.session

    async def execute(self, request: HttpRequest) -> HttpResponse:
        trial = self._admit(request)

        headers = {"Accept": "application/json"}
        if request.token is not None:
            headers["Authorization"] = f"Bearer {request.token}"

        self._stats.total += 1
        self._stats.concurrent += 1
        try:
            session = await self._get_session()
            logger.debug("%s %s", request.method, request.url)
            with metrics.track_api_call(request.name, request.method):
                async with session.request(
                    request.method,
                    request.url,
                    headers=headers,
                    json=request.json_body,
                    timeout=self.timeout,
                ) as resp:
                    if not request.raw and resp.content_type == "application/json":
                        body = await resp.json()
                    else:
                        body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Request %s %s failed: %s", request.method, request.url, e)
            self._record_failure(trial)
            raise
        else:
            self._record_success()
        finally:
            self._stats.concurrent -= 1
            if trial:
                self._trial_in_flight = False

        metrics.api_calls_total.labels(
            request.name, request.method, str(resp.status)
        ).inc()
        return HttpResponse(status_code=resp.status, body=body)

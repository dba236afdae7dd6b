"""Keep-alive pinger.

Some hosting platforms idle a web service after a period without traffic. When
enabled, the service calls its own public `/health` endpoint on a cron schedule.
"""

from __future__ import annotations

import httpx
import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from contact_identity.config import Settings, get_settings

logger = structlog.get_logger()


class KeepAlivePinger:
    """Scheduled GET against `{base_url}/health`."""

    def __init__(self, base_url: str, *, cron: str, timeout_seconds: float = 10.0) -> None:
        self._url = base_url.rstrip("/") + "/health"
        self._cron = cron
        self._timeout_seconds = timeout_seconds
        self._scheduler = AsyncIOScheduler()

    @property
    def url(self) -> str:
        return self._url

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.add_job(
                self.ping,
                CronTrigger.from_crontab(self._cron),
                id="keepalive_ping",
                replace_existing=True,
            )
            self._scheduler.start()
            logger.info("Keep-alive ping scheduled", url=self._url, cron=self._cron)

    async def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Keep-alive ping stopped")

    async def ping(self) -> bool:
        """Ping once. Failures are logged, never raised."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.get(self._url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Keep-alive ping failed", url=self._url, error=str(exc))
            return False
        logger.info("Keep-alive ping successful", status_code=response.status_code)
        return True


# Global instance
_pinger: KeepAlivePinger | None = None


def build_pinger(settings: Settings) -> KeepAlivePinger | None:
    """Return a pinger when keep-alive is enabled and configured, else None."""
    if not settings.keepalive_enabled or settings.environment == "test":
        return None
    if not settings.keepalive_url:
        logger.warning("Keep-alive enabled but KEEPALIVE_URL is not set")
        return None
    return KeepAlivePinger(
        settings.keepalive_url,
        cron=settings.keepalive_cron,
        timeout_seconds=settings.keepalive_timeout_seconds,
    )


async def init_keepalive() -> bool:
    """Start the global pinger if configured. Returns whether it started."""
    global _pinger
    _pinger = build_pinger(get_settings())
    if _pinger is None:
        return False
    await _pinger.start()
    return True


async def shutdown_keepalive() -> None:
    global _pinger
    if _pinger is not None:
        await _pinger.shutdown()
        _pinger = None

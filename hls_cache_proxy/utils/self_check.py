import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from hls_cache_proxy.configs import settings

logger = logging.getLogger(__name__)


class SelfCheckMonitor:
    """Periodically polls the server's own liveness endpoint and logs the outcome."""

    def __init__(self, url: str = None, interval: int = None, timeout: int = None):
        self.url = url or f"http://localhost:{settings.port}/self-check"
        self.interval = settings.self_check_interval if interval is None else interval
        self.timeout = settings.self_check_timeout if timeout is None else timeout
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start the polling task if it is enabled and not already running."""
        if self.interval <= 0:
            logger.info("Self-check disabled")
            return
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._self_check_loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def check_once(self, client: httpx.AsyncClient) -> bool:
        """
        Poll the liveness endpoint once.

        Returns:
            bool: Whether the endpoint answered successfully.
        """
        try:
            response = await client.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"SELF CHECK FAILED: {e!r}")
            return False
        logger.info(f"Self-check OK: {datetime.now(timezone.utc).isoformat()}")
        return True

    async def _self_check_loop(self) -> None:
        async with httpx.AsyncClient() as client:
            while True:
                try:
                    await asyncio.sleep(self.interval)
                    await self.check_once(client)
                except asyncio.CancelledError:
                    return
                except Exception as e:
                    logger.warning(f"Self-check loop error: {e}")


self_check_monitor = SelfCheckMonitor()

"""
ServerLauncher — wakes the backend before the client uses it.

The launch endpoint answers `{"status": "launched"}` once it has started
the backend; the server is then given a fixed settle delay before the
server-ready latch is set. In local mode no request is made.
"""

import asyncio
import logging
from typing import Optional

import httpx

import config
from core.readiness import Latch

logger = logging.getLogger(__name__)


class ServerLauncher:
    """One-shot provisioning call that sets the server-ready latch."""

    def __init__(
        self,
        latch: Latch,
        launch_url: str = config.LAUNCH_URL,
        settle_seconds: float = config.LAUNCH_SETTLE_SECONDS,
        simulate: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            latch: Latch to set once the server is ready.
            launch_url: Endpoint to POST to.
            settle_seconds: Delay after launch before the server counts as ready.
            simulate: Skip the request and only wait (local testing).
            http_client: Client to use instead of a fresh httpx.AsyncClient.
        """
        self.latch = latch
        self.launch_url = launch_url
        self.settle_seconds = settle_seconds
        self.simulate = simulate
        self._http_client = http_client

    async def run(self) -> bool:
        """
        Launch (or simulate launching) the server.

        Returns:
            True if the latch was set, False if launching failed.
        """
        if self.simulate:
            logger.info(f"Simulating backend launch wait ({self.settle_seconds:g} seconds)...")
        else:
            result = await self._request_launch()
            if result is None:
                return False
            logger.info(f"Launch result: {result}")
            if result.get("status") != "launched":
                logger.warning(f"Launch endpoint did not report 'launched': {result}")
                return False
            logger.info(f"Launch initiated, waiting {self.settle_seconds:g} seconds...")

        await asyncio.sleep(self.settle_seconds)
        self.latch.set()
        return True

    async def _request_launch(self) -> Optional[dict]:
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.launch_url)
            else:
                async with httpx.AsyncClient(timeout=config.LAUNCH_REQUEST_TIMEOUT) as client:
                    response = await client.post(self.launch_url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Server failed to launch: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Unexpected launch response: {data!r}")
            return None
        return data

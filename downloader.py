"""
Downloader - Single GET with streamed body accumulation and outcome classification
"""
import asyncio
import logging
from typing import Optional, Set

from curl_cffi import CurlError

from errors import TransientFetchFailure
from models import FetchResult
from session_manager import SessionFactory

logger = logging.getLogger(__name__)


class Downloader:
    """
    Issues provider requests one at a time:
    - 200 returns the whole body
    - 429 and transport failures come back as aborted, the caller must not retry
    - any other status raises TransientFetchFailure for the attempt loop
    """

    RATE_LIMITED_STATUS = 429

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory
        self._active: Optional[asyncio.Task] = None
        self._aborted: Set[asyncio.Task] = set()

    @property
    def busy(self) -> bool:
        return self._active is not None and not self._active.done()

    def abort(self):
        """Cancel the transport operation behind the outstanding fetch"""
        if not self.busy:
            return
        task = self._active
        logger.debug("[Downloader] Aborting outstanding fetch")
        self._aborted.add(task)
        task.cancel()

    async def fetch(self, url: str) -> FetchResult:
        self.abort()

        task = asyncio.get_running_loop().create_task(self._download(url))
        self._active = task
        try:
            return await task
        except asyncio.CancelledError:
            if task not in self._aborted:
                raise
            logger.debug(f"[Downloader] Fetch aborted: {url}")
            return FetchResult(aborted=True)
        finally:
            self._aborted.discard(task)
            if self._active is task:
                self._active = None

    async def _download(self, url: str) -> FetchResult:
        session = await self.session_factory.get_session()
        logger.debug(f"[Downloader] GET {url}")

        try:
            resp = await session.get(url, stream=True)
        except CurlError as e:
            logger.debug(f"[Downloader] Transport failure: {e}")
            return FetchResult(aborted=True)

        try:
            status_code = resp.status_code
            logger.debug(f"[Downloader] Response code: {status_code}")

            if status_code == self.RATE_LIMITED_STATUS:
                logger.warning("[Downloader] Rate limited by provider")
                return FetchResult(aborted=True)

            if status_code != 200:
                raise TransientFetchFailure(
                    f"could not download data: HTTP {status_code}",
                    status_code=status_code
                )

            chunks = []
            try:
                async for chunk in resp.aiter_content():
                    if chunk:
                        logger.debug(f"[Downloader] Got chunk of data, length: {len(chunk)}")
                        chunks.append(chunk)
            except CurlError as e:
                logger.debug(f"[Downloader] Transport failure while reading body: {e}")
                return FetchResult(aborted=True)

            body = b"".join(chunks).decode("utf-8", errors="replace")
            return FetchResult(body=body)
        finally:
            await resp.aclose()

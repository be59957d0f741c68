"""
Session Manager - Lazily built curl_cffi session shared by all provider requests
"""
import logging
from typing import Optional, Dict
from curl_cffi.requests import AsyncSession
from config import ResolverConfig

logger = logging.getLogger(__name__)


class SessionFactory:
    """
    Builds one AsyncSession with consistent headers, TLS fingerprint
    and proxy configuration, and a fixed per-request timeout.
    """

    def __init__(
        self,
        impersonate: str = ResolverConfig.IMPERSONATE,
        proxy: Optional[str] = None,
        timeout: float = ResolverConfig.CONNECT_TIMEOUT
    ):
        self.impersonate = impersonate
        self.proxy = proxy
        self.timeout = timeout
        self._current_session: Optional[AsyncSession] = None

    def _build_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": ResolverConfig.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def create_session(self) -> AsyncSession:
        session = AsyncSession(
            impersonate=self.impersonate,
            headers=self._build_headers(),
            proxies={"http": self.proxy, "https": self.proxy} if self.proxy else None,
            timeout=self.timeout
        )
        logger.debug(f"[Session] Created session ({self.impersonate})")
        self._current_session = session
        return session

    async def get_session(self) -> AsyncSession:
        """
        Get current session, creating if needed.
        """
        if self._current_session is None:
            return await self.create_session()
        return self._current_session

    async def close(self):
        """Clean shutdown"""
        if self._current_session:
            await self._current_session.close()
            self._current_session = None

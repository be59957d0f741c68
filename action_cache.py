"""
Action Cache - Durable decipher actions keyed by player id
Survives restarts so a known player version never triggers a script download
"""
import asyncio
import logging
import os
import re
from typing import Optional, Set

from config import ResolverConfig
from models import TransformProgram

logger = logging.getLogger(__name__)

_PLAYER_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


class ActionCache:
    """
    One file per player id under ``<cache-root>/<app-id>/yt-sig/``.
    Writes are best-effort and never surface errors to the resolver.
    """

    def __init__(
        self,
        cache_dir: Optional[str] = None,
        enabled: bool = ResolverConfig.ENABLE_ACTION_CACHE
    ):
        self.cache_dir = cache_dir or ResolverConfig.cache_dir()
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    def _path(self, player_id: str) -> Optional[str]:
        if not player_id or not _PLAYER_ID_RE.match(player_id):
            return None
        return os.path.join(self.cache_dir, player_id)

    def load(self, player_id: str) -> Optional[TransformProgram]:
        """Read cached actions from disk; raises on unreadable or empty entries"""
        filepath = self._path(player_id)
        if filepath is None or not os.path.exists(filepath):
            logger.debug(f"[ActionCache] No such cache file: {player_id}")
            return None

        with open(filepath, "rb") as f:
            data = f.read()

        if not data:
            raise ValueError(f"actions cache file is empty: {player_id}")

        return data.decode("utf-8")

    def save(self, player_id: str, program: TransformProgram):
        """Write actions to disk, creating the cache directories on first use"""
        filepath = self._path(player_id)
        if filepath is None:
            raise ValueError(f"invalid player id: {player_id!r}")

        os.makedirs(self.cache_dir, exist_ok=True)

        temp_path = filepath + ".tmp"
        with open(temp_path, "wb") as f:
            f.write(program.encode("utf-8"))
        os.replace(temp_path, filepath)

    async def get(self, player_id: str) -> Optional[TransformProgram]:
        """Cached actions for player_id, or None on miss or unreadable entry"""
        if not self.enabled:
            return None

        logger.debug("[ActionCache] Checking decipher actions from cache file")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.load, player_id)
        except (OSError, ValueError) as e:
            logger.warning(f"[ActionCache] Ignoring cache file {player_id}: {e}")
            return None

    async def put(self, player_id: str, program: TransformProgram):
        if not self.enabled:
            return

        logger.debug("[ActionCache] Saving cipher actions to cache file")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.save, player_id, program)
        except (OSError, ValueError) as e:
            logger.warning(f"[ActionCache] Could not save cache file {player_id}: {e}")
            return

        logger.debug(f"[ActionCache] Saved cache file: {player_id}")

    def schedule_put(self, player_id: str, program: TransformProgram) -> asyncio.Task:
        """Persist in the background; the caller never awaits the write"""
        task = asyncio.get_running_loop().create_task(self.put(player_id, program))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self):
        """Wait for background writes, used on shutdown"""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

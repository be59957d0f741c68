"""
Player Artifacts - Finds the player script for a video and obtains its decipher actions
Lookup order: in-memory slot, action cache on disk, fresh extraction from the script
"""
import re
import logging
from typing import Callable, Optional

from action_cache import ActionCache
from cipher_engine import CipherEngine
from cipher_keys import is_absolute_uri
from config import ResolverConfig
from downloader import Downloader
from errors import (
    Aborted,
    CipherExtractionFailed,
    MalformedPlayerUri,
    TransientFetchFailure,
)
from models import CachedTransform, ResolverState, TransformProgram

logger = logging.getLogger(__name__)

PLAYER_PATH_RE = re.compile(r'jsUrl"\s*:\s*"([^"]*)"')
HEX_SEGMENT_RE = re.compile(r"^[0-9a-fA-F]+$")


def extract_player_path(body: str) -> Optional[str]:
    """Player script path from the jsUrl marker of an embed page"""
    match = PLAYER_PATH_RE.search(body or "")
    if not match or not match.group(1):
        return None
    return match.group(1).replace(r'\/', '/')


def build_player_uri(player_path: str) -> str:
    return f"{ResolverConfig.PROVIDER_BASE}{player_path}"


def is_valid_player_uri(player_uri: str) -> bool:
    """Well-formed absolute URI whose path starts right after the provider host"""
    if not player_uri.startswith(ResolverConfig.PROVIDER_BASE + "/"):
        return False
    if player_uri.startswith(ResolverConfig.PROVIDER_BASE + "//"):
        return False
    if any(ch.isspace() for ch in player_uri):
        return False
    return is_absolute_uri(player_uri)


def player_id_from_path(player_path: str) -> Optional[str]:
    """First hex-looking segment, e.g. 'a1b2c3d4' in /s/player/a1b2c3d4/.../base.js"""
    for segment in player_path.split("/"):
        if HEX_SEGMENT_RE.match(segment):
            return segment
    return None


class PlayerArtifactManager:
    """
    Obtains decipher actions while keeping provider requests to a minimum.
    Actions change rarely, so the remembered program is reused whenever present.
    """

    def __init__(
        self,
        downloader: Downloader,
        action_cache: ActionCache,
        engine: CipherEngine
    ):
        self.downloader = downloader
        self.action_cache = action_cache
        self.engine = engine

    async def _fetch_body(self, url: str, what: str) -> str:
        result = await self.downloader.fetch(url)
        if result.aborted:
            raise Aborted(f"{what} download aborted")
        if not result.body:
            raise TransientFetchFailure(f"could not download {what} body")
        return result.body

    async def obtain_program(
        self,
        video_id: str,
        state: ResolverState,
        ensure_current: Optional[Callable[[], None]] = None
    ) -> TransformProgram:
        """
        ensure_current is called after every suspension and raises when the
        resolution asking for the program has been superseded.
        """
        def checkpoint():
            if ensure_current is not None:
                ensure_current()

        if state.cached_transform is not None:
            logger.debug("[PlayerArtifact] Using remembered decipher actions")
            return state.cached_transform.program

        embed_uri = f"{ResolverConfig.PROVIDER_BASE}/embed/{video_id}"
        embed_body = await self._fetch_body(embed_uri, "embed")
        checkpoint()

        player_path = extract_player_path(embed_body)
        if not player_path:
            raise MalformedPlayerUri("could not find player URI")

        player_uri = build_player_uri(player_path)
        if not is_valid_player_uri(player_uri):
            raise MalformedPlayerUri(f"misformed player URI: {player_uri}")

        player_id = player_id_from_path(player_path)
        if not player_id:
            raise MalformedPlayerUri(f"no player id in URI: {player_uri}")

        logger.debug(f"[PlayerArtifact] Found player URI: {player_uri}")

        program = await self.action_cache.get(player_id)
        checkpoint()
        if program:
            logger.debug(f"[PlayerArtifact] Using cached actions for player {player_id}")
        else:
            script_body = await self._fetch_body(player_uri, "player")
            checkpoint()
            program = self.engine.extract_actions(script_body)
            if not program:
                raise CipherExtractionFailed(f"could not extract decipher actions: {player_id}")

            logger.info(f"[PlayerArtifact] Extracted decipher actions for player {player_id}")
            self.action_cache.schedule_put(player_id, program)

        if state.cached_transform is None or state.cached_transform.player_id != player_id:
            state.cached_transform = CachedTransform(player_id=player_id, program=program)

        return program

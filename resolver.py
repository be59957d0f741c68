"""
Info Resolver - Turns a video id into deciphered, directly fetchable stream URLs

Coordinates the metadata fetch, playability checks, decipher actions lookup and
stream deciphering, while keeping provider requests to a minimum:
- callers asking for the video already being resolved share its outcome
- the last resolved video is answered from memory
- a different video preempts the resolution in progress
"""
import asyncio
import json
import logging
from typing import Callable, List, Optional
from urllib.parse import parse_qs, urlencode

from cipher_engine import CipherEngine
from cipher_keys import decipher_streaming_data
from config import ResolverConfig
from downloader import Downloader
from errors import (
    Aborted,
    DecipherFailed,
    NotPlayable,
    TransientFetchFailure,
    UnrecognizedStreamShape,
)
from models import ResolverState, StreamingData, VideoInfo
from player_artifacts import PlayerArtifactManager
from retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

InfoResolvedCallback = Callable[[bool], None]


def video_info_url(video_id: str) -> str:
    query = urlencode({
        "video_id": video_id,
        "el": "embedded",
        "eurl": f"{ResolverConfig.EMBED_REFERER_BASE}/{video_id}",
    })
    return f"{ResolverConfig.PROVIDER_BASE}/get_video_info?{query}"


def parse_video_info(body: str) -> VideoInfo:
    """
    Decode the player_response field of a get_video_info body.
    Anything unusable raises TransientFetchFailure so the attempt is retried.
    """
    if not body:
        raise TransientFetchFailure("empty video info body")

    player_response = parse_qs(body).get("player_response", [None])[0]
    if not player_response:
        raise TransientFetchFailure("no player response in query")

    try:
        return VideoInfo(**json.loads(player_response))
    except (ValueError, TypeError) as e:
        raise TransientFetchFailure(f"could not parse video info JSON: {e}")


def needs_decipher(streaming_data: StreamingData) -> bool:
    """Check only the first stream, the provider ciphers all or none"""
    # Videos without combined formats are judged by their first adaptive stream
    formats = streaming_data.formats or streaming_data.adaptive_formats
    if not formats:
        return False

    first = formats[0]
    if first.url:
        return False
    if first.cipher_query:
        return True

    raise UnrecognizedStreamShape("no url or cipher in streams")


class InfoResolver:
    """
    Resolves one video at a time. All mutable data lives in self.state,
    which is never shared with other resolver instances.
    """

    def __init__(
        self,
        downloader: Downloader,
        player_manager: PlayerArtifactManager,
        engine: CipherEngine,
        max_attempts: int = ResolverConfig.MAX_ATTEMPTS
    ):
        self.downloader = downloader
        self.player_manager = player_manager
        self.engine = engine
        self.max_attempts = max_attempts
        self.state = ResolverState()
        self._listeners: List[InfoResolvedCallback] = []

    # === info-resolved event ===

    def connect(self, callback: InfoResolvedCallback):
        """Subscribe to info-resolved, called with True on success"""
        self._listeners.append(callback)

    def disconnect(self, callback: InfoResolvedCallback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit_info_resolved(self, success: bool):
        for callback in list(self._listeners):
            try:
                callback(success)
            except Exception:
                logger.exception("[Resolver] info-resolved listener failed")

    # === Public API ===

    async def resolve(self, video_id: str) -> VideoInfo:
        state = self.state

        # Same video already in progress, share its outcome
        if state.in_flight_video_id == video_id:
            return await self._wait_for_current()

        # Do not redownload info for the same video
        if state.matches_last_info(video_id):
            logger.debug(f"[Resolver] Reusing info of last video: {video_id}")
            return state.last_info

        if state.in_flight_video_id is not None:
            logger.info(
                f"[Resolver] Preempting {state.in_flight_video_id} in favour of {video_id}"
            )
            self.downloader.abort()

        return await self._run(video_id)

    @staticmethod
    def best_combined_uri(info: VideoInfo) -> Optional[str]:
        """URL of the last combined (audio+video) format, if usable"""
        if info.streaming_data is None or not info.streaming_data.formats:
            return None

        combined = info.streaming_data.formats[-1]
        if not combined.url:
            return None

        return combined.url

    # === Resolution pipeline ===

    async def _wait_for_current(self) -> VideoInfo:
        logger.debug("[Resolver] Resolving after current download finishes")
        waiter = asyncio.get_running_loop().create_future()
        self.state.waiters.append(waiter)
        return await waiter

    async def _run(self, video_id: str) -> VideoInfo:
        state = self.state
        waiters: List[asyncio.Future] = []
        state.in_flight_video_id = video_id
        state.waiters = waiters

        try:
            info = await RetryPolicy.with_retry(
                lambda: self._attempt(video_id, waiters),
                max_attempts=self.max_attempts,
                operation_name=f"video info {video_id}"
            )
        except asyncio.CancelledError:
            self._finish(video_id, waiters, error=Aborted("resolution cancelled"))
            raise
        except Exception as e:
            logger.warning(f"[Resolver] Could not obtain video info for {video_id}: {e}")
            self._finish(video_id, waiters, error=e)
            raise

        logger.info(f"[Resolver] Resolved {video_id}")
        self._finish(video_id, waiters, info=info)
        return info

    def _ensure_current(self, video_id: str, waiters: List[asyncio.Future]):
        """Raise Aborted once another video took over the in-flight slot"""
        if self.state.waiters is not waiters:
            raise Aborted(f"resolution of {video_id} was preempted")

    async def _attempt(self, video_id: str, waiters: List[asyncio.Future]) -> VideoInfo:
        state = self.state
        self._ensure_current(video_id, waiters)

        logger.debug(f"[Resolver] Obtaining video info: {video_id}")
        result = await self.downloader.fetch(video_info_url(video_id))
        if result.aborted:
            raise Aborted("download aborted")
        self._ensure_current(video_id, waiters)

        info = parse_video_info(result.body)
        info.video_id = video_id

        if info.playability_status is None or info.playability_status.status != "OK":
            state.last_info = None
            reason = info.playability_status.reason if info.playability_status else None
            raise NotPlayable(f"video is not playable: {reason or 'no reason given'}")
        if info.streaming_data is None:
            state.last_info = None
            raise NotPlayable("video response data is missing streaming data")

        if needs_decipher(info.streaming_data):
            logger.debug("[Resolver] Video requires deciphering")
            program = await self.player_manager.obtain_program(
                video_id, state, ensure_current=lambda: self._ensure_current(video_id, waiters)
            )
            try:
                decipher_streaming_data(info.streaming_data, program, self.engine)
            except DecipherFailed:
                # Remembered actions may belong to a rotated player version
                state.cached_transform = None
                raise

        return info

    def _finish(
        self,
        video_id: str,
        waiters: List[asyncio.Future],
        info: Optional[VideoInfo] = None,
        error: Optional[BaseException] = None
    ):
        """Terminal transition: store result, release in-flight slot, notify waiters"""
        state = self.state
        success = error is None

        # A preempting resolution owns the slot by now, leave it alone
        if state.in_flight_video_id == video_id and state.waiters is waiters:
            if success:
                state.last_info = info
            state.in_flight_video_id = None
            state.waiters = []

        for waiter in waiters:
            if waiter.done():
                continue
            if success:
                waiter.set_result(info)
            else:
                waiter.set_exception(error)

        self._emit_info_resolved(success)

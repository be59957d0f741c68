"""
Resolver Main - Orchestration layer wiring the resolver components together
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Iterable, Optional

from action_cache import ActionCache
from cipher_engine import CipherEngine, PatternCipherEngine
from config import ResolverConfig
from downloader import Downloader
from errors import ResolveError
from models import VideoInfo
from player_artifacts import PlayerArtifactManager
from resolver import InfoResolver
from session_manager import SessionFactory
from uri_parser import parse_uri

logger = logging.getLogger(__name__)


class ResolverOrchestrator:
    """
    High-level entry point that owns one session and one resolver.
    This is what you'd use in production.
    """

    def __init__(
        self,
        proxy: Optional[str] = None,
        cache_dir: Optional[str] = None,
        engine: Optional[CipherEngine] = None,
        session_factory: Optional[SessionFactory] = None
    ):
        self.session_factory = session_factory or SessionFactory(proxy=proxy)
        self.downloader = Downloader(self.session_factory)
        self.action_cache = ActionCache(cache_dir=cache_dir)
        self.engine = engine or PatternCipherEngine()

        self.player_manager = PlayerArtifactManager(
            downloader=self.downloader,
            action_cache=self.action_cache,
            engine=self.engine
        )

        self.resolver = InfoResolver(
            downloader=self.downloader,
            player_manager=self.player_manager,
            engine=self.engine
        )

    async def resolve(self, video_id: str) -> VideoInfo:
        return await self.resolver.resolve(video_id)

    async def resolve_uri(self, uri: str) -> Optional[str]:
        """
        Parse a user supplied URI and return the best combined stream URL.
        Raises ValueError for URIs that do not point at a video.
        """
        found, video_id = parse_uri(uri)
        if not found:
            raise ValueError(f"not a YouTube video URI: {uri}")

        info = await self.resolver.resolve(video_id)
        return self.resolver.best_combined_uri(info)

    async def close(self):
        """Cleanup all resources"""
        await self.action_cache.drain()
        await self.session_factory.close()


def _parse_args(argv: Optional[Iterable[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="yt-resolve",
        description="Resolve YouTube URIs into directly fetchable stream URLs."
    )
    parser.add_argument("uris", nargs="+", help="Watch, embed, youtu.be or yt:// URIs.")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full resolved video info instead of the best stream URL."
    )
    parser.add_argument("--proxy", default=None, help="HTTP(S) proxy for provider requests.")
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory for decipher actions (default: user cache dir)."
    )
    parser.add_argument(
        "--log-level",
        default=ResolverConfig.LOG_LEVEL,
        help="Logging level (default: %(default)s)."
    )
    return parser.parse_args(list(argv) if argv is not None else None)


async def run(args: argparse.Namespace) -> int:
    orchestrator = ResolverOrchestrator(proxy=args.proxy, cache_dir=args.cache_dir)
    exit_code = 0

    try:
        for uri in args.uris:
            found, video_id = parse_uri(uri)
            if not found:
                print(f"error: not a YouTube video URI: {uri}", file=sys.stderr)
                exit_code = max(exit_code, 2)
                continue

            try:
                info = await orchestrator.resolve(video_id)
            except ResolveError as e:
                print(f"error: {video_id}: {type(e).__name__}: {e}", file=sys.stderr)
                exit_code = max(exit_code, 1)
                continue

            if args.json:
                print(json.dumps(info.model_dump(by_alias=True, exclude_none=True), indent=2))
            else:
                print(InfoResolver.best_combined_uri(info) or "")
    finally:
        await orchestrator.close()

    return exit_code


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = _parse_args(argv)
    ResolverConfig.setup_logging(args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())

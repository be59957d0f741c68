"""Shared fakes standing in for the curl_cffi session.

Routes map URL prefixes to queued responses; the last queued response repeats.
A route can be gated on an asyncio.Event to keep a request in flight.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from action_cache import ActionCache
from cipher_engine import PatternCipherEngine
from config import ResolverConfig
from downloader import Downloader
from player_artifacts import PlayerArtifactManager
from resolver import InfoResolver, video_info_url
from test_fixtures import FIXTURE_BASE_JS, FIXTURE_EMBED_HTML, PLAYER_PATH

BASE = ResolverConfig.PROVIDER_BASE


class FakeResponse:
    def __init__(self, status_code: int = 200, body: str = "", chunk_size: int = 64) -> None:
        self.status_code = status_code
        self.body = body
        self.chunk_size = chunk_size
        self.closed = False

    async def aiter_content(self):
        data = self.body.encode("utf-8")
        for start in range(0, len(data), self.chunk_size):
            yield data[start:start + self.chunk_size]

    async def aclose(self) -> None:
        self.closed = True


class FakeSession:
    def __init__(self) -> None:
        self.routes: Dict[str, List[object]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.requests: List[str] = []
        self.cancelled: List[str] = []
        self.events: List[tuple] = []

    def add(self, prefix: str, *responses: object) -> None:
        self.routes.setdefault(prefix, []).extend(responses)

    def gate(self, prefix: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[prefix] = event
        return event

    def count(self, prefix: str) -> int:
        return sum(1 for url in self.requests if url.startswith(prefix))

    async def get(self, url: str, stream: bool = False) -> FakeResponse:
        self.requests.append(url)
        self.events.append(("get", url))
        for prefix, queue in self.routes.items():
            if not url.startswith(prefix):
                continue
            gate = self.gates.get(prefix)
            if gate is not None:
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    self.cancelled.append(url)
                    self.events.append(("cancelled", url))
                    raise
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, BaseException):
                raise item
            return item
        return FakeResponse(404)

    async def close(self) -> None:
        pass


class FakeSessionFactory:
    def __init__(self, session: FakeSession) -> None:
        self.session = session

    async def get_session(self) -> FakeSession:
        return self.session

    async def close(self) -> None:
        pass


def info_prefix(video_id: str) -> str:
    return video_info_url(video_id)


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def downloader(session: FakeSession) -> Downloader:
    return Downloader(FakeSessionFactory(session))


@pytest.fixture()
def action_cache(tmp_path: Path) -> ActionCache:
    return ActionCache(cache_dir=str(tmp_path / "cache" / "yt-sig"))


@pytest.fixture()
def engine() -> PatternCipherEngine:
    return PatternCipherEngine()


@pytest.fixture()
def player_routes(session: FakeSession) -> FakeSession:
    """Embed page and player script for any video id"""
    session.add(f"{BASE}/embed/", FakeResponse(200, FIXTURE_EMBED_HTML))
    session.add(f"{BASE}{PLAYER_PATH}", FakeResponse(200, FIXTURE_BASE_JS))
    return session


@pytest.fixture()
def resolver(
    downloader: Downloader,
    action_cache: ActionCache,
    engine: PatternCipherEngine,
) -> InfoResolver:
    manager = PlayerArtifactManager(downloader=downloader, action_cache=action_cache, engine=engine)
    return InfoResolver(downloader=downloader, player_manager=manager, engine=engine)


def make_resolver(
    session: FakeSession,
    cache_dir: str,
    engine: Optional[object] = None,
) -> InfoResolver:
    engine = engine or PatternCipherEngine()
    downloader = Downloader(FakeSessionFactory(session))
    manager = PlayerArtifactManager(
        downloader=downloader,
        action_cache=ActionCache(cache_dir=cache_dir),
        engine=engine,
    )
    return InfoResolver(downloader=downloader, player_manager=manager, engine=engine)

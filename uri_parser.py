"""
URI Parser - Extracts a video id from the URI shapes the provider uses
"""
from typing import Optional, Tuple
from urllib.parse import urlsplit, parse_qs

WATCH_HOSTS = {"youtube.com", "www.youtube.com"}
SHORT_HOSTS = {"youtu.be"}
CUSTOM_SCHEMES = {"yt", "youtube"}


def _original_host(netloc: str) -> str:
    """Host part of a netloc exactly as written (no lowercasing)"""
    host = netloc.rpartition("@")[2]
    return host.split(":", 1)[0]


def parse_uri(uri: str) -> Tuple[bool, Optional[str]]:
    """
    Extract video id from a watch, embed, short or custom-scheme URI.

    Returns: (found, video_id)
    """
    try:
        parts = urlsplit(uri.strip())
    except ValueError:
        return (False, None)

    original_host = _original_host(parts.netloc)
    host = original_host.lower()
    scheme = parts.scheme.lower()
    segments = parts.path.split("/")
    video_id = None

    if host in WATCH_HOSTS:
        video_id = parse_qs(parts.query).get("v", [None])[0]
        if not video_id:
            # Embedded form: /embed/<id>
            video_id = segments[-1]
    elif host in SHORT_HOSTS:
        if len(segments) > 1:
            video_id = segments[1]
    elif scheme in CUSTOM_SCHEMES:
        # Id is case sensitive, so take it from the original URI
        video_id = original_host

    if not video_id:
        return (False, None)

    return (True, video_id)

"""
Resolver Configuration - Centralized settings for the info resolver
"""
import logging
import os
from typing import Optional


class ResolverConfig:
    """Resolver configuration with production defaults"""

    # === Network ===
    CONNECT_TIMEOUT = 5.0  # seconds, applied to every HTTP operation
    MAX_ATTEMPTS = 2  # attempts per resolution
    RETRY_BACKOFF = 0.0  # seconds, doubled each attempt; 0 retries immediately

    # === Provider ===
    PROVIDER_BASE = "https://www.youtube.com"
    EMBED_REFERER_BASE = "https://youtube.googleapis.com/v"
    IMPERSONATE = "chrome120"
    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # === Decipher Actions Cache ===
    APP_ID = "com.github.yt_resolver"
    CACHE_SUBDIR = "yt-sig"
    CACHE_ROOT = os.environ.get(
        "YT_RESOLVER_CACHE_DIR",
        os.environ.get("XDG_CACHE_HOME", os.path.join(os.path.expanduser("~"), ".cache")),
    )
    ENABLE_ACTION_CACHE = True

    # === Logging ===
    LOG_LEVEL = os.environ.get("YT_RESOLVER_LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

    @classmethod
    def cache_dir(cls, root: Optional[str] = None) -> str:
        """Directory holding one decipher actions file per player id"""
        return os.path.join(root or cls.CACHE_ROOT, cls.APP_ID, cls.CACHE_SUBDIR)

    @classmethod
    def setup_logging(cls, level: Optional[str] = None):
        """Configure root logging once for CLI use"""
        logging.basicConfig(
            level=(level or cls.LOG_LEVEL).upper(),
            format=cls.LOG_FORMAT,
        )

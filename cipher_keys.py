"""
Cipher Keys - Detects which signatureCipher query keys carry which role
and rebuilds playable stream URLs from them.

Cipher bundles look like ``s=<scrambled>&sp=sig&url=<encoded url>`` but the
provider renames the keys from time to time, so the roles are recognized by
the shape of their values instead of by name.
"""
import logging
import re
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlsplit

from errors import CipherRoleDetectionFailed, DecipherFailed
from models import CipherRoleMap, StreamFormat, StreamingData, TransformProgram

logger = logging.getLogger(__name__)

# Values of exactly this length belong to neither the cipher nor the signature role
ROLE_LENGTH_PIVOT = 32

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


def is_absolute_uri(value: str) -> bool:
    """True for a well-formed absolute URL (scheme and host present)"""
    if not value or not _SCHEME_RE.match(value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.netloc)


def parse_cipher_query(cipher_query: str) -> Dict[str, str]:
    """Decode a cipher bundle, keeping key order and the first value per key"""
    params: Dict[str, str] = {}
    for key, value in parse_qsl(cipher_query, keep_blank_values=True):
        params.setdefault(key, value)
    return params


class CipherKeyDetector:
    """Value-shape heuristics for the three cipher query roles"""

    @staticmethod
    def find_cipher_key(params: Dict[str, str]) -> Optional[str]:
        # A long value that is not an URI
        for key, value in params.items():
            if len(value) > ROLE_LENGTH_PIVOT and not is_absolute_uri(value):
                return key
        return None

    @staticmethod
    def find_sig_key(params: Dict[str, str]) -> Optional[str]:
        # A short value that is not an URI
        for key, value in params.items():
            if len(value) < ROLE_LENGTH_PIVOT and not is_absolute_uri(value):
                return key
        return None

    @staticmethod
    def find_url_key(params: Dict[str, str]) -> Optional[str]:
        for key, value in params.items():
            if is_absolute_uri(value):
                return key
        return None

    @staticmethod
    def detect(sample_cipher_query: str) -> CipherRoleMap:
        """
        Classify the keys of one sample cipher bundle.
        Raises CipherRoleDetectionFailed when any role stays unassigned.
        """
        logger.debug("[CipherKeys] Checking cipher query keys")
        params = parse_cipher_query(sample_cipher_query)

        cipher_key = CipherKeyDetector.find_cipher_key(params)
        if cipher_key is None:
            raise CipherRoleDetectionFailed("no stream cipher key name")

        sig_key = CipherKeyDetector.find_sig_key(params)
        if sig_key is None:
            raise CipherRoleDetectionFailed("no stream signature key name")

        url_key = CipherKeyDetector.find_url_key(params)
        if url_key is None:
            raise CipherRoleDetectionFailed("no stream URL key name")

        return CipherRoleMap(url_key=url_key, sig_key=sig_key, cipher_key=cipher_key)


def deciphered_url(
    stream: StreamFormat,
    program: TransformProgram,
    roles: CipherRoleMap,
    engine
) -> Optional[str]:
    """
    Build the playable URL of one ciphered stream.
    Returns None when the stream cannot be deciphered.
    """
    logger.debug(f"[CipherKeys] Deciphering stream itag={stream.itag}")

    cipher_query = stream.cipher_query
    if not cipher_query:
        return None

    params = parse_cipher_query(cipher_query)
    base_url = params.get(roles.url_key)
    cipher_value = params.get(roles.cipher_key)
    sig_name = params.get(roles.sig_key)

    if not base_url or not cipher_value or not sig_name:
        return None

    key = engine.decipher(cipher_value, program)
    if not key:
        return None

    return f"{base_url}&{sig_name}={key}"


def decipher_streaming_data(
    streaming_data: StreamingData,
    program: TransformProgram,
    engine
) -> Optional[CipherRoleMap]:
    """
    Set url on every combined and adaptive format, all or nothing.
    Role keys are detected once from any stream, they are shared by all of them.
    """
    formats = streaming_data.all_formats()
    if not formats:
        return None

    sample_query = formats[0].cipher_query
    if not sample_query:
        raise CipherRoleDetectionFailed("sample stream has no cipher query")

    roles = CipherKeyDetector.detect(sample_query)

    logger.debug("[CipherKeys] Deciphering streams")
    for stream in formats:
        url = deciphered_url(stream, program, roles, engine)
        if not url:
            raise DecipherFailed(f"undecipherable stream itag={stream.itag}")
        stream.url = url

    logger.debug("[CipherKeys] All streams deciphered")
    return roles

"""
Resolver Errors - Failure taxonomy for video info resolution
"""
from typing import Optional


class ResolveError(Exception):
    """Base class for every resolution failure"""

    retryable = False


class TransientFetchFailure(ResolveError):
    """Provider answered with an unexpected status or unusable body"""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class Aborted(ResolveError):
    """Rate limited, transport failure or preempted by another video"""


class NotPlayable(ResolveError):
    """Provider reports the video cannot be played"""


class UnrecognizedStreamShape(ResolveError):
    """Stream has neither a url nor a cipher field"""


class MalformedPlayerUri(ResolveError):
    """Player script path is missing or not rooted at the provider"""


class CipherExtractionFailed(ResolveError):
    """Decipher actions could not be extracted from the player script"""


class CipherRoleDetectionFailed(ResolveError):
    """Could not tell which cipher query keys hold url, signature and cipher"""


class DecipherFailed(ResolveError):
    """At least one stream could not be deciphered"""


class Exhausted(ResolveError):
    """Attempt budget consumed by transient failures"""

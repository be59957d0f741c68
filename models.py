"""
Resolver Data Models - Provider response schemas and resolver state
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Any

# Serialized decipher actions, specific to one player version
TransformProgram = str


class StreamFormat(BaseModel):
    """Represents a specific video/audio stream variant"""
    itag: int
    url: Optional[str] = None
    signature_cipher: Optional[str] = Field(None, alias="signatureCipher")
    cipher: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")
    bitrate: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[int] = None
    quality: Optional[str] = None
    content_length: Optional[int] = Field(None, alias="contentLength")

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def cipher_query(self) -> Optional[str]:
        """Query-encoded cipher bundle, whichever field the provider used"""
        return self.signature_cipher or self.cipher


class StreamingData(BaseModel):
    """Combined and adaptive stream descriptors"""
    formats: List[StreamFormat] = []
    adaptive_formats: List[StreamFormat] = Field(default_factory=list, alias="adaptiveFormats")
    expires_in_seconds: Optional[int] = Field(None, alias="expiresInSeconds")

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("formats", "adaptive_formats", mode="before")
    @classmethod
    def _missing_as_empty(cls, value):
        # Provider omits or nulls the lists for some videos
        return [] if value is None else value

    def all_formats(self) -> List[StreamFormat]:
        return [*self.formats, *self.adaptive_formats]


class PlayabilityStatus(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None

    class Config:
        extra = "allow"


class VideoDetails(BaseModel):
    """Standardized metadata for any YouTube video"""
    video_id: Optional[str] = Field(None, alias="videoId")
    title: Optional[str] = None
    length_seconds: Optional[int] = Field(None, alias="lengthSeconds")
    channel_id: Optional[str] = Field(None, alias="channelId")
    author: Optional[str] = None
    is_live_content: Optional[bool] = Field(None, alias="isLiveContent")

    class Config:
        populate_by_name = True
        extra = "allow"


class VideoInfo(BaseModel):
    """
    Player response for one video.
    video_id is stamped by the resolver with the id that was requested.
    """
    video_id: Optional[str] = None
    playability_status: Optional[PlayabilityStatus] = Field(None, alias="playabilityStatus")
    streaming_data: Optional[StreamingData] = Field(None, alias="streamingData")
    video_details: Optional[VideoDetails] = Field(None, alias="videoDetails")

    class Config:
        populate_by_name = True
        extra = "allow"


class CipherRoleMap(BaseModel):
    """Cipher query key names, valid for the player version that produced them"""
    url_key: str
    sig_key: str
    cipher_key: str


class CachedTransform(BaseModel):
    player_id: str
    program: TransformProgram


class FetchResult(BaseModel):
    """Outcome of a single GET that did not raise"""
    body: str = ""
    aborted: bool = False


class ResolverState(BaseModel):
    """
    Mutable state owned by exactly one InfoResolver.
    Never shared between resolver instances.
    """
    in_flight_video_id: Optional[str] = None
    last_info: Optional[VideoInfo] = None
    cached_transform: Optional[CachedTransform] = None
    waiters: List[Any] = []  # asyncio futures of callers coalesced on the in-flight id

    class Config:
        arbitrary_types_allowed = True

    def matches_last_info(self, video_id: str) -> bool:
        # TODO: compare against streamingData.expiresInSeconds once resolve time is recorded
        return self.last_info is not None and self.last_info.video_id == video_id

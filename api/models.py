"""
API models for spotiwidget.

This module defines Pydantic models for the Spotify Web API responses used by
the widget, the OAuth token record, and the NowPlaying snapshot published to
the interactive surface.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Width the widget renders artwork at; the closest remote image is chosen.
ARTWORK_TARGET_WIDTH = 300


class Image(BaseModel):
    """Image model."""
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class Artist(BaseModel):
    """Simplified artist model."""
    name: str
    id: Optional[str] = None


class Album(BaseModel):
    """Simplified album model."""
    name: str = ""
    images: List[Image] = Field(default_factory=list)


class Show(BaseModel):
    """Podcast show model."""
    name: str = ""
    publisher: str = ""
    images: List[Image] = Field(default_factory=list)


def pick_image_url(images: List[Image], target: int = ARTWORK_TARGET_WIDTH) -> Optional[str]:
    """
    Pick the image whose width is closest to the target width.

    Args:
        images: Candidate images (width may be unknown)
        target: Desired width in pixels

    Returns:
        URL of the best image, or None if there are no images
    """
    if not images:
        return None
    best = min(images, key=lambda img: abs((img.width or 0) - target))
    return best.url


class Track(BaseModel):
    """Track model."""
    type: Literal["track"] = "track"
    name: str
    id: Optional[str] = None
    artists: List[Artist] = Field(default_factory=list)
    album: Album = Field(default_factory=Album)
    is_local: bool = False

    @property
    def track_name(self) -> str:
        return self.name

    @property
    def artist_names(self) -> List[str]:
        return [artist.name for artist in self.artists]

    @property
    def album_name(self) -> Optional[str]:
        return self.album.name

    @property
    def artwork_url(self) -> Optional[str]:
        return pick_image_url(self.album.images)

    @property
    def primary_artist(self) -> str:
        """Name of the first credited artist, or an empty string."""
        return self.artists[0].name if self.artists else ""


class Episode(BaseModel):
    """Podcast episode model."""
    type: Literal["episode"] = "episode"
    name: str
    id: Optional[str] = None
    images: List[Image] = Field(default_factory=list)
    show: Show = Field(default_factory=Show)

    @property
    def track_name(self) -> str:
        return self.name

    @property
    def artist_names(self) -> List[str]:
        return [self.show.publisher]

    @property
    def album_name(self) -> Optional[str]:
        return self.show.name

    @property
    def artwork_url(self) -> Optional[str]:
        return pick_image_url(self.images)


PlayableItem = Annotated[Union[Track, Episode], Field(discriminator="type")]


class NowPlaying(BaseModel):
    """
    Snapshot of the current playback as shown by the widget.

    ``artwork_url`` is the remote (Spotify) artwork; ``artwork_path`` is a
    local file found by the artwork resolver when there is no remote artwork.
    """
    is_playing: bool = False
    track_name: Optional[str] = None
    artists: List[str] = Field(default_factory=list)
    album: Optional[str] = None
    artwork_url: Optional[str] = None
    artwork_path: Optional[str] = None

    @classmethod
    def empty(cls) -> "NowPlaying":
        """Snapshot published when nothing is playing."""
        return cls()

    @property
    def display_artists(self) -> str:
        return ", ".join(self.artists)


class CurrentlyPlaying(BaseModel):
    """Currently-playing context returned by the player endpoint."""
    is_playing: bool = False
    progress_ms: Optional[int] = None
    currently_playing_type: Optional[str] = None
    item: Optional[PlayableItem] = None

    @field_validator("item", mode='before')
    def validate_item(cls, v):
        """Treat item types the widget does not know (ads, unknown) as no item."""
        if isinstance(v, dict) and v.get("type") not in ("track", "episode"):
            return None
        return v

    def to_now_playing(self) -> NowPlaying:
        """Build a NowPlaying snapshot from either kind of playable item."""
        if self.item is None:
            return NowPlaying(is_playing=self.is_playing)

        return NowPlaying(
            is_playing=self.is_playing,
            track_name=self.item.track_name,
            artists=self.item.artist_names,
            album=self.item.album_name,
            artwork_url=self.item.artwork_url,
        )


class Token(BaseModel):
    """OAuth token record, persisted by the token store."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: datetime
    scopes: List[str] = Field(default_factory=list)

    @classmethod
    def from_response(cls, data: dict, previous: Optional["Token"] = None) -> "Token":
        """
        Build a token from a token endpoint response.

        A refresh response may omit the refresh token; the previous one is
        kept in that case.
        """
        refresh_token = data.get("refresh_token")
        if not refresh_token and previous is not None:
            refresh_token = previous.refresh_token

        scope = data.get("scope")
        if scope is None and previous is not None:
            scopes = list(previous.scopes)
        else:
            scopes = (scope or "").split()

        return cls(
            access_token=data["access_token"],
            refresh_token=refresh_token,
            token_type=data.get("token_type", "Bearer"),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=int(data.get("expires_in", 3600))),
            scopes=scopes,
        )

    def is_expired(self, margin_seconds: int = 10) -> bool:
        """Whether the access token expires within the margin."""
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) + timedelta(seconds=margin_seconds) >= expires_at

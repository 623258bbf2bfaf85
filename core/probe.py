"""
Track metadata probe for spotiwidget.

Reads title/artist/album tags and embedded cover art from audio files with
mutagen. Everything here is stateless; unreadable or corrupt files yield None
rather than raising.
"""

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union

from mutagen import File as MutagenFile
from mutagen.flac import Picture
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Cover, MP4Tags

from spotiwidget.utils.logger import get_logger

logger = get_logger(__name__)

# Picture types shared by ID3 APIC frames and FLAC picture blocks
PICTURE_TYPE_OTHER = 0
PICTURE_TYPE_FRONT_COVER = 3

TITLE_TAGS = ['title', 'TIT2', '\xa9nam', 'Title', 'WM/Title']
ARTIST_TAGS = ['artist', 'TPE1', '\xa9ART', 'Artist', 'Author']
ALBUM_TAGS = ['album', 'TALB', '\xa9alb', 'Album', 'WM/AlbumTitle']


@dataclass
class TrackTags:
    """Tag metadata of one audio file."""
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None


@dataclass
class EmbeddedPicture:
    """A picture stored inside an audio file's tags."""
    data: bytes
    mime: Optional[str] = None
    picture_type: Optional[int] = None


def open_audio(path: Union[str, Path]) -> Optional[Any]:
    """
    Open an audio file with mutagen.

    Returns:
        The mutagen file object, or None if the file is not a readable audio file
    """
    try:
        return MutagenFile(str(path))
    except Exception as e:
        logger.debug(f"Could not read audio file {path}: {e}")
        return None


def get_tag_value(audio_file: Any, tag_names: List[str]) -> Optional[str]:
    """
    Get a tag value from an audio file, trying multiple tag names.

    Args:
        audio_file: Mutagen audio file object
        tag_names: List of possible tag names to try

    Returns:
        Tag value as string or None
    """
    tags = getattr(audio_file, 'tags', None)
    if not tags:
        return None

    for tag_name in tag_names:
        try:
            value = tags.get(tag_name)
        except (KeyError, ValueError, TypeError):
            continue
        if not value:
            continue
        if isinstance(value, list):
            value = value[0]
        text = str(value).strip()
        if text:
            return text

    return None


def read_track_tags(path: Union[str, Path]) -> Optional[TrackTags]:
    """
    Read title, artist and album from an audio file.

    Returns:
        TrackTags (fields may be None), or None if the file cannot be parsed
    """
    audio_file = open_audio(path)
    if audio_file is None:
        return None

    return TrackTags(
        title=get_tag_value(audio_file, TITLE_TAGS),
        artist=get_tag_value(audio_file, ARTIST_TAGS),
        album=get_tag_value(audio_file, ALBUM_TAGS),
    )


def extract_pictures(audio_file: Any) -> List[EmbeddedPicture]:
    """
    Collect every embedded picture of an opened audio file.

    Handles ID3 ``APIC`` frames, FLAC picture blocks, MP4 ``covr`` atoms and
    Vorbis ``METADATA_BLOCK_PICTURE`` comments.
    """
    pictures: List[EmbeddedPicture] = []
    tags = getattr(audio_file, 'tags', None)

    if isinstance(tags, ID3):
        for frame in tags.getall("APIC"):
            pictures.append(EmbeddedPicture(frame.data, frame.mime, int(frame.type)))

    for picture in getattr(audio_file, 'pictures', None) or []:
        pictures.append(EmbeddedPicture(picture.data, picture.mime, int(picture.type)))

    if isinstance(tags, MP4Tags):
        for cover in tags.get('covr', []):
            mime = "image/png" if cover.imageformat == MP4Cover.FORMAT_PNG else "image/jpeg"
            pictures.append(EmbeddedPicture(bytes(cover), mime))
    elif tags is not None and not isinstance(tags, ID3):
        try:
            blocks = tags.get('metadata_block_picture') or []
        except (KeyError, ValueError, TypeError):
            blocks = []
        for block in blocks:
            try:
                picture = Picture(base64.b64decode(block))
            except Exception as e:
                logger.debug(f"Skipping unreadable picture block: {e}")
                continue
            pictures.append(EmbeddedPicture(picture.data, picture.mime, int(picture.type)))

    return [p for p in pictures if p.data]


def select_picture(pictures: List[EmbeddedPicture]) -> Optional[EmbeddedPicture]:
    """Prefer the front cover, then an "other" picture, then whatever comes first."""
    for wanted in (PICTURE_TYPE_FRONT_COVER, PICTURE_TYPE_OTHER):
        for picture in pictures:
            if picture.picture_type == wanted:
                return picture
    return pictures[0] if pictures else None


def read_embedded_picture(path: Union[str, Path]) -> Optional[EmbeddedPicture]:
    """
    Read the best embedded cover picture of an audio file.

    Returns:
        The chosen picture, or None if the file has none or cannot be read
    """
    audio_file = open_audio(path)
    if audio_file is None:
        return None
    try:
        return select_picture(extract_pictures(audio_file))
    except Exception as e:
        logger.debug(f"Could not extract pictures from {path}: {e}")
        return None

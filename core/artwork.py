"""
Local artwork resolution for spotiwidget.

When Spotify has no artwork for the current item (typically a local file
played through the Spotify client), the resolver looks for a picture on disk:

1. an indexed audio file matching (title, artist) or (title, album), using its
   embedded cover art, cached to the artwork cache directory;
2. a conventionally named sidecar image next to that audio file;
3. a best-effort name-matching scan of the library root
   (:func:`find_local_art_in_base`).

All of this is blocking filesystem work; async callers run it in a worker thread.
"""

import hashlib
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from spotiwidget.api.models import CurrentlyPlaying, NowPlaying, Track
from spotiwidget.core.library_index import LibraryState, normalize, walk_tree
from spotiwidget.core.probe import EmbeddedPicture, read_embedded_picture
from spotiwidget.utils.logger import get_logger
from spotiwidget.utils.paths import get_cache_dir, sanitize_filename

logger = get_logger(__name__)

SIDECAR_STEMS = ("cover", "folder", "front", "album", "art")
SIDECAR_NAMES = [f"{stem}.{ext}" for stem in SIDECAR_STEMS for ext in ("jpg", "png")]

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

DEFAULT_SCAN_DEPTH = 8

CACHE_NAME_LIMIT = 200


def extension_for_mime(mime: Optional[str]) -> str:
    """File extension for a picture's MIME type (jpg when unknown)."""
    return MIME_EXTENSIONS.get((mime or "").lower(), "jpg")


def cache_file_name(audio_path: Union[str, Path], extension: str) -> str:
    """
    Deterministic cache file name for the art extracted from an audio file.

    Long paths keep a readable prefix followed by a digest of the full path,
    so files that only differ past the cut still get distinct names.
    """
    name = sanitize_filename(f"{audio_path}.{extension}")
    if len(name) <= CACHE_NAME_LIMIT:
        return name

    digest = hashlib.sha1(os.fsencode(audio_path)).hexdigest()[:16]
    prefix = sanitize_filename(str(audio_path))[:CACHE_NAME_LIMIT - len(digest) - len(extension) - 2]
    return f"{prefix}_{digest}.{extension}"


def find_sidecar(directory: Path) -> Optional[Path]:
    """
    Look for a conventionally named cover image in a directory.

    Returns:
        The first existing name from SIDECAR_NAMES, or None
    """
    for name in SIDECAR_NAMES:
        candidate = directory / name
        try:
            if candidate.is_file():
                return candidate
        except OSError:
            continue
    return None


def _contains_any(haystack: str, needles: List[str]) -> bool:
    return bool(haystack) and any(needle in haystack for needle in needles)


def find_local_art_in_base(
    base: Path,
    artist: str,
    album: Optional[str],
    track: str,
    max_depth: int = DEFAULT_SCAN_DEPTH,
) -> Optional[Path]:
    """
    Best-effort search of the library root for artwork by name.

    Pass 1 looks for a directory whose normalized name contains the artist,
    album or track and checks it for a sidecar image. Pass 2 accepts any image
    whose file stem, parent or grandparent directory name contains one of them.
    Matching is plain substring containment on normalized names, so short or
    common names can produce false positives; the first match wins.

    Args:
        base: Library root
        artist: Primary artist name
        album: Album name, if known
        track: Track title
        max_depth: Traversal depth bound for both passes

    Returns:
        Path of the first matching image, or None
    """
    if not base.is_dir():
        return None

    needles = [n for n in (normalize(artist), normalize(album or ""), normalize(track)) if n]
    if not needles:
        return None

    for directory, _files, _depth in walk_tree(base, max_depth + 1):
        if _contains_any(normalize(directory.name), needles):
            sidecar = find_sidecar(directory)
            if sidecar is not None:
                return sidecar

    for directory, filenames, _depth in walk_tree(base, max_depth):
        parent_norm = normalize(directory.name)
        grandparent_norm = normalize(directory.parent.name) if directory != base else ""
        dirs_match = _contains_any(parent_norm, needles) or _contains_any(grandparent_norm, needles)

        for name in filenames:
            path = directory / name
            if path.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            if dirs_match or _contains_any(normalize(path.stem), needles):
                return path

    return None


class ArtworkResolver:
    """
    Resolves local artwork for now-playing items that have no remote artwork.

    Backed by the shared LibraryState (index, root and extracted-art cache).
    """

    def __init__(
        self,
        library: LibraryState,
        cache_dir: Optional[Path] = None,
        scan_max_depth: int = DEFAULT_SCAN_DEPTH,
        picture_reader: Callable[[Path], Optional[EmbeddedPicture]] = read_embedded_picture,
    ):
        """
        Initialize the resolver.

        Args:
            library: Shared library state
            cache_dir: Where extracted art is written (the app artwork cache by default)
            scan_max_depth: Depth bound of the fallback scan
            picture_reader: Embedded picture reader (the mutagen probe by default)
        """
        self.library = library
        self._cache_dir = cache_dir
        self.scan_max_depth = scan_max_depth
        self.picture_reader = picture_reader

    @property
    def cache_dir(self) -> Path:
        if self._cache_dir is None:
            self._cache_dir = get_cache_dir()
        return self._cache_dir

    def extract_embedded_art(self, audio_path: Path) -> Optional[Path]:
        """
        Write an audio file's embedded cover to the artwork cache.

        Returns:
            Path of the cached image, or None if the file has no usable picture
        """
        key = str(audio_path)
        cached = self.library.cached_art(key)
        if cached is not None and cached.exists():
            return cached

        picture = self.picture_reader(audio_path)
        if picture is None:
            return None

        out_path = self.cache_dir / cache_file_name(audio_path, extension_for_mime(picture.mime))
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(picture.data)
        except OSError as e:
            logger.warning(f"Could not cache artwork for {audio_path}: {e}")
            return None

        self.library.remember_art(key, out_path)
        return out_path

    def resolve(self, title: str, artist: str, album: Optional[str]) -> Optional[Path]:
        """
        Find local artwork for a track.

        Returns:
            Path of an image file, or None if nothing was found
        """
        root, _index = self.library.snapshot()

        audio_path = self.library.lookup(title, artist, album)
        if audio_path is not None:
            embedded = self.extract_embedded_art(audio_path)
            if embedded is not None:
                return embedded
            sidecar = find_sidecar(audio_path.parent)
            if sidecar is not None:
                return sidecar

        if root is not None:
            return find_local_art_in_base(root, artist, album, title, self.scan_max_depth)
        return None

    def apply(self, now_playing: NowPlaying, context: CurrentlyPlaying) -> NowPlaying:
        """
        Fill ``artwork_path`` of a snapshot when it has no remote artwork.

        Only tracks are resolved; episodes always carry their own images.
        """
        if now_playing.artwork_url:
            return now_playing
        item = context.item
        if not isinstance(item, Track):
            return now_playing

        found = self.resolve(item.name, item.primary_artist, item.album.name or None)
        if found is not None:
            logger.debug(f"Local artwork for '{item.name}': {found}")
            now_playing.artwork_path = str(found)
        return now_playing

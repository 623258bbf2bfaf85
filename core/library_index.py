"""
Local library index for spotiwidget.

Walks a library root, reads each audio file's tags and builds a lookup from
normalized (title, artist) and (title, album) keys to file paths. The index
is always rebuilt from scratch and published by swapping the whole mapping.
"""

import os
import threading
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from spotiwidget.core.probe import TrackTags, read_track_tags
from spotiwidget.utils.logger import get_logger

logger = get_logger(__name__)

AUDIO_EXTENSIONS = {
    '.aa', '.aax', '.aac', '.aiff', '.ape', '.dsf', '.flac', '.m4a', '.m4b', '.m4p', '.mp3',
    '.mpc', '.mpp', '.ogg', '.oga', '.wav', '.wma', '.wv', '.webm',
}

DEFAULT_INDEX_DEPTH = 20

LibraryIndex = Dict[str, Path]


def normalize(text: str) -> str:
    """Lowercase and keep only alphanumeric characters."""
    return "".join(c for c in text.lower() if c.isalnum())


def key_title_artist(title: str, artist: str) -> str:
    return f"{normalize(title)}|{normalize(artist)}"


def key_title_album(title: str, album: str) -> str:
    return f"{normalize(title)}|{normalize(album)}"


def is_audio(path: Path) -> bool:
    return path.suffix.lower() in AUDIO_EXTENSIONS


def walk_tree(root: Path, max_depth: int) -> Iterator[Tuple[Path, List[str], int]]:
    """
    Walk a directory tree, following symbolic links without looping.

    Directories already visited (by device and inode) are not entered again,
    so a link back to an ancestor cannot recurse forever.

    Args:
        root: Directory to walk
        max_depth: Deepest entry depth to report; files directly in root are at depth 1

    Yields:
        ``(directory, file_names, depth)`` where depth is the directory's own depth
    """
    visited: Set[Tuple[int, int]] = set()

    def on_error(error: OSError) -> None:
        logger.debug(f"Skipping unreadable path: {error}")

    for dirpath, dirnames, filenames in os.walk(root, followlinks=True, onerror=on_error):
        current = Path(dirpath)
        try:
            stat = current.stat()
        except OSError:
            dirnames[:] = []
            continue

        marker = (stat.st_dev, stat.st_ino)
        if marker in visited:
            dirnames[:] = []
            continue
        visited.add(marker)

        depth = len(current.relative_to(root).parts)
        if depth + 1 >= max_depth:
            dirnames[:] = []
        if depth >= max_depth:
            continue

        yield current, filenames, depth


def build_local_index(
    root: Path,
    max_depth: int = DEFAULT_INDEX_DEPTH,
    reader: Callable[[Path], Optional[TrackTags]] = read_track_tags,
) -> LibraryIndex:
    """
    Build the title/artist and title/album index of a library.

    Files whose tags cannot be read are skipped. A missing title falls back
    to the file name stem; a missing artist or album just adds no key.

    Args:
        root: Library root directory
        max_depth: Maximum traversal depth
        reader: Tag reader (the mutagen probe by default)

    Returns:
        Mapping of normalized key to audio file path
    """
    index: LibraryIndex = {}
    if not root.is_dir():
        logger.warning(f"Library root is not a directory: {root}")
        return index

    logger.info(f"Indexing library: {root}")
    scanned = 0

    for directory, filenames, _depth in walk_tree(root, max_depth):
        for name in filenames:
            path = directory / name
            if not is_audio(path):
                continue
            try:
                if not path.is_file():
                    continue
            except OSError:
                continue

            tags = reader(path)
            if tags is None:
                continue
            scanned += 1

            title = tags.title or path.stem
            if not title:
                continue
            if tags.artist:
                index[key_title_artist(title, tags.artist)] = path
            if tags.album:
                index[key_title_album(title, tags.album)] = path

    logger.info(f"Indexed {scanned} audio files ({len(index)} keys) under {root}")
    return index


class LibraryState:
    """
    The current library root, its index and the extracted-art cache.

    The index mapping is never mutated after it is published; a rebuild swaps
    in a new ``(root, index)`` pair under the lock, so readers holding a
    reference always see a complete index.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.root: Optional[Path] = None
        self.index: LibraryIndex = {}
        self.art_cache: Dict[str, Path] = {}

    def snapshot(self) -> Tuple[Optional[Path], LibraryIndex]:
        with self.lock:
            return self.root, self.index

    def get_root(self) -> Optional[Path]:
        with self.lock:
            return self.root

    def set_root(self, root: Optional[Path]) -> None:
        with self.lock:
            self.root = root

    def replace(self, root: Path, index: LibraryIndex) -> None:
        """Publish a freshly built index; the art cache starts over."""
        with self.lock:
            self.root = root
            self.index = index
            self.art_cache = {}

    def lookup(self, title: str, artist: str, album: Optional[str]) -> Optional[Path]:
        """
        Find an audio file by (title, artist), then by (title, album).

        Returns:
            The indexed file path or None
        """
        with self.lock:
            index = self.index

        hit = index.get(key_title_artist(title, artist))
        if hit is None and album:
            hit = index.get(key_title_album(title, album))
        return hit

    def cached_art(self, key: str) -> Optional[Path]:
        with self.lock:
            return self.art_cache.get(key)

    def remember_art(self, key: str, path: Path) -> None:
        with self.lock:
            self.art_cache[key] = path

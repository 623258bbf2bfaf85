import base64
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from mutagen.flac import Picture
from mutagen.id3 import APIC, ID3, TALB, TIT2, TPE1
from mutagen.mp4 import MP4Cover, MP4Tags

from spotiwidget.core.probe import (
    PICTURE_TYPE_FRONT_COVER, PICTURE_TYPE_OTHER, EmbeddedPicture, TrackTags, extract_pictures,
    read_embedded_picture, read_track_tags, select_picture
)


def make_flac_picture(data, mime="image/jpeg", picture_type=PICTURE_TYPE_FRONT_COVER):
    picture = Picture()
    picture.data = data
    picture.mime = mime
    picture.type = picture_type
    return picture


@pytest.fixture
def id3_file():
    tags = ID3()
    tags.add(TIT2(encoding=3, text=["Song One"]))
    tags.add(TPE1(encoding=3, text=["Artist A"]))
    tags.add(TALB(encoding=3, text=["The Album"]))
    tags.add(APIC(encoding=3, mime="image/png", type=PICTURE_TYPE_OTHER, desc="back", data=b"other-bytes"))
    tags.add(APIC(encoding=3, mime="image/jpeg", type=PICTURE_TYPE_FRONT_COVER, desc="front", data=b"front-bytes"))
    return SimpleNamespace(tags=tags)


def test_read_track_tags_id3(id3_file):
    with patch('spotiwidget.core.probe.MutagenFile', return_value=id3_file):
        tags = read_track_tags("/music/song.mp3")
    assert tags.title == "Song One"
    assert tags.artist == "Artist A"
    assert tags.album == "The Album"


def test_read_track_tags_vorbis_style():
    audio = SimpleNamespace(tags={"title": ["Song Two"], "artist": ["  Artist B "], "album": [""]})
    with patch('spotiwidget.core.probe.MutagenFile', return_value=audio):
        tags = read_track_tags("/music/song.flac")
    assert tags.title == "Song Two"
    assert tags.artist == "Artist B"
    assert tags.album is None


def test_read_track_tags_unreadable_file():
    with patch('spotiwidget.core.probe.MutagenFile', side_effect=Exception("corrupt")):
        assert read_track_tags("/music/broken.mp3") is None
    with patch('spotiwidget.core.probe.MutagenFile', return_value=None):
        assert read_track_tags("/music/not-audio.mp3") is None


def test_read_track_tags_without_tags():
    with patch('spotiwidget.core.probe.MutagenFile', return_value=SimpleNamespace(tags=None)):
        assert read_track_tags("/music/untagged.mp3") == TrackTags()


def test_real_file_that_is_not_audio(tmp_path):
    path = tmp_path / "fake.mp3"
    path.write_bytes(b"definitely not an mp3")
    assert read_embedded_picture(path) is None


def test_id3_prefers_front_cover(id3_file):
    with patch('spotiwidget.core.probe.MutagenFile', return_value=id3_file):
        picture = read_embedded_picture("/music/song.mp3")
    assert picture.data == b"front-bytes"
    assert picture.mime == "image/jpeg"


def test_flac_pictures():
    audio = SimpleNamespace(tags=None, pictures=[
        make_flac_picture(b"other", picture_type=PICTURE_TYPE_OTHER),
        make_flac_picture(b"front"),
    ])
    pictures = extract_pictures(audio)
    assert [p.data for p in pictures] == [b"other", b"front"]
    assert select_picture(pictures).data == b"front"


def test_mp4_cover():
    tags = MP4Tags()
    tags['covr'] = [MP4Cover(b"png-bytes", imageformat=MP4Cover.FORMAT_PNG)]
    pictures = extract_pictures(SimpleNamespace(tags=tags))
    assert len(pictures) == 1
    assert pictures[0].data == b"png-bytes"
    assert pictures[0].mime == "image/png"


def test_vorbis_picture_block():
    block = base64.b64encode(make_flac_picture(b"ogg-cover", mime="image/png").write()).decode("ascii")
    audio = SimpleNamespace(tags={"metadata_block_picture": [block, "not base64 at all!"]})
    pictures = extract_pictures(audio)
    assert len(pictures) == 1
    assert pictures[0].data == b"ogg-cover"
    assert pictures[0].mime == "image/png"


def test_select_picture_fallbacks():
    assert select_picture([]) is None

    other = EmbeddedPicture(b"o", "image/jpeg", PICTURE_TYPE_OTHER)
    band = EmbeddedPicture(b"b", "image/jpeg", 10)
    assert select_picture([band, other]) is other
    assert select_picture([band]) is band

from spotiwidget.utils import paths
from spotiwidget.utils.paths import get_data_dir, get_config_dir, get_token_path, get_cache_dir, get_log_file
from unittest.mock import patch
from pathlib import Path
import pytest


@pytest.fixture
def data_dir_env(tmp_path, monkeypatch):
    data_dir = tmp_path / "spotiwidget_data"
    monkeypatch.setenv(paths.DATA_DIR_ENV, str(data_dir))
    return data_dir


def test_default_paths_generation(data_dir_env):
    assert get_data_dir() == data_dir_env
    assert get_config_dir() == data_dir_env / "settings"
    assert get_token_path() == data_dir_env / "spotify" / "token.json"
    assert get_cache_dir() == data_dir_env / "artcache"
    assert get_log_file() == data_dir_env / "spotiwidget.log"


def test_directories_are_created(data_dir_env):
    assert get_config_dir().is_dir()
    assert get_token_path().parent.is_dir()
    assert get_cache_dir().is_dir()


def test_platform_data_dir_linux_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv(paths.DATA_DIR_ENV, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
    with patch('spotiwidget.utils.paths.platform.system', return_value="Linux"):
        assert paths.get_platform_data_dir() == tmp_path / "xdg" / "spotiwidget"


def test_platform_data_dir_windows(monkeypatch, tmp_path):
    monkeypatch.delenv(paths.DATA_DIR_ENV, raising=False)
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "Local"))
    with patch('spotiwidget.utils.paths.platform.system', return_value="Windows"):
        assert paths.get_platform_data_dir() == tmp_path / "Local" / "spotiwidget"


def test_data_dir_falls_back_when_not_writable(data_dir_env, tmp_path):
    fake_home = tmp_path / "home"
    with patch('spotiwidget.utils.paths.Path.home', return_value=fake_home), \
         patch('builtins.open', side_effect=PermissionError("read-only")):
        result = get_data_dir()
    assert result == fake_home / ".spotiwidget_data"
    assert result.is_dir()


def test_sanitize_filename_basic():
    assert paths.sanitize_filename("Valid Name 123.mp3") == "Valid Name 123.mp3"
    assert paths.sanitize_filename("Invalid<>Chars:*?.mp3") == "Invalid__Chars___.mp3"


def test_sanitize_filename_empty():
    assert paths.sanitize_filename("") == "unnamed"


def test_sanitize_filename_audio_path():
    # Cache names are derived from full audio paths
    name = paths.sanitize_filename("/music/Artist/Album/01 Song.flac.jpg")
    assert "/" not in name
    assert name.endswith(".flac.jpg")


def test_sanitize_filename_non_latin():
    assert paths.sanitize_filename("Привет мир.mp3") == "Привет мир.mp3"
    assert paths.sanitize_filename("こんにちは.mp3") == "こんにちは.mp3"


def test_sanitize_filename_long_name_keeps_extension():
    name = paths.sanitize_filename("a" * 300 + ".jpg")
    assert len(name) <= 250
    assert name.endswith(".jpg")

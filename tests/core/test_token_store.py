import json

import pytest

from spotiwidget.core.settings import Settings
from spotiwidget.core.token_store import TokenStore, TokenStoreError


@pytest.fixture
def store(tmp_path):
    return TokenStore(
        Settings(),
        token_path=tmp_path / "spotify" / "token.json",
        settings_path=tmp_path / "settings" / "settings.json",
    )


@pytest.mark.asyncio
async def test_read_missing_token(store):
    assert await store.read_token() is None


@pytest.mark.asyncio
async def test_write_then_read_token(store, make_token):
    token = make_token()
    await store.write_token(token)

    assert store.token_path.exists()
    assert not store.token_path.with_suffix(".tmp").exists()
    assert await store.read_token() == token


@pytest.mark.asyncio
async def test_write_replaces_previous_token(store, make_token):
    await store.write_token(make_token(access_token="first"))
    await store.write_token(make_token(access_token="second"))
    assert (await store.read_token()).access_token == "second"


@pytest.mark.asyncio
async def test_corrupt_token_file(store):
    store.token_path.parent.mkdir(parents=True)
    store.token_path.write_text("{broken", encoding="utf-8")
    with pytest.raises(TokenStoreError, match="parse token json"):
        await store.read_token()


@pytest.mark.asyncio
async def test_clear_token(store, make_token):
    await store.write_token(make_token())
    await store.clear_token()
    assert await store.read_token() is None

    # Clearing again is not an error
    await store.clear_token()


@pytest.mark.asyncio
async def test_library_root_round_trip(store, tmp_path):
    library = tmp_path / "Music"
    library.mkdir()

    assert store.load_library_root() is None
    await store.save_library_root(library)

    assert store.settings.library_root == library
    assert store.load_library_root() == library
    with open(store.settings_path, 'r') as f:
        assert json.load(f) == {"library_root": str(library)}

"""Tests for album resolution."""
from unittest.mock import AsyncMock

import pytest

from bunkr_uploader.errors import AlbumNotFound, AlbumResolutionError, UploadError
from bunkr_uploader.models import AlbumTarget, Token
from bunkr_uploader.orchestrator.album_resolver import AlbumResolver

TOKEN = Token("tok")


def _client(found=None):
    client = AsyncMock()
    client.find_album_by_name.return_value = found
    client.create_album.return_value = "77"
    return client


@pytest.mark.asyncio
async def test_no_album_resolves_to_none():
    client = _client()
    resolver = AlbumResolver(client)
    assert await resolver.resolve(AlbumTarget.none(), TOKEN) is None
    client.find_album_by_name.assert_not_awaited()


@pytest.mark.asyncio
async def test_album_id_is_used_verbatim():
    client = _client()
    resolver = AlbumResolver(client)
    assert await resolver.resolve(AlbumTarget.by_id("123"), TOKEN) == "123"
    client.find_album_by_name.assert_not_awaited()
    client.create_album.assert_not_awaited()


@pytest.mark.asyncio
async def test_album_name_lookup_is_memoized():
    client = _client(found="42")
    resolver = AlbumResolver(client)
    target = AlbumTarget.by_name("Trips")

    assert await resolver.resolve(target, TOKEN) == "42"
    assert await resolver.resolve(target, TOKEN) == "42"

    client.find_album_by_name.assert_awaited_once_with("Trips", TOKEN)


@pytest.mark.asyncio
async def test_missing_album_without_creation_raises():
    client = _client(found=None)
    resolver = AlbumResolver(client, create_missing=False)

    with pytest.raises(AlbumNotFound) as exc:
        await resolver.resolve(AlbumTarget.by_name("Nope"), TOKEN)

    assert "Nope" in str(exc.value)
    client.create_album.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_album_is_created_once():
    client = _client(found=None)
    resolver = AlbumResolver(client, create_missing=True, description="auto")
    target = AlbumTarget.by_name("New")

    assert await resolver.resolve(target, TOKEN) == "77"
    assert await resolver.resolve(target, TOKEN) == "77"

    client.create_album.assert_awaited_once_with("New", "auto", TOKEN)


@pytest.mark.asyncio
async def test_lookup_failure_is_wrapped():
    client = _client()
    client.find_album_by_name.side_effect = UploadError.transient("boom")
    resolver = AlbumResolver(client)

    with pytest.raises(AlbumResolutionError):
        await resolver.resolve(AlbumTarget.by_name("Trips"), TOKEN)


@pytest.mark.asyncio
async def test_resolver_is_bound_to_its_first_target():
    resolver = AlbumResolver(_client(found="1"))
    await resolver.resolve(AlbumTarget.by_name("A"), TOKEN)
    with pytest.raises(ValueError):
        await resolver.resolve(AlbumTarget.by_name("B"), TOKEN)

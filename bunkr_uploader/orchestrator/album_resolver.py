"""Album resolution - maps an AlbumTarget to a concrete album id once per batch."""
import asyncio
import logging
from typing import Optional

from ..errors import AlbumNotFound, AlbumResolutionError, UploadError
from ..models import AlbumTarget, AlbumTargetKind, Token
from ..protocols import IUploadClient

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


class AlbumResolver:
    """
    Resolves and memoizes the batch album.

    One resolver per batch run: the first resolve() does the lookup (and
    the creation, if allowed); later calls return the cached id without
    touching the client.
    """

    def __init__(
        self,
        client: IUploadClient,
        create_missing: bool = False,
        description: str = "",
    ):
        self._client = client
        self._create_missing = create_missing
        self._description = description
        self._lock = asyncio.Lock()
        self._resolved = _UNRESOLVED
        self._target: Optional[AlbumTarget] = None

    async def resolve(self, target: AlbumTarget, token: Token) -> Optional[str]:
        """
        Return the album id for ``target`` (None for no album).

        Raises:
            AlbumNotFound: name absent and creation disabled
            AlbumResolutionError: lookup/creation request failed
        """
        async with self._lock:
            if self._resolved is not _UNRESOLVED:
                if target != self._target:
                    raise ValueError(f"Resolver already bound to {self._target}, got {target}")
                return self._resolved

            album_id = await self._resolve_uncached(target, token)
            self._target = target
            self._resolved = album_id
            return album_id

    async def _resolve_uncached(self, target: AlbumTarget, token: Token) -> Optional[str]:
        if target.kind == AlbumTargetKind.NONE:
            return None
        if target.kind == AlbumTargetKind.BY_ID:
            return target.value

        name = target.value
        try:
            album_id = await self._client.find_album_by_name(name, token)
        except UploadError as e:
            raise AlbumResolutionError(f"Album lookup for '{name}' failed: {e.message}") from e

        if album_id is not None:
            logger.info("Resolved album '%s' to id %s", name, album_id)
            return album_id

        if not self._create_missing:
            raise AlbumNotFound(name)

        try:
            album_id = await self._client.create_album(name, self._description, token)
        except UploadError as e:
            raise AlbumResolutionError(f"Creating album '{name}' failed: {e.message}") from e
        logger.info("Created missing album '%s' with id %s", name, album_id)
        return album_id

"""HTTP adapter for the Bunkr API."""
from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ErrorKind, UploadError
from ..models import DEFAULT_API_URL, Token
from ..utils.sizes import human_size, parse_size

logger = logging.getLogger(__name__)

# Keep a margin under the advertised limit for multipart overhead
MAX_SIZE_RATIO = 0.95
TRANSIENT_STATUS_CODES = {408, 425, 429}
ERROR_BODY_LIMIT = 300


def classify_status(status_code: int) -> ErrorKind:
    """Rate limits, timeouts and 5xx are worth retrying; every other 4xx is not."""
    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


def _guess_mime(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


class BunkrClient:
    """
    HTTP client adapter for the Bunkr dashboard API.

    Implements IUploadClient protocol. The token is passed to every call
    and sent only as a request header.

    Usage:
        async with BunkrClient() as client:
            await client.prepare(token)
            url = await client.upload(Path("clip.mp4"), token, album_id="42")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._prepare_lock = asyncio.Lock()

        # Filled in by prepare()
        self.upload_url: Optional[str] = None
        self.max_file_size: Optional[int] = None
        self.chunk_size: Optional[int] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_prepared(self) -> bool:
        return self.upload_url is not None

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, mapping transport failures and error statuses to UploadError."""
        if not self._client:
            raise RuntimeError("BunkrClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise UploadError.transient(f"Timeout on {method} {url}: {type(exc).__name__}") from exc
        except httpx.TransportError as exc:
            raise UploadError.transient(f"Network error on {method} {url}: {type(exc).__name__}") from exc

        if response.status_code >= 400:
            body = response.text[:ERROR_BODY_LIMIT]
            raise UploadError(
                classify_status(response.status_code),
                f"{method} {url} failed with status {response.status_code}: {body}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise UploadError.permanent(f"Failed to parse {what} response: {exc}") from exc
        if not isinstance(data, dict):
            raise UploadError.permanent(f"Unexpected {what} response: {data!r}"[:ERROR_BODY_LIMIT])
        return data

    @staticmethod
    def _auth(token: Token, **extra: str) -> Dict[str, str]:
        headers = {"token": token.reveal()}
        headers.update(extra)
        return headers

    async def verify_token(self, token: Token) -> Dict[str, Any]:
        """Check the token against the server. Returns the account info."""
        response = await self._request(
            "POST", "/api/tokens/verify", data={"token": token.reveal()}
        )
        data = self._json(response, "token verification")
        if not data.get("success"):
            raise UploadError.permanent("Invalid API token")
        return data

    async def prepare(self, token: Token) -> None:
        """
        Verify the token and fetch server limits and the upload node.

        Safe to call from concurrent workers; only the first call hits
        the network.
        """
        async with self._prepare_lock:
            if self.is_prepared:
                return

            info = await self.verify_token(token)
            logger.info("Token verified for user %s", info.get("username") or "(unknown)")

            check = self._json(
                await self._request("GET", "/api/check", headers=self._auth(token)),
                "server config",
            )
            try:
                max_size = check.get("maxSize")
                if max_size:
                    self.max_file_size = int(parse_size(str(max_size)) * MAX_SIZE_RATIO)
                chunk_conf = check.get("chunkSize") or {}
                if isinstance(chunk_conf, dict) and chunk_conf.get("default"):
                    self.chunk_size = parse_size(str(chunk_conf["default"]))
            except ValueError as exc:
                raise UploadError.permanent(f"Unexpected server config: {exc}") from exc

            node = self._json(
                await self._request("GET", "/api/node", headers=self._auth(token)),
                "node",
            )
            url = node.get("url")
            if not url:
                raise UploadError.transient("Server did not assign an upload node")
            self.upload_url = str(url)
            logger.debug(
                "Upload node %s (max %s, chunk %s)",
                self.upload_url,
                human_size(self.max_file_size or 0),
                human_size(self.chunk_size or 0),
            )

    async def upload(
        self,
        file_path: Path,
        token: Token,
        album_id: Optional[str] = None,
    ) -> str:
        """
        Upload one file and return its public URL.

        Files above the server chunk size go through the chunked
        endpoint and are finalized with ``finishchunks``.
        """
        await self.prepare(token)
        path = Path(file_path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise UploadError.permanent(f"File not found: {path}") from exc

        if self.max_file_size and size > self.max_file_size:
            raise UploadError.permanent(
                f"File too large: {human_size(size)} exceeds {human_size(self.max_file_size)}"
            )

        if self.chunk_size and size > self.chunk_size:
            return await self._upload_chunked(path, token, album_id, size)
        return await self._upload_single(path, token, album_id)

    async def _upload_single(self, path: Path, token: Token, album_id: Optional[str]) -> str:
        data = await asyncio.to_thread(path.read_bytes)
        headers = self._auth(token)
        if album_id:
            headers["albumid"] = str(album_id)

        response = await self._request(
            "POST",
            self.upload_url,
            headers=headers,
            files={"files[]": (path.name, data, _guess_mime(path))},
        )
        return self._first_url(self._json(response, "upload"), path)

    async def _upload_chunked(
        self,
        path: Path,
        token: Token,
        album_id: Optional[str],
        size: int,
    ) -> str:
        chunk_size = self.chunk_size
        total_chunks = -(-size // chunk_size)
        upload_uuid = str(uuid.uuid4())
        headers = self._auth(token)

        def _read_chunk(index: int) -> bytes:
            with open(path, "rb") as f:
                f.seek(index * chunk_size)
                return f.read(chunk_size)

        for index in range(total_chunks):
            chunk = await asyncio.to_thread(_read_chunk, index)
            await self._request(
                "POST",
                self.upload_url,
                headers=headers,
                data={
                    "dzuuid": upload_uuid,
                    "dzchunkindex": str(index),
                    "dztotalfilesize": str(size),
                    "dzchunksize": str(chunk_size),
                    "dztotalchunkcount": str(total_chunks),
                    "dzchunkbyteoffset": str(index * chunk_size),
                },
                files={"files[]": (path.name, chunk, "application/octet-stream")},
            )
            logger.debug("%s: chunk %d/%d sent", path.name, index + 1, total_chunks)

        album_field: Optional[int] = None
        if album_id:
            try:
                album_field = int(album_id)
            except ValueError:
                raise UploadError.permanent(f"Album id must be numeric, got {album_id!r}") from None

        response = await self._request(
            "POST",
            f"{self.upload_url.rstrip('/')}/finishchunks",
            headers=headers,
            json={
                "files": [{
                    "uuid": upload_uuid,
                    "original": path.name,
                    "type": _guess_mime(path),
                    "albumid": album_field,
                    "filelength": None,
                    "age": None,
                }]
            },
        )
        return self._first_url(self._json(response, "finish chunks"), path)

    @staticmethod
    def _first_url(data: Dict[str, Any], path: Path) -> str:
        if not data.get("success"):
            raise UploadError.permanent(
                f"Upload of {path.name} failed: {data.get('description') or 'server returned success=false'}"
            )
        files = data.get("files") or []
        if not files or not files[0].get("url"):
            raise UploadError.permanent(f"Upload of {path.name} returned no URL")
        return str(files[0]["url"])

    async def list_albums(self, token: Token) -> List[Dict[str, Any]]:
        response = await self._request("GET", "/api/albums", headers=self._auth(token))
        data = self._json(response, "albums")
        return list(data.get("albums") or [])

    async def find_album_by_name(self, name: str, token: Token) -> Optional[str]:
        """
        Exact, case-sensitive name match.

        Several albums with the same name resolve to the lowest id.
        """
        matches = [
            a for a in await self.list_albums(token)
            if isinstance(a, dict) and a.get("name") == name
        ]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning("%d albums named %r, using the oldest", len(matches), name)
        try:
            return str(min(int(a["id"]) for a in matches))
        except (KeyError, TypeError, ValueError) as exc:
            raise UploadError.permanent(
                f"Malformed album entry for {name!r}: {type(exc).__name__}: {exc}"
            ) from exc

    async def create_album(
        self,
        name: str,
        description: str,
        token: Token,
        download: bool = True,
        public: bool = True,
    ) -> str:
        response = await self._request(
            "POST",
            "/api/albums",
            headers=self._auth(token),
            json={
                "name": name,
                "description": description or "",
                "download": download,
                "public": public,
            },
        )
        data = self._json(response, "create album")
        if not data.get("success") or data.get("id") is None:
            raise UploadError.permanent(f"Create album failed: {data.get('description') or 'success=false'}")
        logger.info("Created album %r with id %s", name, data["id"])
        return str(data["id"])

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, NamedTuple, Optional

import httpx

from syncmyworkbin.errors import ApiError, AuthenticationError

API_BASE = "https://luminus.nus.edu.sg/v2/api/"

logger = logging.getLogger(__name__)


class FolderEntry(NamedTuple):
    id: str
    name: str
    allow_upload: bool


class FileEntry(NamedTuple):
    id: str
    name: str
    last_updated: datetime
    creator_name: Optional[str] = None


class ChannelEntry(NamedTuple):
    id: str
    name: str


def parse_time(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as sent by the API into an aware datetime."""
    if not isinstance(value, str):
        raise ApiError(f"Invalid timestamp in API response: {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ApiError(f"Invalid timestamp in API response: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Api:
    """Authenticated client for the workbin REST API.

    Session establishment is not handled here: the caller hands over an
    already valid bearer token. One ``httpx.AsyncClient`` is shared by every
    request, including all concurrent downloads.
    """

    block_size = 1024

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = 60.0,
    ) -> None:
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            follow_redirects=True,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "Api":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_data(self, path: str, params: Dict[str, Any] = None) -> Any:
        response = await self.client.get(path, params=params)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise AuthenticationError("The API rejected the access token")
        if response.is_error:
            raise ApiError(
                f"Unexpected status {response.status_code} while requesting {path}"
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON response for {path}") from e
        logger.debug(f"------API-{path}------")
        logger.debug(payload)
        if not isinstance(payload, dict):
            raise ApiError(f"Invalid API response for {path}: {payload!r}")
        return payload.get("data")

    async def _get_list(self, path: str, params: Dict[str, Any] = None) -> List[Any]:
        data = await self._get_data(path, params)
        if not data:
            return []
        if not isinstance(data, list):
            raise ApiError("Invalid API response from server: type mismatch")
        return data

    async def _get_text(self, path: str) -> str:
        data = await self._get_data(path)
        if not isinstance(data, str):
            raise ApiError("Invalid API response from server: type mismatch")
        return data

    async def list_modules(self, term: str = None) -> List[Dict[str, Any]]:
        params = {"term": term} if term else None
        return await self._get_list("module", params)

    async def list_child_folders(self, folder_id: str) -> List[FolderEntry]:
        return [
            FolderEntry(
                id=d["id"], name=d["name"], allow_upload=bool(d.get("allowUpload"))
            )
            for d in await self._get_list("files/", {"ParentID": folder_id})
        ]

    async def list_files(
        self, folder_id: str, include_creator: bool = False
    ) -> List[FileEntry]:
        params = {"populate": "Creator"} if include_creator else None
        return [
            FileEntry(
                id=f["id"],
                name=f["name"],
                last_updated=parse_time(f["lastUpdatedDate"]),
                creator_name=f.get("creatorName"),
            )
            for f in await self._get_list(f"files/{folder_id}/file", params)
        ]

    async def get_download_url(self, file_id: str) -> str:
        return await self._get_text(f"files/file/{file_id}/downloadurl")

    async def list_multimedia_channels(self, module_id: str) -> List[ChannelEntry]:
        return [
            ChannelEntry(id=c["id"], name=c["name"])
            for c in await self._get_list("multimedia/", {"ParentID": module_id})
        ]

    async def list_multimedia_items(self, channel_id: str) -> List[FileEntry]:
        return [
            FileEntry(
                id=m["id"],
                name=m["name"],
                last_updated=parse_time(m["lastUpdatedDate"]),
            )
            for m in await self._get_list(f"multimedia/{channel_id}/medias")
        ]

    async def get_multimedia_url(self, media_id: str) -> str:
        return await self._get_text(f"multimedia/media/{media_id}/downloadurl")

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streaming GET and yield an iterator over the body chunks.

        Non-2xx answers raise ``httpx.HTTPStatusError`` before any chunk is
        yielded. Connection problems surface as ``httpx.TransportError``.
        """
        async with self.client.stream("GET", url) as response:
            response.raise_for_status()
            yield response.aiter_bytes(self.block_size)

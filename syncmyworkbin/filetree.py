import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from syncmyworkbin.multimedia import MultimediaRoot
from syncmyworkbin.resource import DEFAULT_RESOLVE_PARALLELISM
from syncmyworkbin.sanitize import sanitize

# Access flags that mark a module as one the user is teaching
TEACHING_ACCESS = (
    "access_Full",
    "access_Create",
    "access_Update",
    "access_Delete",
    "access_Settings_Read",
    "access_Settings_Update",
)

logger = logging.getLogger(__name__)


@dataclass
class Module:
    id: str
    code: str
    name: str
    term: str = ""
    access: Optional[Dict[str, bool]] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Module":
        return cls(
            id=data["id"],
            code=data["name"],
            name=data.get("courseName", ""),
            term=data.get("term", ""),
            access=data.get("access"),
        )

    def is_teaching(self) -> bool:
        if not self.access:
            return False
        return any(self.access.get(flag) for flag in TEACHING_ACCESS)

    def is_taking(self) -> bool:
        return not self.is_teaching()

    def has_access(self) -> bool:
        return self.access is not None

    def workbin_root(self) -> "RemoteFolder":
        return RemoteFolder(self.id, Path(sanitize(self.code)))

    def multimedia_root(self) -> MultimediaRoot:
        return MultimediaRoot(self.id, Path(sanitize(self.code)) / "Multimedia")


@dataclass(frozen=True)
class File:
    id: str
    path: Path
    last_updated: datetime

    async def get_download_url(self, api) -> str:
        return await api.get_download_url(self.id)


@dataclass
class RemoteFolder:
    id: str
    path: Path
    allow_upload: bool = False
    limiter: Optional[asyncio.Semaphore] = field(
        default=None, repr=False, compare=False
    )

    def file_path(self, name: str, creator_name: Optional[str]) -> Path:
        """Local path for a file directly inside this folder.

        Files in upload folders come from many students, so the uploader is
        put in front of the name.
        """
        if self.allow_upload:
            name = f"{creator_name or 'Unknown'} - {name}"
        return self.path / sanitize(name)

    async def load(self, api, include_uploadable: bool) -> List[File]:
        """Walk this folder and everything below it, returning all files flat.

        Upload folders below this one are skipped unless ``include_uploadable``
        is set. Every metadata request goes through ``self.limiter`` which is
        shared with all folders of the walk, but the slot is never held while
        waiting for child folders.
        """
        assert include_uploadable or not self.allow_upload
        if self.limiter is None:
            self.limiter = asyncio.Semaphore(DEFAULT_RESOLVE_PARALLELISM)

        files, subfolder_files = await asyncio.gather(
            self._load_files(api), self._load_subfolders(api, include_uploadable)
        )
        return files + subfolder_files

    async def _load_files(self, api) -> List[File]:
        async with self.limiter:
            entries = await api.list_files(self.id, self.allow_upload)
        return [
            File(
                id=entry.id,
                path=self.file_path(entry.name, entry.creator_name),
                last_updated=entry.last_updated,
            )
            for entry in entries
        ]

    async def _load_subfolders(self, api, include_uploadable: bool) -> List[File]:
        async with self.limiter:
            entries = await api.list_child_folders(self.id)
        children = [
            RemoteFolder(
                id=entry.id,
                path=self.path / sanitize(entry.name),
                allow_upload=entry.allow_upload,
                limiter=self.limiter,
            )
            for entry in entries
            if include_uploadable or not entry.allow_upload
        ]
        logger.debug(f"{self.path}: {len(children)} of {len(entries)} subfolders")
        results = await asyncio.gather(
            *(child.load(api, include_uploadable) for child in children)
        )
        return [file for files in results for file in files]

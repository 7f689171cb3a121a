import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from syncmyworkbin.resource import DEFAULT_RESOLVE_PARALLELISM
from syncmyworkbin.sanitize import sanitize

VIDEO_SUFFIX = ".mp4"


@dataclass(frozen=True)
class Video:
    id: str
    path: Path
    last_updated: datetime

    async def get_download_url(self, api) -> str:
        return await api.get_multimedia_url(self.id)


def video_name(name: str) -> str:
    if not name.lower().endswith(VIDEO_SUFFIX):
        name += VIDEO_SUFFIX
    return sanitize(name)


@dataclass
class MultimediaRoot:
    """The multimedia channels of one module, each a folder of videos"""

    id: str
    path: Path
    limiter: Optional[asyncio.Semaphore] = field(
        default=None, repr=False, compare=False
    )

    async def load(self, api) -> List[Video]:
        if self.limiter is None:
            self.limiter = asyncio.Semaphore(DEFAULT_RESOLVE_PARALLELISM)

        async with self.limiter:
            channels = await api.list_multimedia_channels(self.id)
        results = await asyncio.gather(
            *(
                self._load_channel(api, channel.id, self.path / sanitize(channel.name))
                for channel in channels
            )
        )
        return [video for videos in results for video in videos]

    async def _load_channel(self, api, channel_id: str, path: Path) -> List[Video]:
        async with self.limiter:
            items = await api.list_multimedia_items(channel_id)
        return [
            Video(
                id=item.id,
                path=path / video_name(item.name),
                last_updated=item.last_updated,
            )
            for item in items
        ]

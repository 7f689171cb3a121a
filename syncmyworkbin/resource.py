from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

# Metadata requests in flight at once while resolving one batch of roots
DEFAULT_RESOLVE_PARALLELISM = 16


class Resource(Protocol):
    """Anything that maps to exactly one local file and can be downloaded.

    ``path`` is relative to the download destination and already sanitized.
    """

    path: Path
    last_updated: datetime

    async def get_download_url(self, api) -> str:
        ...


class OverwriteMode(Enum):
    """What to do with a local file that is older than the remote one"""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


class Outcome(Enum):
    NEW_FILE = "new_file"
    ALREADY_HAVE = "already_have"
    SKIPPED = "skipped"
    OVERWRITTEN = "overwritten"
    RENAMED = "renamed"


@dataclass(frozen=True)
class OverwriteResult:
    outcome: Outcome
    # Only set for Outcome.RENAMED: where the previous local file was moved to
    renamed_path: Optional[Path] = None

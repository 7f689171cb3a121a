import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Set, Tuple

from syncmyworkbin.errors import MetadataUnavailableError, PermanentIOError
from syncmyworkbin.resource import Outcome, OverwriteMode, OverwriteResult

logger = logging.getLogger(__name__)


def decide(
    last_updated: datetime, local_modified: Optional[datetime], mode: OverwriteMode
) -> Tuple[bool, Outcome]:
    """Decide whether to download and what to report.

    ``local_modified`` is None when there is no local file yet.
    """
    if local_modified is None:
        return True, Outcome.NEW_FILE
    if last_updated <= local_modified:
        return False, Outcome.ALREADY_HAVE
    if mode is OverwriteMode.SKIP:
        return False, Outcome.SKIPPED
    if mode is OverwriteMode.OVERWRITE:
        return True, Outcome.OVERWRITTEN
    return True, Outcome.RENAMED


def local_modified_time(path: Path) -> Optional[datetime]:
    """Modification time of ``path`` or None if there is nothing there."""
    try:
        stat = path.stat()
    except FileNotFoundError:
        return None
    except PermissionError as e:
        raise MetadataUnavailableError(
            f"Permission denied when retrieving file metadata of {path}"
        ) from e
    except OSError as e:
        raise MetadataUnavailableError(
            f"Unable to retrieve file metadata of {path}"
        ) from e
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


def autorename_path(
    path: Path, local_modified: datetime, reserved: Set[Path] = None
) -> Path:
    """Find a free name to move an outdated local file to.

    ``a.pdf`` last changed locally on 2024-01-01 becomes
    ``a_autorename_2024-01-01.pdf``, then ``a_autorename_2024-01-01_1.pdf`` and
    so on. Paths in ``reserved`` are treated as taken and the chosen path is
    added to it.
    """
    if reserved is None:
        reserved = set()
    stem = f"{path.stem}_autorename_{local_modified.astimezone():%Y-%m-%d}"
    candidate = path.with_name(stem + path.suffix)
    i = 0
    while candidate in reserved or candidate.exists() or candidate.is_symlink():
        i += 1
        candidate = path.with_name(f"{stem}_{i}{path.suffix}")
    reserved.add(candidate)
    return candidate


def prepare_path(
    path: Path,
    last_updated: datetime,
    mode: OverwriteMode,
    reserved: Set[Path] = None,
) -> Tuple[bool, OverwriteResult]:
    """Check ``path`` against the remote modification time.

    In rename mode the outdated local file is moved away before returning, so
    the new content can be written in its place.
    """
    local_modified = local_modified_time(path)
    should_download, outcome = decide(last_updated, local_modified, mode)
    if outcome is not Outcome.RENAMED:
        return should_download, OverwriteResult(outcome)

    renamed_path = autorename_path(path, local_modified, reserved)
    try:
        path.rename(renamed_path)
    except OSError as e:
        raise PermanentIOError(
            f"Failed renaming existing file {path} to {renamed_path}"
        ) from e
    logger.debug(f"Moved outdated {path} to {renamed_path}")
    return should_download, OverwriteResult(outcome, renamed_path=renamed_path)

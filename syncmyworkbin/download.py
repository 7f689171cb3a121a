import logging
from pathlib import Path
from typing import BinaryIO, Set

import httpx

from syncmyworkbin.conflict import prepare_path
from syncmyworkbin.errors import PermanentIOError
from syncmyworkbin.resource import OverwriteMode, OverwriteResult, Resource
from syncmyworkbin.sanitize import TEMP_PREFIX

TEMP_SUFFIX = ".part"

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """A failed download attempt, tagged with whether to try again."""

    def __init__(self, message: str, retry: bool) -> None:
        super().__init__(message)
        self.retry = retry


def temp_path_for(path: Path) -> Path:
    """Temporary download location, next to ``path`` so the final move is atomic"""
    return path.with_name(f"{TEMP_PREFIX}{path.name}{TEMP_SUFFIX}")


def is_transient_status(status_code: int) -> bool:
    return (
        status_code >= httpx.codes.INTERNAL_SERVER_ERROR
        or status_code == httpx.codes.TOO_MANY_REQUESTS
    )


def _remove_temp(temp_destination: Path) -> None:
    try:
        temp_destination.unlink(missing_ok=True)
    except OSError as e:
        raise PermanentIOError(
            f"Unable to delete temporary file {temp_destination}"
        ) from e


async def download(
    api,
    resource: Resource,
    destination: Path,
    temp_destination: Path,
    overwrite: OverwriteMode,
    reserved: Set[Path] = None,
) -> OverwriteResult:
    should_download, result = prepare_path(
        destination, resource.last_updated, overwrite, reserved
    )
    if should_download:
        download_url = await resource.get_download_url(api)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PermanentIOError(
                f"Unable to create directory {destination.parent}"
            ) from e
        await infinite_retry_download(api, download_url, destination, temp_destination)
        # The local modification time stays at download time, not the remote one
    return result


async def infinite_retry_download(
    api, download_url: str, destination: Path, temp_destination: Path
) -> None:
    """Stream ``download_url`` into ``temp_destination`` and move it into place.

    Transient failures restart the download from scratch, without any limit.
    Anything else removes the temporary file and raises PermanentIOError.
    ``destination`` is only ever replaced by a complete download.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            file = temp_destination.open("wb")
        except OSError as e:
            raise PermanentIOError(
                f"Unable to open temporary file {temp_destination}"
            ) from e
        try:
            with file:
                await download_chunks(api, download_url, file)
        except RetryableError as err:
            _remove_temp(temp_destination)
            if not err.retry:
                raise PermanentIOError(f"{err} ({destination})") from err.__cause__
            logger.debug(
                f"Retrying {destination} after attempt {attempt} failed: {err.__cause__!r}"
            )
            continue
        except BaseException:
            # cancelled, or failed in a way we cannot classify
            _remove_temp(temp_destination)
            raise

        try:
            temp_destination.replace(destination)
        except OSError as e:
            _remove_temp(temp_destination)
            raise PermanentIOError(
                f"Unable to move temporary file to {destination}"
            ) from e
        return


async def download_chunks(api, download_url: str, file: BinaryIO) -> None:
    try:
        async with api.stream(download_url) as chunks:
            async for chunk in chunks:
                try:
                    file.write(chunk)
                except OSError as e:
                    raise RetryableError("Failed writing to disk", retry=False) from e
    except httpx.HTTPStatusError as e:
        raise RetryableError(
            f"Server answered {e.response.status_code}",
            retry=is_transient_status(e.response.status_code),
        ) from e
    except (httpx.TransportError, httpx.DecodingError) as e:
        # connection lost, or the body broke off mid-stream
        raise RetryableError("Failed during download", retry=True) from e

import asyncio
import logging
from pathlib import Path
from typing import (
    Any,
    Awaitable,
    Dict,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
    Union,
)

from tqdm import tqdm

from syncmyworkbin.api import API_BASE, Api
from syncmyworkbin.download import download, temp_path_for
from syncmyworkbin.errors import AuthenticationError, InvalidDestinationError
from syncmyworkbin.filetree import File, Module
from syncmyworkbin.multimedia import Video
from syncmyworkbin.resource import (
    DEFAULT_RESOLVE_PARALLELISM,
    Outcome,
    OverwriteMode,
    OverwriteResult,
    Resource,
)

TAKING = "taking"
TEACHING = "teaching"
FILE_PARALLELISM = 64
MULTIMEDIA_PARALLELISM = 4

R = TypeVar("R", bound=Resource)

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    """Everything that could be resolved, plus one error per failed root"""

    resources: List[Any]
    errors: List[Exception]


async def gather_roots(loaders: Iterable[Awaitable[List[R]]]) -> Resolution:
    """Run root loaders concurrently without letting one failure stop the rest.

    An AuthenticationError is raised again since no other root can succeed.
    """
    resources: List[R] = []
    errors: List[Exception] = []
    for result in await asyncio.gather(*loaders, return_exceptions=True):
        if isinstance(result, AuthenticationError):
            raise result
        if isinstance(result, BaseException):
            errors.append(result)
        else:
            resources.extend(result)
    return Resolution(resources, errors)


def remove_path_collisions(resources: Sequence[R]) -> List[R]:
    """Keep only the last resource for every local path.

    Distinct remote names can sanitize to the same local name, in which case
    only one of them can be stored.
    """
    by_path: Dict[Path, R] = {}
    for resource in resources:
        previous = by_path.pop(resource.path, None)
        if previous is not None:
            logger.warning(
                f"{resource.path} exists more than once remotely, only one of them is synced"
            )
        by_path[resource.path] = resource
    return list(by_path.values())


def report(path: Path, result: Union[OverwriteResult, Exception]) -> None:
    if isinstance(result, Exception):
        logger.error(f"Failed to download file {path}: {result}")
    elif result.outcome is Outcome.NEW_FILE:
        logger.info(f"Downloaded to {path}")
    elif result.outcome is Outcome.ALREADY_HAVE:
        logger.debug(f"Already have {path}")
    elif result.outcome is Outcome.SKIPPED:
        logger.info(f"Skipped {path}")
    elif result.outcome is Outcome.OVERWRITTEN:
        logger.info(f"Updated {path}")
    elif result.outcome is Outcome.RENAMED:
        logger.info(f"Renamed {path} to {result.renamed_path}")


class SyncWorkbin:
    def __init__(self, config: Dict[str, Any], api: Api = None) -> None:
        self.config = config
        self.api = api or Api(config["token"], config.get("api_base") or API_BASE)
        self.resolve_parallelism = config.get(
            "resolve_parallelism", DEFAULT_RESOLVE_PARALLELISM
        )

    async def __aenter__(self) -> "SyncWorkbin":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.api.aclose()

    async def get_modules(self, term: str = None) -> List[Module]:
        return [Module.from_json(m) for m in await self.api.list_modules(term)]

    async def load_module_files(
        self, modules: Iterable[Module], include_uploadable: Set[str] = frozenset()
    ) -> List[File]:
        """Resolve the workbins of all accessible modules into a flat file list

        ``include_uploadable`` holds the module categories (taking, teaching)
        whose upload folders are synced as well.
        """
        limiter = asyncio.Semaphore(self.resolve_parallelism)
        loaders = []
        for module in modules:
            if not module.has_access():
                continue
            root = module.workbin_root()
            root.limiter = limiter
            category = TEACHING if module.is_teaching() else TAKING
            loaders.append(root.load(self.api, category in include_uploadable))

        files, errors = await gather_roots(loaders)
        for e in errors:
            logger.error(f"Failed loading module files: {e}")
        return remove_path_collisions(files)

    async def load_module_multimedia(self, modules: Iterable[Module]) -> List[Video]:
        limiter = asyncio.Semaphore(self.resolve_parallelism)
        loaders = []
        for module in modules:
            if not module.has_access():
                continue
            root = module.multimedia_root()
            root.limiter = limiter
            loaders.append(root.load(self.api))

        videos, errors = await gather_roots(loaders)
        for e in errors:
            logger.error(f"Failed loading module multimedia: {e}")
        return remove_path_collisions(videos)

    async def download_resource(
        self,
        resource: Resource,
        destination: Path,
        overwrite: OverwriteMode,
        reserved: Set[Path],
        timeout: Optional[float] = None,
    ) -> Union[OverwriteResult, Exception]:
        real_path = destination / resource.path
        temp_path = temp_path_for(real_path)
        try:
            result = await asyncio.wait_for(
                download(self.api, resource, real_path, temp_path, overwrite, reserved),
                timeout,
            )
        except AuthenticationError:
            raise
        except Exception as e:
            logger.debug(f"Download of {real_path} failed", exc_info=True)
            result = e
        report(real_path, result)
        return result

    async def download_resources(
        self,
        resources: Sequence[R],
        destination: Union[str, Path],
        overwrite: OverwriteMode,
        parallelism: int,
        timeout: Optional[float] = None,
    ) -> List[Tuple[R, Union[OverwriteResult, Exception]]]:
        """Download every resource below ``destination``

        At most ``parallelism`` resources are processed at the same time. A
        failing resource is reported and returned as its exception, the other
        resources are not affected.
        """
        logger.info(f"Download to {destination}")
        dest_path = Path(destination).expanduser()
        if not dest_path.is_dir():
            raise InvalidDestinationError(
                f"Download destination {dest_path} does not exist or is not a directory"
            )

        semaphore = asyncio.Semaphore(parallelism)
        reserved: Set[Path] = set()

        with tqdm(
            total=len(resources), unit="file", leave=False, disable=None
        ) as progress_bar:

            async def run(resource: R) -> Tuple[R, Union[OverwriteResult, Exception]]:
                async with semaphore:
                    result = await self.download_resource(
                        resource, dest_path, overwrite, reserved, timeout
                    )
                progress_bar.update(1)
                return resource, result

            tasks = [asyncio.ensure_future(run(r)) for r in resources]
            try:
                return list(await asyncio.gather(*tasks))
            except BaseException:
                # the whole batch is aborted, nothing may outlive it
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

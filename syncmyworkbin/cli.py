import asyncio
import json
import logging
import os
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from syncmyworkbin.errors import AuthenticationError, InvalidDestinationError
from syncmyworkbin.resource import DEFAULT_RESOLVE_PARALLELISM, OverwriteMode
from syncmyworkbin.sync import (
    FILE_PARALLELISM,
    MULTIMEDIA_PARALLELISM,
    TAKING,
    TEACHING,
    SyncWorkbin,
)

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="python3 -m syncmyworkbin",
        description="Mirror the workbins of your modules to disk. All optional arguments override those in config.json.",
    )
    parser.add_argument("--token", default=None, help="An already valid API token")
    parser.add_argument("--config", default=None, help="The path to the config file")
    parser.add_argument(
        "--files", action="store_true", help="List the paths of all workbin files"
    )
    parser.add_argument(
        "--download-to",
        default=None,
        help="The directory the workbin files will be synced to",
    )
    parser.add_argument(
        "--list-multimedia",
        action="store_true",
        help="List the paths of all multimedia videos",
    )
    parser.add_argument(
        "--download-multimedia-to",
        default=None,
        help="The directory the multimedia videos will be synced to",
    )
    parser.add_argument(
        "--include-uploadable-folders",
        nargs="*",
        default=None,
        choices=[TAKING, TEACHING, "all"],
        help="Also sync student upload folders of these module types (all if no type is given)",
    )
    parser.add_argument(
        "--updated",
        default=None,
        choices=[m.value for m in OverwriteMode],
        help="What to do with local files that are older than the remote ones (default: skip)",
    )
    parser.add_argument(
        "--term",
        default=None,
        help="Only sync modules of this term, of the form 2010",
    )
    parser.add_argument(
        "--verbose",
        action="store_const",
        dest="loglevel",
        const=logging.DEBUG,
        default=logging.INFO,
        help="Verbose output for debugging.",
    )
    return parser


def read_config(config_file: Optional[str]) -> Dict[str, Any]:
    """Load config.json, either the given one or the global and local ones merged"""
    config: Dict[str, Any] = {}
    if config_file:
        overwrite_config = Path(config_file)
        if overwrite_config.is_file():
            with overwrite_config.open() as f:
                config = json.load(f)
        return config

    global_config = (
        Path(os.environ.get("XDG_CONFIG_HOME", Path("~/.config").expanduser()))
        / "syncmyworkbin"
        / "config.json"
    )
    if global_config.is_file():
        with global_config.open() as f:
            config.update(json.load(f))

    local_config = Path("config.json")
    if local_config.is_file():
        with local_config.open() as f:
            config.update(json.load(f))
    return config


def parse_uploadable(values: Optional[List[str]]) -> Set[str]:
    if values is None:
        return set()
    if not values or "all" in values:
        return {TAKING, TEACHING}
    return set(values)


def load_config(args: Namespace) -> Dict[str, Any]:
    config = read_config(args.config)

    config["token"] = args.token or config.get("token")
    config["download_to"] = args.download_to or config.get("download_to")
    config["multimedia_download_to"] = args.download_multimedia_to or config.get(
        "multimedia_download_to"
    )
    config["include_uploadable"] = parse_uploadable(
        args.include_uploadable_folders
        if args.include_uploadable_folders is not None
        else config.get("include_uploadable")
    )
    config["updated"] = OverwriteMode(args.updated or config.get("updated", "skip"))
    config["term"] = args.term or config.get("term")
    config["file_parallelism"] = config.get("file_parallelism", FILE_PARALLELISM)
    config["multimedia_parallelism"] = config.get(
        "multimedia_parallelism", MULTIMEDIA_PARALLELISM
    )
    config["resolve_parallelism"] = config.get(
        "resolve_parallelism", DEFAULT_RESOLVE_PARALLELISM
    )
    config["timeout"] = config.get("timeout")
    return config


async def main(argv: List[str] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.term and not (len(args.term) == 4 and args.term.isdigit()):
        parser.error("--term must consist of exactly four digits")

    config = load_config(args)

    logging.basicConfig(level=args.loglevel, format="%(levelname)s: %(message)s")

    if not config.get("token"):
        logger.critical(
            "You need to specify your API token in the config file or as an argument!"
        )
        sys.exit(1)

    try:
        async with SyncWorkbin(config) as sw:
            await sync(sw, args, config)
    except (AuthenticationError, InvalidDestinationError) as e:
        logger.critical(e)
        sys.exit(1)


async def sync(sw: SyncWorkbin, args: Namespace, config: Dict[str, Any]) -> None:
    modules = await sw.get_modules(config["term"])
    logger.info("You are taking:")
    for module in modules:
        if module.is_taking():
            logger.info(f"- {module.code} {module.name}")
    logger.info("You are teaching:")
    for module in modules:
        if module.is_teaching():
            logger.info(f"- {module.code} {module.name}")

    if args.files or config["download_to"]:
        logger.info("Syncing file tree...")
        files = await sw.load_module_files(modules, config["include_uploadable"])
        if args.files:
            for file in files:
                print(file.path)
        if config["download_to"]:
            logger.info("Downloading files...")
            await sw.download_resources(
                files,
                config["download_to"],
                config["updated"],
                config["file_parallelism"],
                config["timeout"],
            )

    if args.list_multimedia or config["multimedia_download_to"]:
        logger.info("Syncing multimedia...")
        videos = await sw.load_module_multimedia(modules)
        if args.list_multimedia:
            for video in videos:
                print(video.path)
        if config["multimedia_download_to"]:
            logger.info("Downloading multimedia...")
            await sw.download_resources(
                videos,
                config["multimedia_download_to"],
                config["updated"],
                config["multimedia_parallelism"],
                config["timeout"],
            )


def run() -> None:
    asyncio.run(main())

import re
import sys

REPLACEMENT = "-"
# Names starting with this are reserved for partial downloads
TEMP_PREFIX = "~!"
MAX_NAME_BYTES = 255

WINDOWS_ILLEGAL_CHARS = re.compile(r'[/?<>\\:*|"\x00-\x1f\x80-\x9f]')
WINDOWS_RESERVED_NAMES = re.compile(
    r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE
)
WINDOWS_TRAILING = re.compile(r"[. ]+$")
DOTS_ONLY = re.compile(r"^\.+$")


def _truncate(name: str, limit: int = MAX_NAME_BYTES) -> str:
    encoded = name.encode("utf-8")
    if len(encoded) <= limit:
        return name
    return encoded[:limit].decode("utf-8", errors="ignore")


def sanitize(name: str, windows: bool = None) -> str:
    """Turn a remote name into a single path segment that is safe on disk.

    On Windows every character the filesystem rejects is replaced, reserved
    device names are defused and the result is truncated to 255 bytes.
    Everywhere else only null bytes and ``/`` are replaced.
    Names made only of dots are replaced on every platform since they would
    point at the current or parent directory, and so is an empty name. A
    leading ``~!`` is escaped so no resource can take the name of a partial
    download.
    """
    if windows is None:
        windows = sys.platform == "win32"

    if windows:
        name = WINDOWS_ILLEGAL_CHARS.sub(REPLACEMENT, name.strip())
        if WINDOWS_RESERVED_NAMES.match(name):
            name = REPLACEMENT
        name = WINDOWS_TRAILING.sub(REPLACEMENT, name)
        name = _truncate(name)
    else:
        name = name.replace("\0", REPLACEMENT).replace("/", REPLACEMENT)

    if not name:
        name = REPLACEMENT
    elif DOTS_ONLY.match(name):
        name = REPLACEMENT * len(name)
    if name.startswith(TEMP_PREFIX):
        name = TEMP_PREFIX[0] + REPLACEMENT + name[len(TEMP_PREFIX):]
    return name

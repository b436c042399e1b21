"""Utility functions for bidscoin-wrangler."""

import os
import re
import datetime
import platform
import shutil
import subprocess
from collections import deque
from pathlib import Path
from typing import Optional

import requests
from ruamel.yaml import YAML  # type: ignore[import]


# NOTE: to keep this module easily importable everywhere in our code, avoid bidscoin_wrangler imports

# --------------------------- YAML helpers to isolate ruamel.yaml details -------------------


def get_yaml() -> YAML:
    """Return configured ruamel.yaml instance.  Record metadata is meant to be
    read by people as well as by the wrangler,  so key order is preserved and
    the layout kept simple.
    """
    yaml = YAML()
    yaml.preserve_quotes = True
    yaml.indent(mapping=2, sequence=4, offset=2)
    return yaml


def yaml_load_file(path: Path) -> dict:
    with Path(path).open("r") as stream:
        return get_yaml().load(stream) or {}


def yaml_dump_file(obj, path: Path) -> Path:
    path = Path(path)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w+") as stream:
        get_yaml().dump(obj, stream)
    tmp_path.replace(path)
    return path


# -----------------------------------------------------------------------------


def elapsed_time(start_time: datetime.datetime) -> tuple[datetime.datetime, str]:
    """Returns a string representing the elapsed time between the `start_time`
    and current time.
    """
    now = datetime.datetime.now()
    delta = now - start_time
    total_seconds = int(delta.total_seconds())
    days = delta.days
    hours = (total_seconds % 86400) // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    millis = delta.microseconds // 1000
    if days:
        return (
            now,
            f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}",
        )
    else:
        return (
            now,
            f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}",
        )


def timestamp() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


def tail_file(filepath: str | Path, lines: int = 20) -> str:
    """Return the last `lines` lines of `filepath`,  or "" if unreadable."""
    try:
        with open(filepath, "r", errors="replace") as opened:
            return "".join(deque(opened, maxlen=lines))
    except OSError:
        return ""


# -------------------------------------------------------------------------


class WranglerError(RuntimeError):
    """Base class for failures that abort a wrangler command."""


class UnknownVersionError(WranglerError):
    """The requested release tag does not exist."""

    def __init__(self, tag: str, known_tags: list[str]):
        self.tag = tag
        self.known_tags = list(known_tags)
        shown = " ".join(self.known_tags) if self.known_tags else "(none)"
        super().__init__(f"Version {tag} not found. Available versions: {shown}")


class NoReleaseFoundError(WranglerError):
    """Stable was requested but the repository has no release tags."""


class NetworkError(WranglerError):
    """Clone or fetch failed after exhausting the retry budget."""


class EnvironmentCreationError(WranglerError):
    """The interpreter could not create the isolated environment."""


class DependencyInstallError(WranglerError):
    """The dependency installer exited non-zero."""

    def __init__(self, message: str, log_path: Optional[Path] = None, log_tail: str = ""):
        self.log_path = log_path
        self.log_tail = log_tail
        super().__init__(message)


class NotFoundError(WranglerError):
    """The requested record does not exist."""


class UnsupportedPlatformError(WranglerError):
    """No standalone interpreter is published for this OS / architecture."""


class DownloadError(WranglerError):
    """Something went wrong downloading an interpreter distribution."""


class InsufficientResourceWarning(UserWarning):
    """Disk or memory is below the recommended minimum."""


# -------------------------------------------------------------------------


def rm_path(path: str | Path) -> None:
    """Remove the given path whatever it is."""
    path = Path(path)
    if path.is_symlink():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def clear_pycache(directory_path: str | Path) -> int:
    """Delete compiled Python artifacts under `directory_path`,  returning the
    number of items removed.
    """
    removed = 0
    root = Path(directory_path)
    for cache_dir in list(root.rglob("__pycache__")):
        if cache_dir.is_dir():
            shutil.rmtree(cache_dir, ignore_errors=True)
            removed += 1
    for pyc in list(root.rglob("*.pyc")):
        pyc.unlink(missing_ok=True)
        removed += 1
    return removed


# ------------------------------- resource checks ------------------------


def free_disk_gb(path: str | Path) -> int:
    """Free space in whole GB on the filesystem holding `path` or its
    nearest existing parent.
    """
    path = Path(path)
    while not path.exists() and path != path.parent:
        path = path.parent
    return shutil.disk_usage(path).free // (1024**3)


def meminfo_available_bytes(text: str) -> Optional[int]:
    """Parse MemAvailable out of /proc/meminfo text."""
    match = re.search(r"^MemAvailable:\s+(\d+)\s*kB", text, re.MULTILINE)
    return int(match.group(1)) * 1024 if match else None


def vm_stat_available_bytes(text: str) -> Optional[int]:
    """Parse macOS vm_stat output.  Free,  inactive and speculative pages
    can all be handed to new processes without swapping.
    """
    page_size = re.search(r"page size of (\d+) bytes", text)
    if not page_size:
        return None
    pages = 0
    found = False
    for kind in ("free", "inactive", "speculative"):
        match = re.search(rf"^Pages {kind}:\s+(\d+)\.?", text, re.MULTILINE)
        if match:
            pages += int(match.group(1))
            found = True
    return pages * int(page_size.group(1)) if found else None


def _sysconf_available_bytes() -> Optional[int]:
    try:
        pages = os.sysconf("SC_AVPHYS_PAGES")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (ValueError, OSError, AttributeError):
        return None
    if pages < 0 or page_size < 0:
        return None
    return pages * page_size


def available_memory_gb(
    meminfo: str | Path = "/proc/meminfo", system: Optional[str] = None
) -> Optional[int]:
    """Memory available to new processes in whole GB,  or None where it can't
    be determined.

    Linux reports MemAvailable from `meminfo`,  which counts reclaimable page
    cache unlike MemFree.  macOS is read from vm_stat.  Anything else falls
    back to sysconf's free physical pages.
    """
    system = system or platform.system()
    available = None
    if system == "Linux":
        try:
            available = meminfo_available_bytes(Path(meminfo).read_text())
        except OSError:
            available = None
    elif system == "Darwin":
        try:
            output = subprocess.run(
                ["vm_stat"], capture_output=True, text=True, check=True, timeout=10
            ).stdout
        except (OSError, subprocess.SubprocessError):
            output = ""
        available = vm_stat_available_bytes(output)
    if available is None:
        available = _sysconf_available_bytes()
    return available // (1024**3) if available is not None else None


# ------------------------------- downloads ------------------------------


def download_file(url: str, filepath: str | Path, timeout: int = 60) -> int:
    """Stream `url` into `filepath` returning the number of bytes written.

    On failure the partial file is removed and DownloadError raised.
    """
    filepath = Path(filepath)
    written = 0
    try:
        with requests.get(url, stream=True, timeout=timeout, allow_redirects=True) as response:
            response.raise_for_status()
            with filepath.open("wb") as stream:
                for chunk in response.iter_content(chunk_size=1 << 20):
                    if chunk:
                        stream.write(chunk)
                        written += len(chunk)
    except (requests.exceptions.RequestException, OSError) as e:
        if filepath.exists():
            filepath.unlink()
        raise DownloadError(f"Failed downloading '{url}': {e}") from e
    return written

"""Standalone interpreter support.

Standalone records do not depend on any system Python at all.  A relocatable
CPython build from python-build-standalone is downloaded and unpacked into
the record and the record's venv is created from it.
"""

import platform
import tarfile
import tempfile
from pathlib import Path
from typing import Optional

from .config import WranglerConfigurable
from .logger import WranglerLoggable
from .constants import (
    STANDALONE_PYTHON_VERSION,
    STANDALONE_BUILD_DATE,
    STANDALONE_URL_TEMPLATE,
    STANDALONE_TRIPLES,
    MIN_DOWNLOAD_BYTES,
    DOWNLOAD_TIMEOUT,
)
from . import utils
from .utils import DownloadError, UnsupportedPlatformError

OS_NAMES = {
    "linux": "linux",
    "darwin": "macos",
}

ARCH_NAMES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def detect_platform(
    system: Optional[str] = None, machine: Optional[str] = None
) -> tuple[str, str]:
    """Normalize platform.system() / platform.machine() to (os, arch)."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    os_name = OS_NAMES.get(system)
    if os_name is None:
        raise UnsupportedPlatformError(f"Unsupported operating system: {system}")
    arch = ARCH_NAMES.get(machine)
    if arch is None:
        raise UnsupportedPlatformError(f"Unsupported architecture: {machine}")
    return os_name, arch


def distribution_url(
    os_name: str,
    arch: str,
    version: str = STANDALONE_PYTHON_VERSION,
    build_date: str = STANDALONE_BUILD_DATE,
) -> str:
    try:
        triple = STANDALONE_TRIPLES[(os_name, arch)]
    except KeyError:
        raise UnsupportedPlatformError(
            f"No standalone Python is available for {os_name} {arch}."
        ) from None
    return STANDALONE_URL_TEMPLATE.format(
        version=version, build_date=build_date, triple=triple
    )


def _strip_first_component(members):
    """Yield tar members with their leading directory removed,  like
    tar --strip-components=1.
    """
    for member in members:
        parts = Path(member.name).parts
        if len(parts) <= 1:
            continue
        member.name = str(Path(*parts[1:]))
        if member.islnk():
            link_parts = Path(member.linkname).parts
            member.linkname = str(Path(*link_parts[1:]))
        yield member


class StandalonePython(WranglerConfigurable, WranglerLoggable):
    """Downloads and unpacks a standalone CPython into a record."""

    def __init__(self, config=None, system=None, machine=None):
        super().__init__(config)
        self.os_name, self.arch = detect_platform(system, machine)
        self.version = STANDALONE_PYTHON_VERSION
        self.url = distribution_url(self.os_name, self.arch, self.version)

    def python_path(self, python_dir: Path) -> Path:
        return Path(python_dir) / "bin" / "python3"

    def install(self, python_dir: Path) -> Path:
        """Download and extract the distribution into `python_dir` returning
        the path of its python3 executable.
        """
        python_dir = Path(python_dir)
        self.logger.info(
            f"Downloading standalone Python {self.version} for {self.os_name} {self.arch}."
        )
        self.logger.debug(f"Distribution URL: {self.url}")
        with tempfile.TemporaryDirectory(prefix="bcw-python-") as tmp:
            archive = Path(tmp) / "python.tar.gz"
            size = utils.download_file(self.url, archive, timeout=DOWNLOAD_TIMEOUT)
            self.check_download(archive, size)
            self.extract(archive, python_dir)
        python = self.python_path(python_dir)
        if not python.exists():
            raise DownloadError(
                f"Standalone Python archive did not provide {python}."
            )
        self.logger.info(f"Standalone Python installed at {python_dir}.")
        return python

    def check_download(self, archive: Path, size: Optional[int] = None) -> int:
        size = Path(archive).stat().st_size if size is None else size
        if size < MIN_DOWNLOAD_BYTES:
            raise DownloadError(
                f"Downloaded file is too small ({size} bytes),  the download probably failed: {self.url}"
            )
        self.logger.debug(f"Downloaded {size} bytes.")
        return size

    def extract(self, archive: Path, python_dir: Path) -> Path:
        self.logger.info(f"Extracting Python into {python_dir}.")
        python_dir.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(archive, "r:gz") as tar:
                tar.extractall(
                    python_dir, members=_strip_first_component(tar), filter="data"
                )
        except (tarfile.TarError, OSError) as e:
            raise DownloadError(f"Failed extracting {archive}: {e}") from e
        return python_dir

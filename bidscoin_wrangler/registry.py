"""Registry of installed toolkit records.

Layout under the wrangler root::

    envs/<name>/source/        checked out toolkit
    envs/<name>/env/           venv
    envs/<name>/record.yaml    metadata,  written last
    current                    name of the active record

Only directories holding a record.yaml are considered installed records,
anything else under envs/ is debris from an interrupted install.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .config import WranglerConfigurable
from .logger import WranglerLoggable
from .constants import (
    RECORD_FILE,
    SOURCE_SUBDIR,
    ENV_SUBDIR,
    PYTHON_SUBDIR,
    DATA_SUBDIR,
    ACTIVATE_SCRIPT,
)
from . import utils
from .utils import NotFoundError
from .versions import VersionSelector, parse_selector, display_name


class IsolationMode(Enum):
    SYSTEM = "system"
    STANDALONE = "standalone"


class RecordState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    MATERIALIZING = "materializing"
    READY = "ready"
    FAILED = "failed"
    REMOVED = "removed"


@dataclass
class EnvironmentRecord:
    """One installed (or installable) copy of the toolkit."""

    name: str
    selector: VersionSelector
    source_ref: str
    record_dir: Path
    isolation: IsolationMode = IsolationMode.SYSTEM
    branch: Optional[str] = None
    commit: Optional[str] = None
    commit_date: Optional[str] = None
    repo_url: str = ""
    toolkit_version: Optional[str] = None
    created: Optional[str] = None
    is_current: bool = False
    state: RecordState = field(default=RecordState.RESOLVED)

    @property
    def install_path(self) -> Path:
        return self.record_dir / SOURCE_SUBDIR

    @property
    def env_path(self) -> Path:
        return self.record_dir / ENV_SUBDIR

    @property
    def python_dir(self) -> Path:
        return self.record_dir / PYTHON_SUBDIR

    @property
    def data_dir(self) -> Path:
        return self.record_dir / DATA_SUBDIR

    @property
    def activate_script(self) -> Path:
        return self.record_dir / ACTIVATE_SCRIPT

    @property
    def metadata_path(self) -> Path:
        return self.record_dir / RECORD_FILE

    @property
    def is_standalone(self) -> bool:
        return self.isolation is IsolationMode.STANDALONE

    @property
    def display_name(self) -> str:
        return display_name(self.name)

    def to_dict(self) -> dict:
        return dict(
            name=self.name,
            selector=str(self.selector),
            source_ref=self.source_ref,
            isolation=self.isolation.value,
            branch=self.branch,
            commit=self.commit,
            commit_date=self.commit_date,
            repo_url=self.repo_url,
            toolkit_version=self.toolkit_version,
            created=self.created,
            install_path=str(self.install_path),
            env_path=str(self.env_path),
        )

    @classmethod
    def from_dict(cls, record_dir: Path, data: dict) -> "EnvironmentRecord":
        return cls(
            name=data.get("name", Path(record_dir).name),
            selector=parse_selector(data.get("selector")),
            source_ref=str(data.get("source_ref", "")),
            record_dir=Path(record_dir),
            isolation=IsolationMode(data.get("isolation", IsolationMode.SYSTEM.value)),
            branch=data.get("branch"),
            commit=data.get("commit"),
            commit_date=data.get("commit_date"),
            repo_url=data.get("repo_url", ""),
            toolkit_version=data.get("toolkit_version"),
            created=data.get("created"),
            state=RecordState.READY,
        )


class EnvironmentRegistry(WranglerConfigurable, WranglerLoggable):
    """The persisted collection of records plus the current pointer."""

    def __init__(self, config=None):
        super().__init__(config)
        self.envs_dir = self.config.envs_dir
        self.current_file = self.config.current_file

    def record_dir(self, name: str) -> Path:
        return self.envs_dir / name

    def exists(self, name: str) -> bool:
        """True IFF record `name` finished installing."""
        return (self.record_dir(name) / RECORD_FILE).exists()

    def list(self) -> list[EnvironmentRecord]:
        """Every installed record sorted by name,  the current one flagged."""
        if not self.envs_dir.exists():
            return []
        records = []
        for path in sorted(self.envs_dir.iterdir()):
            if path.is_dir() and (path / RECORD_FILE).exists():
                records.append(self.load(path.name))
        return records

    def get(self, name: str) -> Optional[EnvironmentRecord]:
        return self.load(name) if self.exists(name) else None

    def load(self, name: str) -> EnvironmentRecord:
        path = self.record_dir(name) / RECORD_FILE
        try:
            data = utils.yaml_load_file(path)
        except FileNotFoundError:
            raise NotFoundError(f"Environment {name} not found.") from None
        record = EnvironmentRecord.from_dict(self.record_dir(name), dict(data))
        record.is_current = record.name == self.current_name()
        return record

    def save(self, record: EnvironmentRecord) -> Path:
        """Write record metadata,  marking the record ready."""
        record.created = record.created or utils.timestamp()
        record.record_dir.mkdir(parents=True, exist_ok=True)
        path = utils.yaml_dump_file(record.to_dict(), record.metadata_path)
        record.state = RecordState.READY
        self.logger.debug(f"Saved record metadata {path}.")
        return path

    def remove(self, record: EnvironmentRecord) -> bool:
        """Delete the record's checkout and venv along with its directory."""
        if not (record.install_path.exists() or record.env_path.exists()):
            if record.record_dir.exists():
                utils.rm_path(record.record_dir)
            raise NotFoundError(f"Environment {record.name} not found.")
        self.logger.info(f"Removing {record.name} from {record.record_dir}.")
        utils.rm_path(record.record_dir)
        record.state = RecordState.REMOVED
        if self.current_name() == record.name:
            self.clear_current()
        record.is_current = False
        return True

    def remove_all(self) -> int:
        """Delete every record directory,  complete or not,  and the pointer."""
        count = 0
        if self.envs_dir.exists():
            for path in sorted(self.envs_dir.iterdir()):
                self.logger.info(f"Removing {path.name}.")
                utils.rm_path(path)
                count += 1
        self.clear_current()
        return count

    # ------------------------------------------------------------------------------

    def current_name(self) -> Optional[str]:
        if not self.current_file.exists():
            return None
        return self.current_file.read_text().strip() or None

    def current(self) -> Optional[EnvironmentRecord]:
        name = self.current_name()
        if name is None:
            return None
        if not self.exists(name):
            self.logger.warning(f"Current environment {name} no longer exists.")
            return None
        return self.load(name)

    def set_current(self, record: EnvironmentRecord) -> None:
        self.current_file.parent.mkdir(parents=True, exist_ok=True)
        self.current_file.write_text(record.name + "\n")
        record.is_current = True
        self.logger.debug(f"Current environment set to {record.name}.")

    def clear_current(self) -> None:
        if self.current_file.exists():
            self.current_file.unlink()
            self.logger.debug("Current environment pointer cleared.")

    def age_days(self, record: EnvironmentRecord) -> Optional[int]:
        if not record.created:
            return None
        try:
            created = datetime.datetime.fromisoformat(str(record.created))
        except ValueError:
            return None
        return (datetime.datetime.now() - created).days

"""Turning a resolved record into a working installation on disk."""

import contextlib
from pathlib import Path
from typing import Optional

from .config import WranglerConfigurable
from .logger import WranglerLoggable
from .environment import WranglerEnvable
from .repository import RepositoryManager
from .registry import EnvironmentRegistry, EnvironmentRecord, RecordState
from .standalone import StandalonePython
from .activation import write_activation_script
from . import utils


class Materializer(WranglerConfigurable, WranglerLoggable, WranglerEnvable):
    """Checks out,  creates the venv for,  and installs one record.

    Only paths created by the current materialize() call are removed when it
    fails or is interrupted;  other records and any pre-existing parts of
    this one are left alone.
    """

    def __init__(
        self,
        config=None,
        repository: Optional[RepositoryManager] = None,
        registry: Optional[EnvironmentRegistry] = None,
    ):
        super().__init__(config)
        self.repository = repository or RepositoryManager(self.config)
        self.registry = registry or EnvironmentRegistry(self.config)

    def standalone_python(self) -> StandalonePython:
        return StandalonePython(self.config)

    @contextlib.contextmanager
    def cleanup_on_failure(self, record: EnvironmentRecord):
        """Yield a list which callers append created paths to.  If the body
        raises anything,  including KeyboardInterrupt,  those paths are
        deleted newest first and the exception re-raised.
        """
        created: list[Path] = []
        try:
            yield created
        except BaseException:
            record.state = RecordState.FAILED
            for path in reversed(created):
                try:
                    if path.exists() or path.is_symlink():
                        self.logger.info(f"Cleaning up {path}.")
                        utils.rm_path(path)
                except OSError as e:
                    self.logger.warning(f"Failed to clean up {path}: {e}")
            raise

    def _track(self, created: list[Path], path: Path) -> None:
        if not path.exists():
            created.append(path)

    def materialize(
        self, record: EnvironmentRecord, force: bool = False
    ) -> EnvironmentRecord:
        """Install `record` returning the ready record.

        An already installed record is reused as-is unless `force` is set,  in
        which case it is removed and rebuilt.
        """
        if self.registry.exists(record.name):
            existing = self.registry.load(record.name)
            if not force:
                self.logger.info(
                    f"{record.display_name} is already installed at {existing.record_dir}."
                )
                return existing
            self.logger.warning(f"Replacing existing installation {record.name}.")
            self.registry.remove(existing)

        self.logger.info(f"Installing {record.display_name} into {record.record_dir}.")
        record.state = RecordState.MATERIALIZING
        with self.cleanup_on_failure(record) as created:
            self._track(created, record.record_dir)
            record.record_dir.mkdir(parents=True, exist_ok=True)

            python = self.config.python
            if record.is_standalone:
                self._track(created, record.python_dir)
                standalone = self.standalone_python()
                python = standalone.python_path(record.python_dir)
                if not python.exists():
                    python = standalone.install(record.python_dir)

            self.repository.ensure_mirror(refresh=False)
            self._track(created, record.install_path)
            self.repository.checkout(
                record.source_ref, record.install_path, branch=record.branch
            )
            if record.commit is None:
                record.commit = self.repository.get_hash(record.install_path, short=True)

            if not self.env_manager.environment_exists(record.env_path):
                self._track(created, record.env_path)
                self.env_manager.create_environment(record.env_path, python)

            log_path = self.env_manager.install_packages(
                record.env_path, record.install_path
            )
            removed = utils.clear_pycache(record.install_path)
            self.logger.debug(f"Removed {removed} cached bytecode items.")

            if self.config.verify:
                record.toolkit_version = self.env_manager.test_import(
                    record.env_path, self.config.import_name
                )
            else:
                self.logger.warning("Skipping installation verification.")

            if record.is_standalone:
                self._track(created, record.data_dir)
                self._track(created, record.activate_script)
                write_activation_script(record)

            self.registry.save(record)
        if log_path and Path(log_path).exists():
            Path(log_path).unlink()
        self.logger.info(f"Installed {record.display_name}.")
        return record

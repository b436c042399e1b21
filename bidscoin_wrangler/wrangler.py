# bidscoin_wrangler/wrangler.py
"""Main VersionWrangler class orchestrating wrangler commands."""

import sys
from typing import Optional

from .constants import (
    MIN_DISK_GB,
    MIN_MEMORY_GB,
    VERSIONS_LIST_LIMIT,
    LEGACY_MAJOR,
    OLDER_MINOR,
)
from .config import WranglerConfigurable
from .logger import WranglerLoggable
from .repository import RepositoryManager
from .registry import EnvironmentRegistry, EnvironmentRecord, IsolationMode
from .resolver import VersionEnvironmentResolver
from .materializer import Materializer
from .activation import activation_snippet, activation_command
from .versions import parse_selector, tag_record_name, version_status
from . import utils
from .utils import InsufficientResourceWarning, NotFoundError, WranglerError


class VersionWrangler(WranglerConfigurable, WranglerLoggable):
    """Top level driver,  one method per CLI command.

    Command methods return True on success and False on a handled failure.
    Wrangler errors propagate to the CLI which reports them.
    """

    def __init__(self, config=None):
        super().__init__(config)
        self.repository = RepositoryManager(self.config)
        self.registry = EnvironmentRegistry(self.config)
        self.resolver = VersionEnvironmentResolver(
            self.config, repository=self.repository, registry=self.registry
        )
        self.materializer = Materializer(
            self.config, repository=self.repository, registry=self.registry
        )

    @property
    def isolation(self) -> IsolationMode:
        return IsolationMode(self.config.isolation)

    def main(self) -> bool:
        """Dispatch the configured command."""
        self.logger.debug(f"Starting wrangler configuration: {self.config}")
        match self.config.command:
            case "resolve":
                return self.resolve_command()
            case "install":
                return self.install_command()
            case "list":
                return self.list_command()
            case "remove":
                return self.remove_command()
            case "use":
                return self.use_command()
            case "current":
                return self.current_command()
            case "versions":
                return self.versions_command()
            case "clean-all":
                return self.clean_all_command()
            case _:
                return self.logger.error(f"Undefined command {self.config.command}.")

    # ------------------------------------------------------------------------------

    def confirm(self, prompt: str) -> bool:
        """Ask a y/N question,  defaulting to no."""
        if self.config.yes:
            return True
        while True:
            print(f"{prompt} (y/N): ", end="", file=sys.stderr, flush=True)
            try:
                choice = input().strip().lower()
            except EOFError:
                return False
            if choice in ("y", "yes"):
                return True
            elif choice in ("", "n", "no"):
                return False

    def check_resources(
        self, isolation: IsolationMode
    ) -> list[InsufficientResourceWarning]:
        """Return warnings for disk or memory below the recommended minimums."""
        shortfalls = []
        min_disk = MIN_DISK_GB[isolation.value]
        free_disk = utils.free_disk_gb(self.config.root)
        self.logger.debug(f"Free disk space: {free_disk} GB.")
        if free_disk < min_disk:
            shortfalls.append(
                InsufficientResourceWarning(
                    f"Low disk space: {free_disk} GB available,  at least {min_disk} GB recommended."
                )
            )
        memory = utils.available_memory_gb()
        if memory is None:
            self.logger.warning("Could not determine available memory,  skipping memory check.")
        elif memory < MIN_MEMORY_GB:
            shortfalls.append(
                InsufficientResourceWarning(
                    f"Low memory: {memory} GB available,  {MIN_MEMORY_GB} GB recommended."
                )
            )
        return shortfalls

    def preflight(self, isolation: IsolationMode) -> bool:
        """Check resources,  asking the user to continue past any shortfall."""
        shortfalls = self.check_resources(isolation)
        for warning in shortfalls:
            self.logger.warning(str(warning))
        if shortfalls and not self.confirm("Continue anyway?"):
            self.logger.info("Installation cancelled.")
            return False
        return True

    def _materialize(self, record: EnvironmentRecord) -> EnvironmentRecord:
        return self.materializer.materialize(record, force=self.config.force)

    # ------------------------------------------------------------------------------

    def resolve_command(self) -> bool:
        selector = parse_selector(self.config.selector)
        record = self.resolver.resolve(selector, self.isolation)
        print(f"{record.source_ref} {record.name}")
        return True

    def install_command(self) -> bool:
        selector = parse_selector(self.config.selector)
        record = self.resolver.resolve(selector, self.isolation)
        if self.registry.exists(record.name) and not self.config.force:
            self.logger.info(f"{record.display_name} is already installed.")
        elif not self.preflight(record.isolation):
            return True
        record = self._materialize(record)
        self.registry.set_current(record)
        self.logger.info(f"To activate: {activation_command(record)}")
        self.logger.info(f'Or:          eval "$(bidscoin-wrangler use {selector})"')
        return True

    def list_command(self) -> bool:
        records = self.registry.list()
        if not records:
            self.logger.info("No versions installed.")
            return True
        for record in records:
            marker = "*" if record.is_current else " "
            current = " (current)" if record.is_current else ""
            version = record.toolkit_version or record.source_ref
            age = self.registry.age_days(record)
            age_str = f",  {age} days old" if age is not None else ""
            print(f"{marker} {record.name}{current}")
            print(f"    version:  {version} [{record.isolation.value}{age_str}]")
            print(f"    source:   {record.install_path}")
            print(f"    env:      {record.env_path}")
            print(f"    activate: {activation_command(record)}")
        return True

    def _find_record(self, token: str) -> Optional[EnvironmentRecord]:
        """Locate an installed record from a record name or selector.

        Explicit tags look for the record of the configured isolation mode
        first and then the other one.
        """
        if self.registry.exists(token):
            return self.registry.load(token)
        selector = parse_selector(token)
        if selector.is_explicit:
            standalone = self.isolation is IsolationMode.STANDALONE
            for name in (
                tag_record_name(selector.tag, standalone=standalone),
                tag_record_name(selector.tag, standalone=not standalone),
            ):
                if self.registry.exists(name):
                    return self.registry.load(name)
            return None
        try:
            name = self.resolver.resolve(selector, self.isolation).name
        except WranglerError as e:
            self.logger.warning(f"Could not resolve {token}: {e}")
            return None
        return self.registry.get(name)

    def remove_command(self) -> bool:
        token = self.config.selector
        record = self._find_record(token)
        if record is None:
            self.logger.warning(f"Version {token} is not installed,  nothing to remove.")
            return True
        try:
            self.registry.remove(record)
        except NotFoundError as e:
            self.logger.warning(str(e))
            return True
        self.logger.info(f"Removed {record.display_name}.")
        return True

    def use_command(self) -> bool:
        selector = parse_selector(self.config.selector)
        record = self.resolver.resolve(selector, self.isolation)
        if self.registry.exists(record.name) and not self.config.force:
            record = self.registry.load(record.name)
        else:
            self.logger.info(f"{record.display_name} is not installed yet,  installing.")
            if not self.preflight(record.isolation):
                return True
            record = self._materialize(record)
        self.registry.set_current(record)
        self.logger.info(f"Activating {record.display_name}.")
        print(activation_snippet(record, self.config.shell), end="")
        return True

    def current_command(self) -> bool:
        record = self.registry.current()
        if record is None:
            self.logger.info("No current version set.")
            return True
        print(f"{record.name} ({record.toolkit_version or record.source_ref})")
        print(f"    source:   {record.install_path}")
        print(f"    env:      {record.env_path}")
        print(f"    activate: {activation_command(record)}")
        return True

    def versions_command(self) -> bool:
        tags = self.resolver.known_tags()
        if not tags:
            self.logger.warning("No release tags found.")
            return True
        shown = tags if self.config.show_all else tags[:VERSIONS_LIST_LIMIT]
        print("Available versions (newest first):")
        for tag in shown:
            status = version_status(tag, LEGACY_MAJOR, OLDER_MINOR)
            installed = (
                " [installed]"
                if self.registry.exists(tag_record_name(tag))
                or self.registry.exists(tag_record_name(tag, standalone=True))
                else ""
            )
            print(f"  {tag:<12} {status}{installed}")
        if len(tags) > len(shown):
            print(f"  ... and {len(tags) - len(shown)} more (use --all to show)")
        return True

    def clean_all_command(self) -> bool:
        records = self.registry.list()
        if not records and not self.config.envs_dir.exists():
            self.logger.info("Nothing to clean.")
            return True
        self.logger.warning(
            f"This will remove ALL {len(records)} installed versions under {self.config.envs_dir}."
        )
        if not self.confirm("Are you sure?"):
            self.logger.info("Clean cancelled.")
            return True
        count = self.registry.remove_all()
        self.logger.info(f"Removed {count} installations.")
        return True

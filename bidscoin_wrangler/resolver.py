"""Mapping of version selectors onto concrete environment records."""

from typing import Optional

from .config import WranglerConfigurable
from .logger import WranglerLoggable
from .repository import RepositoryManager
from .registry import EnvironmentRegistry, EnvironmentRecord, IsolationMode, RecordState
from .versions import (
    VersionSelector,
    sort_tags,
    latest_release,
    tag_record_name,
    branch_record_name,
)
from .utils import UnknownVersionError


class VersionEnvironmentResolver(WranglerConfigurable, WranglerLoggable):
    """Turns a VersionSelector into an EnvironmentRecord.

    Resolution never touches the registry beyond reading it,  but it does
    create or refresh the repository mirror it queries.
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
        self._refreshed = False

    def _ensure_mirror(self):
        self.repository.ensure_mirror(refresh=not self._refreshed)
        self._refreshed = True

    def known_tags(self) -> list[str]:
        """Release tags newest first."""
        self._ensure_mirror()
        return sort_tags(self.repository.list_tags())

    def resolve(
        self,
        selector: VersionSelector,
        isolation: IsolationMode = IsolationMode.SYSTEM,
    ) -> EnvironmentRecord:
        self._ensure_mirror()
        if selector.is_latest:
            record = self._resolve_latest(selector, isolation)
        elif selector.is_stable:
            tag = latest_release(self.repository.list_tags())
            self.logger.info(f"Latest stable release is {tag}.")
            record = self._tag_record(selector, tag, isolation)
        else:
            tag = selector.tag
            if not self.repository.tag_exists(tag):
                raise UnknownVersionError(tag, sort_tags(self.repository.list_tags()))
            record = self._tag_record(selector, tag, isolation)
        if self.registry.exists(record.name):
            record.state = RecordState.READY
            record.is_current = record.name == self.registry.current_name()
        self.logger.debug(f"Resolved {selector} to {record.source_ref} as {record.name}.")
        return record

    def _tag_record(
        self, selector: VersionSelector, tag: str, isolation: IsolationMode
    ) -> EnvironmentRecord:
        name = tag_record_name(tag, standalone=isolation is IsolationMode.STANDALONE)
        return EnvironmentRecord(
            name=name,
            selector=selector,
            source_ref=tag,
            record_dir=self.registry.record_dir(name),
            isolation=isolation,
            repo_url=self.repository.repo_url,
        )

    def _resolve_latest(
        self, selector: VersionSelector, isolation: IsolationMode
    ) -> EnvironmentRecord:
        branch = self.repository.primary_branch()
        short_hash, commit_date = self.repository.branch_tip(branch)
        self.logger.info(f"Latest {branch} commit is {short_hash} from {commit_date}.")
        name = branch_record_name(
            branch, commit_date, short_hash, standalone=isolation is IsolationMode.STANDALONE
        )
        return EnvironmentRecord(
            name=name,
            selector=selector,
            source_ref=short_hash,
            record_dir=self.registry.record_dir(name),
            isolation=isolation,
            branch=branch,
            commit=short_hash,
            commit_date=commit_date,
            repo_url=self.repository.repo_url,
        )

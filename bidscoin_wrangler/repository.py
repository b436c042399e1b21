"""Repository management for the upstream toolkit source.

All queries (tags, branch tips, commit dates) run against a bare mirror of the
upstream repository kept under the registry cache.  Record checkouts are cloned
from the mirror and then pointed back at the upstream URL so that `git pull`
inside a record behaves as users expect.
"""

import time
from pathlib import Path
from typing import Optional

from .config import WranglerConfigurable
from .logger import WranglerLoggable
from .environment import WranglerEnvable
from .constants import (
    REPO_CLONE_TIMEOUT,
    NETWORK_RETRIES,
    NETWORK_RETRY_DELAY,
    PRIMARY_BRANCHES,
)
from . import utils
from .utils import NetworkError, NotFoundError, WranglerError


class RepositoryManager(WranglerConfigurable, WranglerLoggable, WranglerEnvable):
    """Manages git operations for the upstream toolkit repository."""

    def __init__(self, config=None):
        super().__init__(config)
        self.repo_url = self.config.repo_url
        self.mirror_dir = self.config.mirror_dir
        self.retries = NETWORK_RETRIES
        self.retry_delay = NETWORK_RETRY_DELAY

    def run(self, *args, **keys):
        return self.env_manager.wrangler_run(*args, **keys)

    def handle_result(self, *args, **keys):
        return self.env_manager.handle_result(*args, **keys)

    def _git(self, *args, cwd=None, timeout=None):
        """Run git with check=False returning the CompletedProcess."""
        keys = dict(check=False, cwd=cwd)
        if timeout is not None:
            keys["timeout"] = timeout
        return self.run(["git", *args], **keys)

    def _retrying(self, description: str, *args, cwd=None) -> bool:
        """Run a network git command up to self.retries times."""
        for attempt in range(1, self.retries + 1):
            result = self._git(*args, cwd=cwd, timeout=REPO_CLONE_TIMEOUT)
            if self.handle_result(
                result,
                f"{description} failed (attempt {attempt}/{self.retries}):",
                error_func=self.logger.warning,
            ):
                return True
            if attempt < self.retries:
                self.logger.info(f"Retrying in {self.retry_delay} seconds...")
                time.sleep(self.retry_delay)
        return False

    # ------------------------------------------------------------------------------

    def mirror_exists(self) -> bool:
        return (self.mirror_dir / "HEAD").exists()

    def ensure_mirror(self, refresh: bool = True) -> Path:
        """Create or refresh the bare mirror of the upstream repository.

        A failed refresh of an existing mirror is only a warning,  the cached
        refs are used instead.  Without any mirror there is nothing to fall
        back on so NetworkError is raised.
        """
        if self.mirror_exists():
            if not refresh or self.config.offline:
                self.logger.debug(f"Using cached mirror {self.mirror_dir} without refresh.")
                return self.mirror_dir
            self.logger.info(f"Fetching updates from {self.repo_url}.")
            if not self._retrying(
                "Fetch", "fetch", "--prune", "--tags", "origin", cwd=self.mirror_dir
            ):
                self.logger.warning("Could not fetch updates. Using local tags only.")
            return self.mirror_dir
        if self.config.offline:
            raise NetworkError(
                f"No cached copy of {self.repo_url} exists and --offline was given."
            )
        self.logger.info(f"Cloning {self.repo_url} into cache {self.mirror_dir}.")
        self.mirror_dir.parent.mkdir(parents=True, exist_ok=True)
        for attempt in range(1, self.retries + 1):
            utils.rm_path(self.mirror_dir)
            result = self._git(
                "clone",
                "--mirror",
                self.repo_url,
                str(self.mirror_dir),
                timeout=REPO_CLONE_TIMEOUT,
            )
            if self.handle_result(
                result,
                f"Clone failed (attempt {attempt}/{self.retries}):",
                f"Cloned {self.repo_url}.",
                error_func=self.logger.warning,
            ):
                return self.mirror_dir
            if attempt < self.retries:
                self.logger.info(f"Retrying in {self.retry_delay} seconds...")
                time.sleep(self.retry_delay)
        utils.rm_path(self.mirror_dir)
        raise NetworkError(
            f"Failed to clone {self.repo_url} after {self.retries} attempts. "
            "Please check your internet connection."
        )

    def list_tags(self) -> list[str]:
        """Return every tag name in the mirror,  unordered."""
        output = self.run(["git", "tag", "--list"], check=True, cwd=self.mirror_dir)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def tag_exists(self, tag: str) -> bool:
        result = self._git(
            "rev-parse", "--verify", "--quiet", f"refs/tags/{tag}", cwd=self.mirror_dir
        )
        return result.returncode == 0

    def branch_exists(self, branch: str) -> bool:
        result = self._git(
            "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}", cwd=self.mirror_dir
        )
        return result.returncode == 0

    def primary_branch(self) -> str:
        """The development branch: main if present,  otherwise master."""
        for branch in PRIMARY_BRANCHES:
            if self.branch_exists(branch):
                self.logger.debug(f"Primary branch is {branch}.")
                return branch
        raise NotFoundError(
            f"Repository {self.repo_url} has none of the branches: {' '.join(PRIMARY_BRANCHES)}"
        )

    def short_hash(self, ref: str) -> str:
        output = self.run(
            ["git", "rev-parse", "--short", f"{ref}^{{commit}}"],
            check=True,
            cwd=self.mirror_dir,
        )
        return output.strip()

    def commit_date(self, ref: str) -> str:
        """Commit date of `ref` as YYYYMMDD."""
        output = self.run(
            ["git", "log", "-1", "--format=%cd", "--date=format:%Y%m%d", ref],
            check=True,
            cwd=self.mirror_dir,
        )
        return output.strip()

    def branch_tip(self, branch: str) -> tuple[str, str]:
        """Return (short_hash, commit_date) for the tip of `branch`."""
        ref = f"refs/heads/{branch}"
        return self.short_hash(ref), self.commit_date(ref)

    # ------------------------------------------------------------------------------

    def is_repo(self, repo_path: str | Path) -> bool:
        return (Path(repo_path) / ".git").exists()

    def checkout(
        self, ref: str, install_path: Path, branch: Optional[str] = None
    ) -> Path:
        """Check out `ref` into `install_path`,  cloning from the mirror when
        the checkout does not exist yet.  With `branch` a local branch of that
        name is (re)created at `ref`,  otherwise HEAD is detached at `ref`.
        """
        install_path = Path(install_path)
        if self.is_repo(install_path):
            self.logger.info(f"Reusing existing checkout at {install_path}.")
            result = self._git(
                "fetch",
                "--tags",
                str(self.mirror_dir),
                "+refs/heads/*:refs/remotes/origin/*",
                cwd=install_path,
            )
            self.handle_result(
                result,
                f"Failed updating {install_path} from cache:",
                error_func=self.logger.warning,
            )
        else:
            self.logger.info(f"Cloning source into {install_path}.")
            install_path.parent.mkdir(parents=True, exist_ok=True)
            result = self._git(
                "clone",
                "--quiet",
                str(self.mirror_dir),
                str(install_path),
                timeout=REPO_CLONE_TIMEOUT,
            )
            if not self.handle_result(result, f"Failed cloning into {install_path}:"):
                raise WranglerError(f"Failed to clone source into {install_path}.")
            self.set_origin(install_path, self.repo_url)

        if branch:
            args = ["checkout", "--quiet", "-B", branch, ref]
        else:
            args = ["checkout", "--quiet", "--detach", ref]
        result = self._git(*args, cwd=install_path)
        if not self.handle_result(
            result,
            f"Failed checking out {ref} in {install_path}:",
            f"Checked out {ref}.",
        ):
            raise WranglerError(f"Failed to check out {ref} in {install_path}.")
        return install_path

    def set_origin(self, repo_path: Path, url: str) -> bool:
        result = self._git("remote", "set-url", "origin", url, cwd=repo_path)
        return self.handle_result(
            result,
            f"Failed setting origin of {repo_path} to {url}:",
            error_func=self.logger.warning,
        )

    def get_hash(self, repo_path: str | Path, short: bool = False) -> Optional[str]:
        """Get the current commit hash of a checkout."""
        args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
        result = self._git(*args, cwd=repo_path)
        if result.returncode == 0:
            return result.stdout.strip()
        self.logger.error(f"Failed to get git hash for repo {repo_path}")
        return None

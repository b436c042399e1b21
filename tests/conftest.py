import os
import subprocess
from pathlib import Path

import pytest

from bidscoin_wrangler import config as config_mod
from bidscoin_wrangler import logger
from bidscoin_wrangler.environment import EnvironmentManager
from bidscoin_wrangler.utils import DependencyInstallError


GIT_IDENTITY = [
    "-c",
    "user.name=Test User",
    "-c",
    "user.email=test@example.com",
    "-c",
    "commit.gpgsign=false",
    "-c",
    "tag.gpgsign=false",
]


def git(repo_path, *args):
    return subprocess.run(
        ["git", *GIT_IDENTITY, *args],
        cwd=repo_path,
        check=True,
        capture_output=True,
        text=True,
    ).stdout.strip()


def commit(repo_path, text, message, date="2025-01-01T12:00:00"):
    (Path(repo_path) / "version.txt").write_text(text)
    git(repo_path, "add", "version.txt")
    subprocess.run(
        ["git", *GIT_IDENTITY, "commit", "-m", message],
        cwd=repo_path,
        check=True,
        capture_output=True,
        env=dict(
            PATH=os.environ["PATH"],
            HOME=str(repo_path),
            GIT_AUTHOR_DATE=date,
            GIT_COMMITTER_DATE=date,
        ),
    )
    return git(repo_path, "rev-parse", "HEAD")


def make_upstream(path, tags=("4.6.1", "4.6.2"), branch="main"):
    path.mkdir(parents=True)
    git(path, "init", "--quiet", "-b", branch)
    (path / "pyproject.toml").write_text('[project]\nname = "bidscoin"\n')
    git(path, "add", "pyproject.toml")
    hashes = {}
    for i, tag in enumerate(tags):
        hashes[tag] = commit(path, tag, f"release {tag}", date=f"2025-01-0{i + 1}T12:00:00")
        git(path, "tag", tag)
    hashes[branch] = commit(path, "dev", "development", date="2025-02-03T12:00:00")
    return hashes


@pytest.fixture
def upstream(tmp_path):
    """A local upstream repo with releases 4.6.1 and 4.6.2 on main,  plus one
    unreleased commit dated 2025-02-03.
    """
    repo_path = tmp_path / "upstream"
    hashes = make_upstream(repo_path)
    return repo_path, hashes


@pytest.fixture
def config(tmp_path, upstream):
    repo_path, _ = upstream
    cfg = config_mod.WranglerConfig(
        command="install",
        root=tmp_path / "root",
        repo_url=str(repo_path),
        import_name="bidscoin",
        yes=True,
        color="off",
    )
    config_mod.set_args_config(cfg)
    logger.reset_logger()
    yield cfg
    logger.reset_logger()


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger.reset_logger()


class FakeInstaller:
    """Replaces venv creation and package installation with quick stand-ins."""

    def __init__(self):
        self.fail_install = False
        self.fail_create = False
        self.interrupt = False
        self.installed = []

    def create_environment(self, manager, env_path, python):
        if self.fail_create:
            from bidscoin_wrangler.utils import EnvironmentCreationError

            raise EnvironmentCreationError(f"Failed to create virtual environment {env_path}.")
        bin_dir = Path(env_path) / "bin"
        bin_dir.mkdir(parents=True)
        (bin_dir / "python").write_text("")
        (bin_dir / "activate").write_text("")
        (Path(env_path) / "pyvenv.cfg").write_text(f"home = {python}\n")
        return True

    def install_packages(self, manager, env_path, source_path, log_path=None):
        if self.interrupt:
            raise KeyboardInterrupt()
        log_path = Path(env_path).parent / "install.log"
        log_path.write_text("Collecting bidscoin\n")
        if self.fail_install:
            log_path.write_text("ERROR: No matching distribution found\n")
            raise DependencyInstallError(
                f"Failed to install dependencies for {source_path}.",
                log_path=log_path,
                log_tail="ERROR: No matching distribution found\n",
            )
        self.installed.append(Path(source_path))
        return log_path

    def test_import(self, manager, env_path, import_name):
        version_file = Path(env_path).parent / "source" / "version.txt"
        return version_file.read_text().strip()


@pytest.fixture
def fake_installer(monkeypatch):
    fake = FakeInstaller()
    monkeypatch.setattr(
        EnvironmentManager,
        "create_environment",
        lambda self, env_path, python: fake.create_environment(self, env_path, python),
    )
    monkeypatch.setattr(
        EnvironmentManager,
        "install_packages",
        lambda self, env_path, source_path, log_path=None: fake.install_packages(
            self, env_path, source_path, log_path
        ),
    )
    monkeypatch.setattr(
        EnvironmentManager,
        "test_import",
        lambda self, env_path, import_name: fake.test_import(self, env_path, import_name),
    )
    return fake

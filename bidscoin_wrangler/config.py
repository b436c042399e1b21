# bidscoin_wrangler/config.py
"""Configuration management for bidscoin-wrangler."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import argparse

from .constants import (
    BCW_ROOT,
    DEFAULT_REPO_URL,
    DEFAULT_PYTHON,
    DEFAULT_IMPORT_NAME,
    DEFAULT_ISOLATION_MODE,
    VALID_ISOLATION_MODES,
    DEFAULT_SHELL,
    DEFAULT_LOG_TIMES_MODE,
    DEFAULT_COLOR_MODE,
    LOG_FILE,
    ENVS_DIR,
    CACHE_DIR,
    MIRROR_DIR,
    CURRENT_FILE,
)


args_config = None  # Singleton instance of WranglerConfig


def set_args_config(config: "WranglerConfig"):
    """Set the global args_config variable to a singleton."""
    assert isinstance(
        config, WranglerConfig
    ), "config should only be an instance of WranglerConfig."
    global args_config
    args_config = config


def get_args_config():
    """Return the singleton config object based on WranglerConfig.from_args()
    instantiated from a CLI / argparse object.
    """
    assert args_config is not None, "Premature fetch of global args_config variable."
    return args_config


@dataclass
class WranglerConfig:
    """Configuration class for the bidscoin version wrangler."""

    command: str = ""
    selector: str = ""

    root: Path = BCW_ROOT
    repo_url: str = DEFAULT_REPO_URL
    python: str = DEFAULT_PYTHON
    import_name: str = DEFAULT_IMPORT_NAME
    isolation: str = DEFAULT_ISOLATION_MODE
    shell: str = DEFAULT_SHELL

    offline: bool = False
    yes: bool = False
    verify: bool = True
    force: bool = False
    show_all: bool = False

    verbose: bool = False
    debug: bool = False
    log_times: str = DEFAULT_LOG_TIMES_MODE
    color: str = DEFAULT_COLOR_MODE
    log_file: Optional[Path] = None

    def __post_init__(self):
        """Post-initialization processing."""
        assert (
            self.isolation in VALID_ISOLATION_MODES
        ), f"Invalid isolation mode {self.isolation}."
        self.root = Path(self.root).expanduser()
        if self.log_file is None:
            self.log_file = (
                LOG_FILE if self.root == BCW_ROOT else self.root / LOG_FILE.name
            )
        self.log_file = Path(self.log_file)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "WranglerConfig":
        """Create WranglerConfig from argparse Namespace."""
        global args_config
        args_config = cls(
            command=args.command,
            selector=getattr(args, "selector", "") or "",
            root=args.root,
            repo_url=args.repo_url,
            python=args.python,
            import_name=args.import_name,
            isolation="standalone" if getattr(args, "standalone", False) else "system",
            shell=getattr(args, "shell", DEFAULT_SHELL),
            offline=args.offline,
            yes=args.yes,
            verify=not args.no_verify,
            force=getattr(args, "force", False),
            show_all=getattr(args, "all", False),
            verbose=args.verbose,
            debug=args.debug,
            log_times=args.log_times,
            color=args.color,
        )
        return args_config

    @property
    def envs_dir(self) -> Path:
        return self.root / ENVS_DIR

    @property
    def cache_dir(self) -> Path:
        return self.root / CACHE_DIR

    @property
    def mirror_dir(self) -> Path:
        return self.cache_dir / MIRROR_DIR

    @property
    def current_file(self) -> Path:
        return self.root / CURRENT_FILE


class WranglerConfigurable:
    """Mixin which results in self.config being defined for subclasses."""

    def __init__(self, config: Optional[WranglerConfig] = None):
        self.config = config or get_args_config()
        super().__init__()

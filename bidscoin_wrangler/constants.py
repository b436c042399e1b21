"""Global constants for bidscoin-wrangler package."""

import os
import shutil
import sys
from pathlib import Path

# Version
__version__ = "0.3.0"

# Path constants
HOME = Path(os.environ.get("HOME", "."))
BCW_ROOT = Path(os.environ.get("BCW_ROOT", HOME / ".bidscoin-wrangler"))
ENVS_DIR = "envs"
CACHE_DIR = "cache"
MIRROR_DIR = "mirror.git"
CURRENT_FILE = "current"
RECORD_FILE = "record.yaml"

# Record layout
SOURCE_SUBDIR = "source"
ENV_SUBDIR = "env"
PYTHON_SUBDIR = "_python"
DATA_SUBDIR = "bidscoin_data"
ACTIVATE_SCRIPT = "activate_bidscoin.sh"
RECORD_PREFIX = "bidscoin_"
STANDALONE_SUFFIX = "_standalone"

# Upstream toolkit
DEFAULT_REPO_URL = os.environ.get(
    "BCW_REPO_URL", "https://github.com/Donders-Institute/bidscoin.git"
)
DEFAULT_IMPORT_NAME = os.environ.get("BCW_IMPORT_NAME", "bidscoin")
DATA_DIR_VAR = "BIDSCOIN_CONFIGDIR"
PRIMARY_BRANCHES = ["main", "master"]

DEFAULT_PYTHON = os.environ.get(
    "BCW_PYTHON", shutil.which("python3") or sys.executable
)

# Selector tokens
LATEST_TOKENS = ["latest", "dev"]
STABLE_TOKENS = ["stable", ""]

# Standalone interpreters from python-build-standalone
STANDALONE_PYTHON_VERSION = "3.11.14"
STANDALONE_BUILD_DATE = "20251028"
STANDALONE_URL_TEMPLATE = (
    "https://github.com/astral-sh/python-build-standalone/releases/download/"
    "{build_date}/cpython-{version}+{build_date}-{triple}-install_only.tar.gz"
)
STANDALONE_TRIPLES = {
    ("linux", "x86_64"): "x86_64-unknown-linux-gnu",
    ("linux", "aarch64"): "aarch64-unknown-linux-gnu",
    ("macos", "x86_64"): "x86_64-apple-darwin",
    ("macos", "aarch64"): "aarch64-apple-darwin",
}
MIN_DOWNLOAD_BYTES = 10000

# Isolation modes
VALID_ISOLATION_MODES = ["system", "standalone"]
DEFAULT_ISOLATION_MODE = "system"

# Resource thresholds (GB)
MIN_DISK_GB = {"system": 2, "standalone": 3}
MIN_MEMORY_GB = 4

# Network retry policy
NETWORK_RETRIES = 3
NETWORK_RETRY_DELAY = 5

# Timeout constants (in seconds), None means unbounded
DEFAULT_TIMEOUT = 300
REPO_CLONE_TIMEOUT = 600
ENV_CREATE_TIMEOUT = 600
INSTALL_PACKAGES_TIMEOUT = None
IMPORT_TEST_TIMEOUT = 120
DOWNLOAD_TIMEOUT = 60

INSTALL_LOG_TAIL_LINES = 20

# Version listing
VERSIONS_LIST_LIMIT = 10
LEGACY_MAJOR = 4
OLDER_MINOR = 3

# Activation shells
VALID_SHELLS = ["sh", "bash", "zsh", "fish", "csh"]
_LOGIN_SHELL = os.path.basename(os.environ.get("SHELL", "bash"))
DEFAULT_SHELL = _LOGIN_SHELL if _LOGIN_SHELL in VALID_SHELLS else "bash"

# Logger configuration constants
VALID_LOG_TIME_MODES = ["none", "normal", "elapsed", "both"]
DEFAULT_LOG_TIMES_MODE = "none"
VALID_COLOR_MODES = ["auto", "on", "off"]
DEFAULT_COLOR_MODE = "auto"
LOG_FILE = Path(os.environ.get("BCW_LOG_FILE", BCW_ROOT / "bidscoin-wrangler.log"))

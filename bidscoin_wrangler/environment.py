"""Environment management for toolkit installation.

The basic model is that every record gets its own venv created by some
base interpreter,  either the system python3 or a standalone interpreter
downloaded into the record.

pip bootstraps uv into the venv.  uv then installs the toolkit checkout in
editable mode,  except for older checkouts whose pyproject.toml has no
[project] table which fall back to plain pip.
"""

import re
import shlex
import shutil
import subprocess
import tempfile
from subprocess import CompletedProcess
from pathlib import Path
from typing import Any, Optional


from .logger import WranglerLoggable
from .config import WranglerConfigurable

from .constants import (
    DEFAULT_TIMEOUT,
    ENV_CREATE_TIMEOUT,
    INSTALL_PACKAGES_TIMEOUT,
    IMPORT_TEST_TIMEOUT,
    INSTALL_LOG_TAIL_LINES,
)
from . import utils
from .utils import EnvironmentCreationError, DependencyInstallError


class EnvironmentManager(WranglerConfigurable, WranglerLoggable):
    """Manages venv creation and package installation for records."""

    def __init__(self, config=None):
        super().__init__(config)

    # ------------------------------------------------------------------------------

    def _condition_cmd(self, cmd: list[str] | tuple[str] | str) -> list[str]:
        """Condition the command into a list of UNIX CLI 'words'.

        If command is already a string,  split it into string "words".
        If it is a list,  make sure every element is a string.
        """
        if isinstance(cmd, (list, tuple)):
            return [str(word) for word in cmd]
        elif isinstance(cmd, str):
            return shlex.split(cmd)
        else:
            raise TypeError("cmd must be a list or str")

    def wrangler_run(
        self,
        command: list[str] | tuple[str] | str,
        check=True,
        cwd=None,
        timeout=DEFAULT_TIMEOUT,
        text=True,
        output_mode="separate",
        **extra_parameters,
    ):  # -> str | CompletedProcess[Any]
        """Run a command with no shell.

        output_mode "separate" captures stdout and stderr apart,  "combined"
        captures them interleaved in stdout,  and "passthrough" leaves the
        streams to `extra_parameters`.
        """
        command = self._condition_cmd(command)
        parameters = dict(
            text=text,
            check=check,
            cwd=str(cwd) if cwd else cwd,
            timeout=timeout,
        )
        if output_mode == "combined":
            parameters.update(
                dict(
                    capture_output=False,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                )
            )
        elif output_mode == "separate":
            parameters.update(
                dict(
                    capture_output=True,
                )
            )
        elif output_mode != "passthrough":
            raise ValueError(f"Invalid output_mode value: {output_mode}")
        parameters.update(extra_parameters)
        self.logger.debug(f"Running command with no shell: {command} {parameters}")
        result = subprocess.run(command, **parameters)
        if check:
            return result.stdout
        else:
            return result

    def handle_result(
        self,
        result: CompletedProcess[Any] | str | None,
        fail: str,
        success: str = "",
        error_func=None,
    ) -> bool:
        """Provide standard handling for the check=False case of the xxx_run methods by
        issuing a success info or fail error and returning True or False respectively
        depending on the return code of a subprocess result.

        If either the success or fail log messages (stripped) end in ":" then append
        result.stdout or result.stderr respectively.
        """
        if not isinstance(result, CompletedProcess):
            raise RuntimeError(f"Expected CompletedProcess, got {type(result)}")
        if result.returncode != 0:
            if fail.strip().endswith(":"):
                fail += " " + (result.stderr or "").strip() + " ::: " + (result.stdout or "").strip()
            error_func = error_func or self.logger.error
            error_func(fail)
            return False
        else:
            if success.strip().endswith(":"):
                success += " " + (result.stdout or "").strip()
            return self.logger.info(success) if success else True

    # ------------------------------------------------------------------------------

    def env_python(self, env_path: Path) -> Path:
        return Path(env_path) / "bin" / "python"

    def env_bin(self, env_path: Path, program: str) -> Path:
        return Path(env_path) / "bin" / program

    def environment_exists(self, env_path: Path) -> bool:
        """Return True IFF `env_path` holds a usable venv."""
        exists = (Path(env_path) / "pyvenv.cfg").exists() and self.env_python(
            env_path
        ).exists()
        self.logger.debug(f"Environment {env_path} exists: {exists}.")
        return exists

    def create_environment(self, env_path: Path, python: str | Path) -> bool:
        """Create a new venv at `env_path` using base interpreter `python`."""
        python = str(python)
        if not (Path(python).exists() or shutil.which(python)):
            raise EnvironmentCreationError(
                f"Base interpreter '{python}' not found. Please make sure Python 3 is installed."
            )
        self.logger.info(f"Creating virtual environment {env_path} using {python}.")
        try:
            result = self.wrangler_run(
                [python, "-m", "venv", str(env_path)],
                check=False,
                timeout=ENV_CREATE_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise EnvironmentCreationError(
                f"Failed to create virtual environment {env_path}: {e}"
            ) from e
        if not self.handle_result(
            result,
            f"Failed to create virtual environment {env_path}:",
            f"Virtual environment {env_path} created.",
        ) or not self.environment_exists(env_path):
            raise EnvironmentCreationError(
                f"Failed to create virtual environment {env_path}."
            )
        return True

    # ------------------------------------------------------------------------------

    def uses_modern_packaging(self, source_path: Path) -> bool:
        """True if the checkout declares a PEP 621 [project] table."""
        pyproject = Path(source_path) / "pyproject.toml"
        if not pyproject.exists():
            return False
        return re.search(r"^\[project\]\s*$", pyproject.read_text(), re.MULTILINE) is not None

    def _run_logged(self, command: list[str], log_path: Path, cwd=None, timeout=None):
        with log_path.open("a") as log_stream:
            log_stream.write(f"$ {shlex.join(command)}\n")
            log_stream.flush()
            try:
                return self.wrangler_run(
                    command,
                    check=False,
                    cwd=cwd,
                    timeout=timeout,
                    output_mode="passthrough",
                    stdout=log_stream,
                    stderr=subprocess.STDOUT,
                )
            except (OSError, subprocess.SubprocessError) as e:
                log_stream.write(f"{e}\n")
                return CompletedProcess(command, 1)

    def _install_failure(self, message: str, log_path: Path) -> DependencyInstallError:
        tail = utils.tail_file(log_path, INSTALL_LOG_TAIL_LINES)
        self.logger.error(message, f"Installation log {log_path} ends with:\n" + tail)
        return DependencyInstallError(
            f"{message} See {log_path}", log_path=log_path, log_tail=tail
        )

    def new_install_log(self) -> Path:
        with tempfile.NamedTemporaryFile(
            mode="w", prefix="bcw-install-", suffix=".log", delete=False
        ) as log:
            return Path(log.name)

    def install_packages(
        self, env_path: Path, source_path: Path, log_path: Optional[Path] = None
    ) -> Path:
        """Install the checkout at `source_path` and its dependencies into `env_path`.

        Returns the path of the captured installation log.
        """
        log_path = log_path or self.new_install_log()
        python = str(self.env_python(env_path))
        self.logger.info("Upgrading pip and installing uv...")
        result = self._run_logged(
            [python, "-m", "pip", "install", "--upgrade", "pip", "uv"],
            log_path,
            timeout=INSTALL_PACKAGES_TIMEOUT,
        )
        if result.returncode != 0:
            raise self._install_failure("Failed to upgrade pip / install uv.", log_path)

        self.logger.info(
            f"Installing {source_path} and dependencies. This may take several minutes..."
        )
        if self.uses_modern_packaging(source_path):
            self.logger.debug("Modern packaging detected,  using uv.")
            command = [
                str(self.env_bin(env_path, "uv")),
                "pip",
                "install",
                "--python",
                python,
                "-e",
                str(source_path),
            ]
        else:
            self.logger.warning("Older project layout detected,  using pip instead of uv.")
            command = [python, "-m", "pip", "install", "-e", str(source_path)]
        result = self._run_logged(
            command, log_path, cwd=source_path, timeout=INSTALL_PACKAGES_TIMEOUT
        )
        if result.returncode != 0:
            raise self._install_failure(
                f"Failed to install dependencies for {source_path}.", log_path
            )
        self.logger.info("Dependencies installed successfully.")
        return log_path

    def test_import(self, env_path: Path, import_name: str) -> str:
        """Import `import_name` inside the venv and return its __version__."""
        self.logger.info(f"Verifying installation by importing {import_name}.")
        code = (
            f"import {import_name} as m; print(getattr(m, '__version__', 'unknown'))"
        )
        result = self.wrangler_run(
            [str(self.env_python(env_path)), "-c", code],
            check=False,
            timeout=IMPORT_TEST_TIMEOUT,
        )
        if not self.handle_result(
            result,
            f"Import of {import_name} failed:",
        ):
            raise DependencyInstallError(
                f"Installation verification failed: cannot import {import_name}."
            )
        version = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else "unknown"
        self.logger.info(f"Import of {import_name} {version} succeeded.")
        return version


class WranglerEnvable:
    def __init__(self):
        super().__init__()
        self.env_manager = EnvironmentManager(getattr(self, "config", None))

import pytest

from bidscoin_wrangler.environment import EnvironmentManager
from bidscoin_wrangler.utils import DependencyInstallError, EnvironmentCreationError


@pytest.fixture
def env_manager(config):
    return EnvironmentManager(config)


def fake_env(env_path, script):
    """A venv-shaped directory whose python is a shell script."""
    bin_dir = env_path / "bin"
    bin_dir.mkdir(parents=True)
    python = bin_dir / "python"
    python.write_text("#!/bin/sh\n" + script)
    python.chmod(0o755)
    (env_path / "pyvenv.cfg").write_text("home = /usr/bin\n")
    return env_path


def test_wrangler_run_check_modes(env_manager):
    assert env_manager.wrangler_run("echo hello").strip() == "hello"
    result = env_manager.wrangler_run(["sh", "-c", "echo oops >&2; exit 3"], check=False)
    assert result.returncode == 3
    assert not env_manager.handle_result(result, "Failed:")
    assert "oops" in env_manager.logger.errors[-1]


def test_handle_result_requires_completed_process(env_manager):
    with pytest.raises(RuntimeError):
        env_manager.handle_result("not a result", "Failed")


def test_uses_modern_packaging(env_manager, tmp_path):
    assert not env_manager.uses_modern_packaging(tmp_path)
    (tmp_path / "pyproject.toml").write_text("[build-system]\nrequires = []\n")
    assert not env_manager.uses_modern_packaging(tmp_path)
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "bidscoin"\n')
    assert env_manager.uses_modern_packaging(tmp_path)


def test_environment_exists(env_manager, tmp_path):
    assert not env_manager.environment_exists(tmp_path / "env")
    fake_env(tmp_path / "env", "exit 0\n")
    assert env_manager.environment_exists(tmp_path / "env")


def test_create_environment_missing_interpreter(env_manager, tmp_path):
    with pytest.raises(EnvironmentCreationError):
        env_manager.create_environment(tmp_path / "env", tmp_path / "no-python")


def test_install_failure_reports_log_tail(env_manager, tmp_path):
    env_path = fake_env(
        tmp_path / "env",
        'for i in $(seq 1 30); do echo "line $i"; done\necho "ERROR: resolution failed"\nexit 1\n',
    )
    log_path = tmp_path / "install.log"
    with pytest.raises(DependencyInstallError) as excinfo:
        env_manager.install_packages(env_path, tmp_path, log_path=log_path)
    error = excinfo.value
    assert error.log_path == log_path
    assert "ERROR: resolution failed" in error.log_tail
    assert "line 10\n" not in error.log_tail
    assert len(error.log_tail.splitlines()) == 20
    assert str(log_path) in str(error)


def test_install_with_pip_for_older_layout(env_manager, tmp_path):
    calls = tmp_path / "calls.txt"
    env_path = fake_env(tmp_path / "env", f'echo "$@" >> {calls}\nexit 0\n')
    source = tmp_path / "source"
    source.mkdir()
    (source / "setup.py").write_text("")
    env_manager.install_packages(env_path, source, log_path=tmp_path / "install.log")
    lines = calls.read_text().splitlines()
    assert lines[0] == "-m pip install --upgrade pip uv"
    assert lines[1] == f"-m pip install -e {source}"


def test_test_import_returns_version(env_manager, tmp_path):
    env_path = fake_env(tmp_path / "env", 'echo "4.6.2"\n')
    assert env_manager.test_import(env_path, "bidscoin") == "4.6.2"


def test_test_import_failure(env_manager, tmp_path):
    env_path = fake_env(tmp_path / "env", 'echo "ModuleNotFoundError" >&2\nexit 1\n')
    with pytest.raises(DependencyInstallError, match="cannot import bidscoin"):
        env_manager.test_import(env_path, "bidscoin")

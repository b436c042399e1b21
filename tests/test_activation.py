from pathlib import Path

import pytest

from bidscoin_wrangler.activation import (
    activation_snippet,
    activation_command,
    write_activation_script,
)
from bidscoin_wrangler.registry import EnvironmentRecord, IsolationMode
from bidscoin_wrangler.versions import parse_selector


def make_record(record_dir, isolation=IsolationMode.SYSTEM):
    return EnvironmentRecord(
        name="bidscoin_v4.6.2",
        selector=parse_selector("4.6.2"),
        source_ref="4.6.2",
        record_dir=Path(record_dir),
        isolation=isolation,
    )


def test_bash_snippet():
    record = make_record("/opt/bcw/envs/bidscoin_v4.6.2")
    snippet = activation_snippet(record, "bash")
    lines = snippet.splitlines()
    assert "deactivate" in lines[0]
    assert lines[1] == "source /opt/bcw/envs/bidscoin_v4.6.2/env/bin/activate"
    assert "BIDSCOIN_CONFIGDIR" not in snippet


def test_sh_uses_dot():
    snippet = activation_snippet(make_record("/opt/x"), "sh")
    assert ". /opt/x/env/bin/activate" in snippet


@pytest.mark.parametrize(
    "shell, activate, export",
    [
        ("zsh", "activate", "export BIDSCOIN_CONFIGDIR=/opt/x/bidscoin_data"),
        ("fish", "activate.fish", "set -gx BIDSCOIN_CONFIGDIR /opt/x/bidscoin_data"),
        ("csh", "activate.csh", "setenv BIDSCOIN_CONFIGDIR /opt/x/bidscoin_data"),
    ],
)
def test_standalone_snippet_exports_data_dir(shell, activate, export):
    record = make_record("/opt/x", IsolationMode.STANDALONE)
    snippet = activation_snippet(record, shell)
    assert f"/opt/x/env/bin/{activate}" in snippet
    assert export in snippet.splitlines()


def test_paths_are_quoted():
    record = make_record("/home/me/my envs/bidscoin_v4.6.2", IsolationMode.STANDALONE)
    snippet = activation_snippet(record, "bash")
    assert "source '/home/me/my envs/bidscoin_v4.6.2/env/bin/activate'" in snippet
    assert "export BIDSCOIN_CONFIGDIR='/home/me/my envs/bidscoin_v4.6.2/bidscoin_data'" in snippet


def test_unknown_shell():
    with pytest.raises(ValueError):
        activation_snippet(make_record("/opt/x"), "powershell")


def test_activation_command():
    assert activation_command(make_record("/opt/x")) == "source /opt/x/env/bin/activate"
    standalone = make_record("/opt/x", IsolationMode.STANDALONE)
    assert activation_command(standalone) == "source /opt/x/activate_bidscoin.sh"


def test_write_activation_script(tmp_path):
    record = make_record(tmp_path / "bidscoin_v4.6.2", IsolationMode.STANDALONE)
    record.record_dir.mkdir()
    script = write_activation_script(record)
    text = script.read_text()
    assert text.startswith("#!/bin/bash")
    assert f"export BIDSCOIN_CONFIGDIR={record.data_dir}" in text
    assert "$BIDSCOIN_CONFIGDIR" in text
    assert script.stat().st_mode & 0o111
    assert (record.data_dir / "README.txt").exists()

"""Shell text which activates a record in the caller's shell.

A child process cannot change its parent's environment so `use` only prints
commands for the caller to evaluate,  e.g.::

    eval "$(bidscoin-wrangler use stable)"
"""

import shlex
from pathlib import Path

from .constants import DATA_DIR_VAR, VALID_SHELLS
from .registry import EnvironmentRecord

ACTIVATE_NAMES = {
    "sh": "activate",
    "bash": "activate",
    "zsh": "activate",
    "fish": "activate.fish",
    "csh": "activate.csh",
}

DEACTIVATE = {
    "sh": 'if [ -n "${VIRTUAL_ENV:-}" ]; then deactivate 2>/dev/null || true; fi',
    "bash": 'if [ -n "${VIRTUAL_ENV:-}" ]; then deactivate 2>/dev/null || true; fi',
    "zsh": 'if [ -n "${VIRTUAL_ENV:-}" ]; then deactivate 2>/dev/null || true; fi',
    "fish": "if set -q VIRTUAL_ENV; functions -q deactivate; and deactivate; end",
    "csh": "if ($?VIRTUAL_ENV) deactivate",
}


def activate_path(record: EnvironmentRecord, shell: str = "bash") -> Path:
    return record.env_path / "bin" / ACTIVATE_NAMES[shell]


def export_line(shell: str, name: str, value: str) -> str:
    value = shlex.quote(value)
    if shell == "fish":
        return f"set -gx {name} {value}"
    elif shell == "csh":
        return f"setenv {name} {value}"
    return f"export {name}={value}"


def activation_snippet(record: EnvironmentRecord, shell: str = "bash") -> str:
    """Shell commands which activate `record` when evaluated by `shell`."""
    if shell not in VALID_SHELLS:
        raise ValueError(f"Unsupported shell {shell}. Choose from: {' '.join(VALID_SHELLS)}")
    source = "source" if shell in ("bash", "zsh", "fish", "csh") else "."
    lines = [
        DEACTIVATE[shell],
        f"{source} {shlex.quote(str(activate_path(record, shell)))}",
    ]
    if record.is_standalone:
        lines.append(export_line(shell, DATA_DIR_VAR, str(record.data_dir)))
    return "\n".join(lines) + "\n"


def activation_command(record: EnvironmentRecord) -> str:
    """One-liner shown to users for manual activation."""
    if record.is_standalone:
        return f"source {shlex.quote(str(record.activate_script))}"
    return f"source {shlex.quote(str(activate_path(record)))}"


ACTIVATE_SCRIPT_TEMPLATE = """\
#!/bin/bash
# Activate the standalone installation {name}
# Usage: source {script}
{deactivate}
source {activate}
export {var}={data_dir}
echo "Activated {display}"
echo "Python: $(command -v python)"
echo "Data directory: ${var}"
"""

DATA_README_TEMPLATE = """\
Data directory for the standalone installation {name}.

{var} points here while the installation is active,  so settings and
templates created by the toolkit stay inside this installation.
"""


def write_activation_script(record: EnvironmentRecord) -> Path:
    """Create the standalone record's data directory and activation script."""
    record.data_dir.mkdir(parents=True, exist_ok=True)
    (record.data_dir / "README.txt").write_text(
        DATA_README_TEMPLATE.format(name=record.name, var=DATA_DIR_VAR)
    )
    script = record.activate_script
    script.write_text(
        ACTIVATE_SCRIPT_TEMPLATE.format(
            name=record.name,
            display=record.display_name,
            script=shlex.quote(str(script)),
            deactivate=DEACTIVATE["bash"],
            activate=shlex.quote(str(activate_path(record))),
            var=DATA_DIR_VAR,
            data_dir=shlex.quote(str(record.data_dir)),
        )
    )
    script.chmod(0o755)
    return script

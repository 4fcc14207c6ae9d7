"""OpenTofu invocation helpers for the pre-flight phase."""

from __future__ import annotations

import logging
import os
import subprocess
from collections import abc as cabc
from dataclasses import dataclass, field
from pathlib import Path

from clusterguard._preflight_errors import ToolCommandError
from clusterguard._preflight_models import ToolResult

logger = logging.getLogger(__name__)


def _validate_command_args(args: list[str]) -> None:
    """Validate OpenTofu CLI arguments for safe execution."""
    for arg in args:
        if not isinstance(arg, str):
            msg = f"OpenTofu argument must be a string, got {type(arg).__name__}"
            raise TypeError(msg)
        if any(char in arg for char in ("\x00", "\n", "\r")):
            msg = "OpenTofu argument contains an invalid control character"
            raise ValueError(msg)


def run_tofu(
    args: list[str],
    cwd: Path,
    env: cabc.Mapping[str, str] | None = None,
    *,
    binary: str = "tofu",
) -> ToolResult:
    """Execute an OpenTofu command and return the result.

    Parameters
    ----------
    args
        Command arguments (without the binary prefix).
    cwd
        Working directory for the command.
    env
        Environment variables to set for the command.
    binary
        OpenTofu (or Terraform) executable to run.

    Returns
    -------
    ToolResult
        Result containing success status, output, and return code.

    Raises
    ------
    ToolCommandError
        If an argument is unsafe to pass or the executable cannot be started.
    """
    cmd = [binary, *args]
    merged_env = {**os.environ, **(env or {})}

    # List-based invocation without ``shell=True`` avoids injection risks.
    try:
        _validate_command_args(cmd)
    except (TypeError, ValueError) as exc:
        msg = f"refusing to run {binary!r}: {exc}"
        raise ToolCommandError(msg) from exc
    logger.debug("Running %s in %s", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=merged_env,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        msg = f"could not run {binary}: {exc}"
        raise ToolCommandError(msg) from exc

    return ToolResult(
        success=result.returncode == 0,
        stdout=result.stdout,
        stderr=result.stderr,
        return_code=result.returncode,
    )


@dataclass(frozen=True, slots=True)
class TofuRunner:
    """Run OpenTofu commands in one working directory.

    Attributes
    ----------
    work_dir
        Directory holding the generated configuration.
    binary
        OpenTofu (or Terraform) executable.
    env
        Extra environment for every command (backend credentials).

    Examples
    --------
    >>> runner = TofuRunner(Path("/tmp/work/preflight/terraform"))
    >>> runner.init()  # doctest: +SKIP
    """

    work_dir: Path
    binary: str = "tofu"
    env: cabc.Mapping[str, str] = field(default_factory=dict)

    def run(self, args: list[str]) -> ToolResult:
        """Run ``args`` in :attr:`work_dir`."""
        return run_tofu(args, self.work_dir, self.env, binary=self.binary)

    def init(self) -> ToolResult:
        """Initialise the backend; raise :class:`ToolCommandError` on failure."""
        result = self.run(["init", "-input=false", "-no-color"])
        if not result.success:
            msg = (
                f"{self.binary} init failed "
                f"(cwd={self.work_dir}, return_code={result.return_code}): "
                f"{result.stderr.strip()}"
            )
            raise ToolCommandError(msg)
        return result

    def state_show(self, address: str) -> ToolResult:
        """Show one resource from the remote state.

        A failed result is returned rather than raised: a missing resource is
        an expected outcome for clusters that were never applied.
        """
        return self.run(["state", "show", "-no-color", address])

"""kubectl helpers used to check the cluster and read stored state."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from plumbum import local
from plumbum.commands.processes import (
    CommandNotFound,
    ProcessExecutionError,
    ProcessTimedOut,
)

from clusterguard._preflight_errors import ToolCommandError

logger = logging.getLogger(__name__)

KUBECTL_TIMEOUT_SECONDS = 60


@dataclass(frozen=True, slots=True)
class KubectlRunner:
    """Run kubectl against the cluster described by ``kubeconfig``.

    Attributes
    ----------
    kubeconfig
        Kubeconfig file to use; ``None`` keeps kubectl's own resolution.
    binary
        kubectl executable.
    timeout
        Seconds before a command is abandoned.
    """

    kubeconfig: Path | None = None
    binary: str = "kubectl"
    timeout: int = KUBECTL_TIMEOUT_SECONDS

    def run(self, *args: str) -> str:
        """Execute kubectl with ``args`` and return its standard output.

        Raises
        ------
        ToolCommandError
            If kubectl is missing, exits non-zero or times out.
        """
        argv = list(args)
        if self.kubeconfig is not None:
            argv = [f"--kubeconfig={self.kubeconfig}", *argv]
        logger.debug("Running %s %s", self.binary, " ".join(args))
        try:
            bound = local[self.binary][argv]
            _, stdout, _ = bound.run(timeout=self.timeout)
        except CommandNotFound as exc:
            msg = f"kubectl executable not found: {self.binary}"
            raise ToolCommandError(msg) from exc
        except ProcessExecutionError as exc:
            msg = f"kubectl {' '.join(args)} failed: {str(exc.stderr).strip()}"
            raise ToolCommandError(msg) from exc
        except ProcessTimedOut as exc:
            msg = f"kubectl {' '.join(args)} timed out after {self.timeout}s"
            raise ToolCommandError(msg) from exc
        return stdout

    def version(self) -> dict[str, Any]:
        """Return ``kubectl version`` output, which requires a reachable server."""
        stdout = self.run("version", "--output=json")
        try:
            payload = json.loads(stdout)
        except json.JSONDecodeError as exc:
            msg = f"kubectl version returned invalid JSON: {exc}"
            raise ToolCommandError(msg) from exc
        if not isinstance(payload, dict) or "serverVersion" not in payload:
            msg = "kubectl version did not report a server version"
            raise ToolCommandError(msg)
        return payload

    def get_secret(self, name: str, namespace: str) -> dict[str, Any]:
        """Return the JSON representation of a secret."""
        stdout = self.run("get", "secret", name, "-n", namespace, "-o", "json")
        try:
            payload = json.loads(stdout)
        except json.JSONDecodeError as exc:
            msg = f"kubectl returned invalid JSON for secret {namespace}/{name}: {exc}"
            raise ToolCommandError(msg) from exc
        if not isinstance(payload, dict):
            msg = f"kubectl returned an unexpected payload for secret {namespace}/{name}"
            raise ToolCommandError(msg)
        return payload

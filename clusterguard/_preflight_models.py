"""Data models shared by the pre-flight tool runners and flow.

Examples
--------
>>> result = ToolResult(success=True, stdout="ok", stderr="", return_code=0)
>>> result.success
True
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class S3BackendConfig:
    """Configuration for the S3 state backend of the cluster module.

    Attributes
    ----------
    bucket_name
        Bucket that stores the state file.
    key_prefix
        Prefix of the state object key inside the bucket.
    region
        Bucket region.
    skip_region_validation
        Whether OpenTofu should skip validating ``region``.

    Examples
    --------
    >>> S3BackendConfig("state", "dev", "eu-west-1").state_key
    'dev/cluster.json'
    """

    bucket_name: str
    key_prefix: str
    region: str
    skip_region_validation: bool = False

    @property
    def state_key(self) -> str:
        """Object key of the cluster state file."""
        prefix = self.key_prefix.strip("/")
        return f"{prefix}/cluster.json" if prefix else "cluster.json"


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result of an external tool invocation.

    Attributes
    ----------
    success
        Whether the command exited with status code ``0``.
    stdout
        Captured standard output.
    stderr
        Captured standard error.
    return_code
        Process exit status code.
    """

    success: bool
    stdout: str
    stderr: str
    return_code: int


@dataclass(frozen=True, slots=True)
class PhasePaths:
    """Directories and files of the pre-flight phase.

    Examples
    --------
    >>> PhasePaths.under(Path("/tmp/work")).terraform_dir
    PosixPath('/tmp/work/preflight/terraform')
    """

    root: Path
    terraform_dir: Path

    @classmethod
    def under(cls, work_dir: Path) -> PhasePaths:
        """Return the phase layout below ``work_dir``."""
        root = work_dir / "preflight"
        return cls(
            root=root,
            terraform_dir=root / "terraform",
        )

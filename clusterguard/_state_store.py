"""Retrieval of the last applied cluster configuration.

After every successful apply the full configuration is stored in a secret
inside the cluster. Pre-flight reads it back through a :class:`StateStore`;
a file-backed store is available for clusters managed outside the cluster
secret and for offline checks.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from clusterguard._kubectl import KubectlRunner
from clusterguard._preflight_errors import StateStoreError, ToolCommandError

CONFIG_SECRET_NAME = "clusterguard-config"
CONFIG_SECRET_NAMESPACE = "kube-system"
CONFIG_SECRET_KEY = "config"


class StateStore(Protocol):
    """Source of the last applied configuration as raw YAML text."""

    def get_config(self) -> str:
        """Return the stored configuration; raise :class:`StateStoreError`."""
        ...


@dataclass(frozen=True, slots=True)
class FileStateStore:
    """State store reading a YAML file on disk."""

    path: Path

    def get_config(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"error while reading stored config {self.path}: {exc}"
            raise StateStoreError(msg) from exc


@dataclass(frozen=True, slots=True)
class SecretStateStore:
    """State store reading the configuration secret from the cluster.

    Examples
    --------
    >>> store = SecretStateStore(KubectlRunner())
    >>> store.get_config()  # doctest: +SKIP
    'apiVersion: kfd.sighup.io/v1alpha2\\n...'
    """

    kubectl: KubectlRunner
    name: str = CONFIG_SECRET_NAME
    namespace: str = CONFIG_SECRET_NAMESPACE
    key: str = CONFIG_SECRET_KEY

    def get_config(self) -> str:
        try:
            secret = self.kubectl.get_secret(self.name, self.namespace)
        except ToolCommandError as exc:
            msg = f"error while getting current cluster config: {exc}"
            raise StateStoreError(msg) from exc

        data = secret.get("data")
        if not isinstance(data, dict) or self.key not in data:
            msg = (
                f"secret {self.namespace}/{self.name} has no {self.key!r} entry"
            )
            raise StateStoreError(msg)
        try:
            return base64.b64decode(data[self.key], validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, TypeError) as exc:
            msg = f"secret {self.namespace}/{self.name} holds undecodable data: {exc}"
            raise StateStoreError(msg) from exc

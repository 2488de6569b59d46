"""Error types for clusterkit.

Installer and cluster errors carry the failing operation in their message
so that the CLI can print a single wrapped chain, e.g.
``terraform apply failed: exit status 1: Error acquiring the state lock``.
"""

from __future__ import annotations


class ClusterKitError(Exception):
    """Base error class for clusterkit errors."""


class ConfigError(ClusterKitError):
    """Invalid or unreadable configuration."""


class CommandError(ClusterKitError):
    """External command (terraform, helm, kubectl) failed."""

    def __init__(
        self,
        command: list[str],
        returncode: int | None = None,
        stderr: str = "",
        message: str | None = None,
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = f"{command[0]} exited with status {returncode}"
            if stderr:
                message = f"{message}: {stderr}"
        super().__init__(message)


class KubectlError(CommandError):
    """kubectl call failed."""

    @property
    def not_found(self) -> bool:
        """True when kubectl reported that the requested object does not exist."""
        return "NotFound" in self.stderr or "not found" in self.stderr


class ComponentError(ClusterKitError):
    """A component install, uninstall or health check failed."""


class HealthCheckError(ClusterKitError):
    """Post-install health check failed.

    Wraps the probe's error so retries and reports see a single
    "health check failed: ..." message; the probe error is kept as __cause__.
    """

    def __init__(self, cause: BaseException):
        super().__init__(f"health check failed: {cause}")
        self.__cause__ = cause

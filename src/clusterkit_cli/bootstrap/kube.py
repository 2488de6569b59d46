"""Cluster access for the bootstrap engine.

All cluster reads and writes go through the ``kubectl`` binary, the same
way helm and terraform are driven: as subprocesses with a bounded timeout.
"""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..errors import CommandError, KubectlError

# Default timeouts (seconds)
PROBE_TIMEOUT = 2 * 60
INSTALL_TIMEOUT = 5 * 60
# helm waits up to HELM_TIMEOUT itself; leave room for its own error
HELM_PROCESS_TIMEOUT = INSTALL_TIMEOUT + 60


def run_command(
    cmd: list[str],
    *,
    timeout: float,
    cwd: Path | None = None,
    input_text: str | None = None,
    error_cls: type[CommandError] = CommandError,
) -> str:
    """Run an external command and return its stdout.

    Args:
        cmd: Command and arguments.
        timeout: Timeout in seconds for the whole command.
        cwd: Working directory.
        input_text: Optional text to send on stdin.
        error_cls: CommandError subclass raised on failure.

    Returns:
        Captured stdout.

    Raises:
        CommandError: If the binary is missing, times out or exits non-zero.
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            input=input_text,
        )
    except FileNotFoundError as e:
        raise error_cls(cmd, message=f"{cmd[0]} not found. Is {cmd[0]} installed?") from e
    except subprocess.TimeoutExpired as e:
        raise error_cls(cmd, message=f"{cmd[0]} timed out after {timeout:g}s") from e

    if result.returncode != 0:
        raise error_cls(cmd, result.returncode, (result.stderr or "").strip())
    return result.stdout


@dataclass
class PodStatus:
    """Pod phase summary for a set of pods."""

    running: int = 0
    pending: int = 0
    failed: int = 0
    unknown: int = 0

    @property
    def total(self) -> int:
        return self.running + self.pending + self.failed + self.unknown


def analyze_pod_status(pods: list[dict[str, Any]]) -> PodStatus:
    """Count pods by phase."""
    status = PodStatus()
    for pod in pods:
        phase = pod.get("status", {}).get("phase")
        if phase == "Running":
            status.running += 1
        elif phase == "Pending":
            status.pending += 1
        elif phase == "Failed":
            status.failed += 1
        else:
            status.unknown += 1
    return status


class KubeClient:
    """Thin kubectl wrapper bound to one kubeconfig and context."""

    def __init__(
        self,
        kubeconfig: str | None = None,
        context: str | None = None,
        timeout_seconds: float = PROBE_TIMEOUT,
    ):
        """Initialize client.

        Args:
            kubeconfig: Path to kubeconfig file.
            context: Kubeconfig context to use.
            timeout_seconds: Default timeout for each kubectl call.
        """
        self.kubeconfig = kubeconfig
        self.context = context
        self.timeout_seconds = timeout_seconds

    def _kubectl_cmd(self) -> list[str]:
        """Build base kubectl command."""
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        if self.context:
            cmd.extend(["--context", self.context])
        return cmd

    def _run(
        self,
        args: list[str],
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> str:
        return run_command(
            self._kubectl_cmd() + args,
            timeout=timeout or self.timeout_seconds,
            input_text=input_text,
            error_cls=KubectlError,
        )

    def _get_json(self, args: list[str]) -> dict[str, Any]:
        return json.loads(self._run(args + ["-o", "json"]))

    # -- reads --

    def server_version(self) -> str:
        """Return the API server's git version."""
        data = json.loads(self._run(["version", "-o", "json"]))
        return data.get("serverVersion", {}).get("gitVersion", "unknown")

    def test_connection(self) -> None:
        """Verify the API server is reachable and namespaces can be listed."""
        self._run(["get", "namespaces", "-o", "name"])

    def get_namespace(self, name: str) -> dict[str, Any]:
        return self._get_json(["get", "namespace", name])

    def list_nodes(self) -> list[dict[str, Any]]:
        return self._get_json(["get", "nodes"]).get("items", [])

    def list_pods(self, namespace: str, selector: str | None = None) -> list[dict[str, Any]]:
        args = ["-n", namespace, "get", "pods"]
        if selector:
            args.extend(["-l", selector])
        return self._get_json(args).get("items", [])

    def list_deployments(
        self, namespace: str, selector: str | None = None
    ) -> list[dict[str, Any]]:
        args = ["-n", namespace, "get", "deployments"]
        if selector:
            args.extend(["-l", selector])
        return self._get_json(args).get("items", [])

    def get_service(self, namespace: str, name: str) -> dict[str, Any]:
        return self._get_json(["-n", namespace, "get", "service", name])

    def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        return self._get_json(["-n", namespace, "get", "secret", name])

    def pod_logs(self, namespace: str, pod: str, tail: int = 1000) -> str:
        return self._run(["-n", namespace, "logs", pod, f"--tail={tail}"])

    # -- writes --

    def apply_files(self, files: list[Path], timeout: float = INSTALL_TIMEOUT) -> None:
        """Apply manifest files in the given order."""
        args = ["apply"]
        for path in files:
            args.extend(["-f", str(path)])
        self._run(args, timeout=timeout)

    def apply_manifest(self, manifest: dict[str, Any], timeout: float = INSTALL_TIMEOUT) -> None:
        """Apply a single in-memory manifest via stdin."""
        self._run(
            ["apply", "-f", "-"],
            timeout=timeout,
            input_text=yaml.safe_dump(manifest, default_flow_style=False, sort_keys=False),
        )

    def delete_files(self, files: list[Path], timeout: float = INSTALL_TIMEOUT) -> None:
        """Delete the objects described by manifest files, ignoring missing ones."""
        args = ["delete", "--ignore-not-found=true"]
        for path in files:
            args.extend(["-f", str(path)])
        self._run(args, timeout=timeout)

    def ensure_namespace(self, name: str) -> None:
        """Create a namespace if it does not exist."""
        self.apply_manifest(
            {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}},
            timeout=self.timeout_seconds,
        )

    def delete_namespace(self, name: str, timeout: float = INSTALL_TIMEOUT) -> None:
        self._run(["delete", "namespace", name, "--ignore-not-found=true"], timeout=timeout)

    def merge_configmap(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Merge keys into an existing ConfigMap's data."""
        self._run(
            [
                "-n",
                namespace,
                "patch",
                "configmap",
                name,
                "--type",
                "merge",
                "-p",
                json.dumps({"data": data}),
            ]
        )

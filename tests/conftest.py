"""Shared test fixtures for clusterkit-cli tests.

This module provides fakes for testing the bootstrap engine without a
cluster:
- FakeComponent: records install/uninstall/health_check calls and raises
  scripted errors per attempt
- fake_kube: MagicMock KubeClient describing a healthy cluster
- make_component: factory for FakeComponents sharing one call log
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from clusterkit_cli.bootstrap.components import Component
from clusterkit_cli.bootstrap.kube import KubeClient
from clusterkit_cli.bootstrap.types import BootstrapConfig, ComponentID
from clusterkit_cli.errors import KubectlError

# =============================================================================
# Fake components
# =============================================================================


class FakeComponent(Component):
    """Component whose behaviour is scripted per attempt.

    install_errors / health_errors are consumed one entry per call; None
    means the call succeeds. Once exhausted, calls succeed, unless
    always_fail is set.
    """

    def __init__(
        self,
        component_id: ComponentID,
        install_errors: list[Exception | None] | None = None,
        health_errors: list[Exception | None] | None = None,
        uninstall_error: Exception | None = None,
        always_fail: bool = False,
        calls: list[tuple[str, ComponentID]] | None = None,
    ):
        self.component_id = component_id
        self.install_errors = list(install_errors or [])
        self.health_errors = list(health_errors or [])
        self.uninstall_error = uninstall_error
        self.always_fail = always_fail
        self.calls = calls if calls is not None else []

    def count(self, operation: str) -> int:
        return sum(1 for op, cid in self.calls if op == operation and cid == self.component_id)

    def install(self) -> None:
        self.calls.append(("install", self.component_id))
        if self.always_fail:
            raise RuntimeError(f"{self.component_id.value} install failed")
        if self.install_errors:
            error = self.install_errors.pop(0)
            if error is not None:
                raise error

    def uninstall(self) -> None:
        self.calls.append(("uninstall", self.component_id))
        if self.uninstall_error is not None:
            raise self.uninstall_error

    def health_check(self) -> None:
        self.calls.append(("health_check", self.component_id))
        if self.health_errors:
            error = self.health_errors.pop(0)
            if error is not None:
                raise error


@pytest.fixture
def calls() -> list[tuple[str, ComponentID]]:
    """Shared call log for all fake components of a test."""
    return []


@pytest.fixture
def fake_components(calls) -> dict[ComponentID, FakeComponent]:
    """One healthy FakeComponent per ComponentID, sharing a call log."""
    return {component_id: FakeComponent(component_id, calls=calls) for component_id in ComponentID}


@pytest.fixture
def config() -> BootstrapConfig:
    """Minimal run configuration."""
    return BootstrapConfig(
        project_id="test-project",
        domain="example.com",
        cloudflare_token="cf-token",
    )


# =============================================================================
# Fake cluster
# =============================================================================


def _not_found(kind: str, name: str) -> KubectlError:
    return KubectlError(
        ["kubectl", "get", kind, name],
        1,
        f'Error from server (NotFound): {kind}s "{name}" not found',
    )


def running_pod(name: str) -> dict:
    return {"metadata": {"name": name}, "status": {"phase": "Running"}}


def healthy_pods(namespace: str, selector: str | None = None) -> list[dict]:
    if namespace == "kube-system" and selector is None:
        return [running_pod("kube-dns-abc"), running_pod("metrics-server-def")]
    if namespace == "cert-manager":
        return [
            running_pod("cert-manager-1"),
            running_pod("cert-manager-cainjector-1"),
            running_pod("cert-manager-webhook-1"),
        ]
    if namespace == "kube-system":
        return []
    return [running_pod(f"{namespace}-pod-1")]


def healthy_service(namespace: str, name: str) -> dict:
    svc = {"spec": {"clusterIP": "10.0.0.10"}}
    if name == "ingress-nginx-controller":
        svc["status"] = {"loadBalancer": {"ingress": [{"ip": "203.0.113.7"}]}}
    return svc


@pytest.fixture
def fake_kube() -> MagicMock:
    """KubeClient double describing a fully installed, healthy cluster."""
    kube = MagicMock(spec=KubeClient)
    kube.kubeconfig = None
    kube.context = None
    kube.test_connection.return_value = None
    kube.server_version.return_value = "v1.29.1-gke.100"
    kube.get_namespace.return_value = {"status": {"phase": "Active"}}
    kube.list_nodes.return_value = [
        {"status": {"conditions": [{"type": "Ready", "status": "True"}]}}
    ]
    kube.list_pods.side_effect = healthy_pods
    kube.get_service.side_effect = healthy_service
    kube.get_secret.return_value = {"data": {"cloudflare_api_token": "dG9rZW4="}}
    kube.list_deployments.return_value = [
        {
            "spec": {
                "template": {
                    "spec": {
                        "containers": [
                            {"args": ["--source=ingress", "--provider=cloudflare"]}
                        ]
                    }
                }
            }
        }
    ]
    kube.pod_logs.return_value = "log line\n"
    return kube


@pytest.fixture
def make_component(calls):
    """Factory for FakeComponents that record into the shared call log."""

    def _make(component_id: ComponentID, **kwargs) -> FakeComponent:
        return FakeComponent(component_id, calls=calls, **kwargs)

    return _make


@pytest.fixture
def not_found():
    """Build the KubectlError kubectl raises for a missing object."""
    return _not_found

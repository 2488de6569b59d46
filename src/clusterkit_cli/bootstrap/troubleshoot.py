"""Diagnostics for troubleshooting a cluster.

Runs the same read-only checks as validation, optionally narrowed to one
component, and can collect recent logs from every component.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog

from ..errors import KubectlError
from ..shared.logging import get_logger
from .checks import (
    CATEGORIES,
    CERT_MANAGER_NAMESPACE,
    COMPONENT_PROBES,
    INGRESS_CONTROLLER_SELECTOR,
    INGRESS_NAMESPACE,
    KNATIVE_NAMESPACE,
    DiagnosticResult,
    check_cluster_connectivity,
    find_external_dns_pods,
    run_probe,
)
from .kube import KubeClient
from .types import ComponentID

# Components diagnosable by name; cluster-level checks come first
DIAGNOSABLE_COMPONENTS = [
    ComponentID.TERRAFORM,
    ComponentID.KNATIVE,
    ComponentID.INGRESS,
    ComponentID.CERT_MANAGER,
    ComponentID.EXTERNAL_DNS,
]

LOG_TAIL_LINES = 1000


@dataclass(frozen=True)
class LogSource:
    """Pods whose logs are collected into one file."""

    name: str
    namespace: str | None
    selector: str


LOG_SOURCES = [
    LogSource("knative-controller", KNATIVE_NAMESPACE, "app=controller"),
    LogSource("knative-webhook", KNATIVE_NAMESPACE, "app=webhook"),
    LogSource("ingress-controller", INGRESS_NAMESPACE, INGRESS_CONTROLLER_SELECTOR),
    LogSource("cert-manager", CERT_MANAGER_NAMESPACE, "app=cert-manager"),
    LogSource("cert-manager-webhook", CERT_MANAGER_NAMESPACE, "app=webhook"),
    # namespace resolved at collection time
    LogSource("external-dns", None, "app.kubernetes.io/name=external-dns"),
]


def diagnosable_names() -> list[str]:
    """Component names accepted by the diagnostics filter."""
    return [component_id.value for component_id in DIAGNOSABLE_COMPONENTS]


class Troubleshooter:
    """Run diagnostic checks and collect troubleshooting information."""

    def __init__(
        self,
        kube: KubeClient | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.kube = kube or KubeClient()
        self.logger = logger or get_logger(__name__)

    def run_diagnostics(self, component: str | None = None) -> DiagnosticResult:
        """Run diagnostic checks.

        Args:
            component: Optional component name to restrict the checks to.

        Returns:
            DiagnosticResult with every check that ran.

        Raises:
            ValueError: If the component name is unknown.
        """
        if component and component not in diagnosable_names():
            raise ValueError(
                f"Unknown component '{component}'. "
                f"Choose from: {', '.join(diagnosable_names())}"
            )

        start = datetime.now()
        result = DiagnosticResult()
        self.logger.info("Running diagnostic checks", component=component or "all")

        connectivity = check_cluster_connectivity(self.kube)
        result.checks.append(connectivity)
        if not connectivity.passed:
            result.finalize(start)
            return result

        for component_id in DIAGNOSABLE_COMPONENTS:
            if component and component != component_id.value:
                continue
            result.checks.extend(
                run_probe(COMPONENT_PROBES[component_id], self.kube, CATEGORIES[component_id])
            )

        result.finalize(start)
        self.logger.info(
            "Diagnostics finished",
            passed=result.passed_count,
            failed=result.failed_count,
        )
        return result

    def collect_logs(self, output_dir: Path) -> list[Path]:
        """Collect recent logs from every component.

        Components whose pods cannot be found or read, or whose log file
        cannot be written, are logged and skipped.

        Args:
            output_dir: Directory to write ``<component>.log`` files into.

        Returns:
            Paths of the log files written.
        """
        self.logger.info("Collecting logs from all components", output_dir=str(output_dir))
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for source in LOG_SOURCES:
            log_path = output_dir / f"{source.name}.log"
            try:
                self._collect_source_logs(source, log_path)
            except (KubectlError, LookupError, OSError) as e:
                self.logger.warning(f"Failed to collect {source.name} logs", error=str(e))
                continue
            self.logger.info(f"Collected logs: {log_path}")
            written.append(log_path)
        return written

    def _collect_source_logs(self, source: LogSource, log_path: Path) -> None:
        if source.namespace is None:
            namespace, pods = find_external_dns_pods(self.kube)
        else:
            namespace = source.namespace
            pods = self.kube.list_pods(namespace, source.selector)

        if not pods or namespace is None:
            raise LookupError(
                f"no pods found with label {source.selector} in namespace "
                f"{namespace or 'any'}"
            )

        pod_name = pods[0]["metadata"]["name"]
        log_path.write_text(self.kube.pod_logs(namespace, pod_name, tail=LOG_TAIL_LINES))

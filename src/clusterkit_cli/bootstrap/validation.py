"""End-to-end validation of a bootstrapped cluster.

The validator is read-only. It runs as the last bootstrap step and as the
standalone ``clusterkit bootstrap validate`` command.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from ..errors import KubectlError
from ..shared.logging import get_logger
from .checks import (
    CATEGORIES,
    CERT_MANAGER_NAMESPACE,
    CERT_MANAGER_WEBHOOK_SERVICE,
    CLOUDFLARE_SECRET,
    COMPONENT_PROBES,
    EXTERNAL_DNS_NAMESPACES,
    EXTERNAL_DNS_SELECTOR,
    ValidationCheck,
    ValidationResult,
    check_cluster_connectivity,
    run_probe,
)
from .kube import KubeClient
from .types import BootstrapConfig, ComponentID

CONFIGURATION_CATEGORY = "Configuration"

# Components validated after bootstrap, in report order
VALIDATED_COMPONENTS = [
    ComponentID.KNATIVE,
    ComponentID.INGRESS,
    ComponentID.CERT_MANAGER,
    ComponentID.EXTERNAL_DNS,
]


class Validator:
    """Validate that installed components are live and configured."""

    def __init__(
        self,
        config: BootstrapConfig,
        kube: KubeClient | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.config = config
        self.kube = kube or KubeClient(config.kubeconfig, config.context)
        self.logger = logger or get_logger(__name__)

    def run(self) -> ValidationResult:
        """Run all validation checks.

        A failed connectivity check ends the pass early; otherwise every
        enabled component is checked regardless of earlier failures.
        """
        start = datetime.now()
        result = ValidationResult()
        self.logger.info("Running validation checks")

        connectivity = check_cluster_connectivity(self.kube)
        result.checks.append(connectivity)
        if not connectivity.passed:
            self.logger.error("Cluster unreachable, skipping component checks")
            result.finalize(start)
            return result

        for component_id in VALIDATED_COMPONENTS:
            if self.config.is_skipped(component_id):
                continue
            result.checks.extend(
                run_probe(COMPONENT_PROBES[component_id], self.kube, CATEGORIES[component_id])
            )

        if not self.config.is_skipped(ComponentID.EXTERNAL_DNS):
            result.checks.append(self._guarded(self.check_dns_configuration, "DNS Configuration"))
        if not self.config.is_skipped(ComponentID.CERT_MANAGER):
            result.checks.append(self._guarded(self.check_tls_configuration, "TLS Configuration"))

        result.finalize(start)
        self.logger.info(
            "Validation finished",
            passed=result.passed_count,
            failed=result.failed_count,
        )
        return result

    def _guarded(self, check, name: str) -> ValidationCheck:
        try:
            return check()
        except Exception as e:
            return ValidationCheck(
                name, CONFIGURATION_CATEGORY, False, f"Check aborted with unexpected error: {e}", e
            )

    def check_dns_configuration(self) -> ValidationCheck:
        """ExternalDNS runs with the Cloudflare provider and has its token."""
        name = "DNS Configuration"
        deployments = []
        namespace = None
        for candidate in EXTERNAL_DNS_NAMESPACES:
            try:
                deployments = self.kube.list_deployments(candidate, EXTERNAL_DNS_SELECTOR)
            except KubectlError:
                continue
            if deployments:
                namespace = candidate
                break

        if namespace is None:
            return ValidationCheck(
                name,
                CONFIGURATION_CATEGORY,
                False,
                "ExternalDNS deployment not found",
                remediation="Re-run bootstrap without --skip-external-dns",
            )

        try:
            self.kube.get_secret(namespace, CLOUDFLARE_SECRET)
        except KubectlError as e:
            return ValidationCheck(
                name,
                CONFIGURATION_CATEGORY,
                False,
                "ExternalDNS Cloudflare secret not found",
                e,
                f"Create the {CLOUDFLARE_SECRET} secret in namespace {namespace}",
            )

        containers = (
            deployments[0].get("spec", {}).get("template", {}).get("spec", {}).get("containers")
            or []
        )
        args = containers[0].get("args", []) if containers else []
        if not any("cloudflare" in arg for arg in args):
            return ValidationCheck(
                name,
                CONFIGURATION_CATEGORY,
                False,
                "ExternalDNS not configured with Cloudflare provider",
                remediation="Add --provider=cloudflare to the ExternalDNS container args",
            )

        domain = self.config.domain or "<unset>"
        return ValidationCheck(
            name,
            CONFIGURATION_CATEGORY,
            True,
            f"ExternalDNS configured with Cloudflare provider for domain {domain}",
        )

    def check_tls_configuration(self) -> ValidationCheck:
        """The cert-manager webhook service is up."""
        name = "TLS Configuration"
        try:
            svc = self.kube.get_service(CERT_MANAGER_NAMESPACE, CERT_MANAGER_WEBHOOK_SERVICE)
        except KubectlError as e:
            return ValidationCheck(
                name,
                CONFIGURATION_CATEGORY,
                False,
                "cert-manager webhook service not found",
                e,
                f"kubectl get svc -n {CERT_MANAGER_NAMESPACE} {CERT_MANAGER_WEBHOOK_SERVICE}",
            )

        if not svc.get("spec", {}).get("clusterIP"):
            return ValidationCheck(
                name, CONFIGURATION_CATEGORY, False, "cert-manager webhook has no ClusterIP"
            )
        return ValidationCheck(
            name, CONFIGURATION_CATEGORY, True, "cert-manager webhook is configured"
        )

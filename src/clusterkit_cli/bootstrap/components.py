"""Installable components of a ClusterKit platform.

Every component implements the same contract (install, uninstall,
health_check) and raises ComponentError on failure. The orchestrator and
the rollback controller only ever call through that contract.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from ..errors import CommandError, ComponentError
from ..shared.logging import get_logger
from .checks import (
    CERT_MANAGER_NAMESPACE,
    CLOUDFLARE_SECRET,
    INGRESS_NAMESPACE,
    KNATIVE_NAMESPACE,
    ValidationCheck,
    cert_manager_checks,
    check_cluster_connectivity,
    cluster_checks,
    external_dns_checks,
    ingress_checks,
    knative_checks,
)
from .kube import HELM_PROCESS_TIMEOUT, KubeClient, run_command
from .types import BootstrapConfig, ComponentID
from .validation import Validator

TERRAFORM_TIMEOUT = 10 * 60
HELM_TIMEOUT = "5m"

EXTERNAL_DNS_NAMESPACE = "external-dns"


def require_passed(checks: list[ValidationCheck]) -> None:
    """Raise for the first failing check."""
    for check in checks:
        if not check.passed:
            raise ComponentError(f"{check.name}: {check.message}") from check.error


class Component(ABC):
    """Contract implemented by every installable component."""

    component_id: ComponentID

    @abstractmethod
    def install(self) -> None:
        """Install the component. Idempotent where possible."""

    @abstractmethod
    def uninstall(self) -> None:
        """Best-effort teardown."""

    @abstractmethod
    def health_check(self) -> None:
        """Read-only readiness probe."""


class KubeComponent(Component):
    """Base for components installed into the cluster."""

    def __init__(
        self,
        kube: KubeClient,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.kube = kube
        self.logger = logger or get_logger(__name__)

    def _helm(self, args: list[str], timeout: float = HELM_PROCESS_TIMEOUT) -> str:
        cmd = ["helm"] + args
        if self.kube.kubeconfig:
            cmd.extend(["--kubeconfig", self.kube.kubeconfig])
        if self.kube.context:
            cmd.extend(["--kube-context", self.kube.context])
        return run_command(cmd, timeout=timeout)

    def _add_helm_repo(self, name: str, url: str) -> None:
        try:
            self._helm(["repo", "add", name, url, "--force-update"])
            self._helm(["repo", "update"])
        except CommandError as e:
            raise ComponentError(f"failed to add Helm repo {name}: {e}") from e


class TerraformComponent(Component):
    """GKE cluster and supporting infrastructure managed by Terraform."""

    component_id = ComponentID.TERRAFORM

    def __init__(
        self,
        project_id: str,
        region: str,
        cluster_name: str,
        kube: KubeClient,
        terraform_dir: Path = Path("terraform"),
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.project_id = project_id
        self.region = region
        self.cluster_name = cluster_name
        self.kube = kube
        self.terraform_dir = terraform_dir
        self.logger = logger or get_logger(__name__)

    def _vars(self) -> list[str]:
        return [
            f"-var=project_id={self.project_id}",
            f"-var=region={self.region}",
            f"-var=cluster_name={self.cluster_name}",
        ]

    def _resolve_dir(self) -> Path:
        path = self.terraform_dir.resolve()
        if not path.is_dir():
            raise ComponentError(f"terraform directory not found at {path}")
        return path

    def install(self) -> None:
        """Run terraform init and apply."""
        path = self._resolve_dir()
        self.logger.info("Deploying GKE cluster with Terraform", directory=str(path))

        try:
            run_command(["terraform", "init", "-input=false"], cwd=path, timeout=TERRAFORM_TIMEOUT)
        except CommandError as e:
            raise ComponentError(f"terraform init failed: {e}") from e

        try:
            run_command(
                ["terraform", "apply", "-auto-approve", "-input=false"] + self._vars(),
                cwd=path,
                timeout=TERRAFORM_TIMEOUT,
            )
        except CommandError as e:
            raise ComponentError(f"terraform apply failed: {e}") from e

        self.logger.info("Terraform infrastructure created")

    def uninstall(self) -> None:
        """Run terraform destroy."""
        path = self._resolve_dir()
        try:
            run_command(
                ["terraform", "destroy", "-auto-approve", "-input=false"] + self._vars(),
                cwd=path,
                timeout=TERRAFORM_TIMEOUT,
            )
        except CommandError as e:
            raise ComponentError(f"terraform destroy failed: {e}") from e

        self.logger.info("Terraform infrastructure destroyed")

    destroy = uninstall

    def health_check(self) -> None:
        """Cluster reachable, nodes ready, essential system pods running."""
        require_passed([check_cluster_connectivity(self.kube)])
        require_passed(cluster_checks(self.kube))


class IngressComponent(KubeComponent):
    """NGINX ingress controller installed with Helm."""

    component_id = ComponentID.INGRESS
    release = "ingress-nginx"

    def __init__(
        self,
        kube: KubeClient,
        values_file: Path | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        super().__init__(kube, logger)
        self.values_file = values_file

    def install(self) -> None:
        self.logger.info("Installing NGINX Ingress Controller")
        try:
            self.kube.ensure_namespace(INGRESS_NAMESPACE)
        except CommandError as e:
            raise ComponentError(f"failed to create {INGRESS_NAMESPACE} namespace: {e}") from e

        self._add_helm_repo("ingress-nginx", "https://kubernetes.github.io/ingress-nginx")

        args = [
            "upgrade",
            "--install",
            self.release,
            "ingress-nginx/ingress-nginx",
            "--namespace",
            INGRESS_NAMESPACE,
            "--wait",
            "--timeout",
            HELM_TIMEOUT,
        ]
        if self.values_file and self.values_file.exists():
            args.extend(["-f", str(self.values_file.resolve())])
        try:
            self._helm(args)
        except CommandError as e:
            raise ComponentError(f"failed to install nginx-ingress: {e}") from e

    def uninstall(self) -> None:
        try:
            self._helm(["uninstall", self.release, "--namespace", INGRESS_NAMESPACE])
        except CommandError as e:
            raise ComponentError(f"failed to uninstall nginx-ingress: {e}") from e
        try:
            self.kube.delete_namespace(INGRESS_NAMESPACE)
        except CommandError as e:
            raise ComponentError(f"failed to delete {INGRESS_NAMESPACE} namespace: {e}") from e

    def health_check(self) -> None:
        require_passed(ingress_checks(self.kube))


class CertManagerComponent(KubeComponent):
    """cert-manager with Let's Encrypt ClusterIssuers."""

    component_id = ComponentID.CERT_MANAGER
    release = "cert-manager"

    def __init__(
        self,
        kube: KubeClient,
        manifests_dir: Path = Path("k8s/cert-manager"),
        settle_seconds: float = 10,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        super().__init__(kube, logger)
        self.manifests_dir = manifests_dir
        self.settle_seconds = settle_seconds

    def _issuer_files(self) -> list[Path]:
        path = self.manifests_dir.resolve()
        return [path / "cluster-issuer-staging.yaml", path / "cluster-issuer-prod.yaml"]

    def install(self) -> None:
        self.logger.info("Installing cert-manager")
        self._add_helm_repo("jetstack", "https://charts.jetstack.io")

        try:
            self._helm(
                [
                    "upgrade",
                    "--install",
                    self.release,
                    "jetstack/cert-manager",
                    "--namespace",
                    CERT_MANAGER_NAMESPACE,
                    "--create-namespace",
                    "--set",
                    "installCRDs=true",
                    "--wait",
                    "--timeout",
                    HELM_TIMEOUT,
                ]
            )
        except CommandError as e:
            raise ComponentError(f"failed to install cert-manager: {e}") from e

        # webhook needs a moment before it admits issuers
        time.sleep(self.settle_seconds)

        try:
            self.kube.apply_files(self._issuer_files())
        except CommandError as e:
            raise ComponentError(f"failed to apply ClusterIssuers: {e}") from e

    def uninstall(self) -> None:
        try:
            self.kube.delete_files(self._issuer_files())
        except CommandError as e:
            self.logger.warning("Failed to delete ClusterIssuers", error=str(e))

        try:
            self._helm(["uninstall", self.release, "--namespace", CERT_MANAGER_NAMESPACE])
        except CommandError as e:
            raise ComponentError(f"failed to uninstall cert-manager: {e}") from e
        try:
            self.kube.delete_namespace(CERT_MANAGER_NAMESPACE)
        except CommandError as e:
            raise ComponentError(
                f"failed to delete {CERT_MANAGER_NAMESPACE} namespace: {e}"
            ) from e

    def health_check(self) -> None:
        require_passed(cert_manager_checks(self.kube))


class ExternalDNSComponent(KubeComponent):
    """ExternalDNS publishing records to Cloudflare."""

    component_id = ComponentID.EXTERNAL_DNS

    def __init__(
        self,
        kube: KubeClient,
        cloudflare_token: str,
        manifests_dir: Path = Path("k8s/external-dns"),
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        super().__init__(kube, logger)
        self.cloudflare_token = cloudflare_token
        self.manifests_dir = manifests_dir

    def _deployment_file(self) -> Path:
        return self.manifests_dir.resolve() / "deployment.yaml"

    def _token_secret(self) -> dict:
        return {
            "apiVersion": "v1",
            "kind": "Secret",
            "type": "Opaque",
            "metadata": {"name": CLOUDFLARE_SECRET, "namespace": EXTERNAL_DNS_NAMESPACE},
            "stringData": {"cloudflare_api_token": self.cloudflare_token},
        }

    def install(self) -> None:
        if not self.cloudflare_token:
            raise ComponentError("external-dns requires a Cloudflare API token")

        self.logger.info("Installing ExternalDNS")
        try:
            self.kube.ensure_namespace(EXTERNAL_DNS_NAMESPACE)
            self.kube.apply_manifest(self._token_secret())
        except CommandError as e:
            raise ComponentError(f"failed to create/update Cloudflare secret: {e}") from e

        try:
            self.kube.apply_files([self._deployment_file()])
        except CommandError as e:
            raise ComponentError(f"failed to apply ExternalDNS deployment: {e}") from e

    def uninstall(self) -> None:
        try:
            self.kube.delete_files([self._deployment_file()])
        except CommandError as e:
            raise ComponentError(f"failed to delete ExternalDNS deployment: {e}") from e
        # also removes the token secret
        try:
            self.kube.delete_namespace(EXTERNAL_DNS_NAMESPACE)
        except CommandError as e:
            raise ComponentError(
                f"failed to delete {EXTERNAL_DNS_NAMESPACE} namespace: {e}"
            ) from e

    def health_check(self) -> None:
        require_passed(external_dns_checks(self.kube))


class KnativeComponent(KubeComponent):
    """Knative Serving, with the platform domain registered."""

    component_id = ComponentID.KNATIVE

    def __init__(
        self,
        kube: KubeClient,
        domain: str = "",
        manifests_dir: Path = Path("k8s/knative"),
        settle_seconds: float = 5,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        super().__init__(kube, logger)
        self.domain = domain
        self.manifests_dir = manifests_dir
        self.settle_seconds = settle_seconds

    def _crds_file(self) -> Path:
        return self.manifests_dir.resolve() / "serving-crds.yaml"

    def _core_file(self) -> Path:
        return self.manifests_dir.resolve() / "serving-core.yaml"

    def install(self) -> None:
        self.logger.info("Installing Knative Serving")
        try:
            self.kube.apply_files([self._crds_file()])
        except CommandError as e:
            raise ComponentError(f"failed to apply Knative CRDs: {e}") from e

        # CRDs must be established before core objects reference them
        time.sleep(self.settle_seconds)

        try:
            self.kube.apply_files([self._core_file()])
        except CommandError as e:
            raise ComponentError(f"failed to apply Knative core: {e}") from e

        if self.domain:
            self.configure_domain(self.domain)

    def configure_domain(self, domain: str) -> None:
        """Register the domain in Knative's config-domain ConfigMap."""
        try:
            self.kube.merge_configmap(KNATIVE_NAMESPACE, "config-domain", {domain: ""})
        except CommandError as e:
            raise ComponentError(f"failed to update config-domain ConfigMap: {e}") from e
        self.logger.info("Knative domain configured", domain=domain)

    def uninstall(self) -> None:
        try:
            self.kube.delete_files([self._core_file()])
        except CommandError as e:
            raise ComponentError(f"failed to delete Knative core: {e}") from e
        try:
            self.kube.delete_files([self._crds_file()])
        except CommandError as e:
            raise ComponentError(f"failed to delete Knative CRDs: {e}") from e

    def health_check(self) -> None:
        require_passed(knative_checks(self.kube))


class ValidationComponent(Component):
    """End-to-end validation run as the final bootstrap step."""

    component_id = ComponentID.VALIDATION

    def __init__(self, validator: Validator):
        self.validator = validator

    def install(self) -> None:
        result = self.validator.run()
        if not result.all_passed:
            failed = ", ".join(check.name for check in result.checks if not check.passed)
            raise ComponentError(
                f"validation failed: {result.failed_count} checks failed ({failed})"
            )

    def uninstall(self) -> None:
        """Validation leaves nothing behind."""

    def health_check(self) -> None:
        """Validation has no separate readiness probe."""


def build_components(
    config: BootstrapConfig,
    kube: KubeClient | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> dict[ComponentID, Component]:
    """Construct one component per ComponentID for the given run config."""
    kube = kube or KubeClient(config.kubeconfig, config.context)
    manifests = config.manifests_dir
    return {
        ComponentID.TERRAFORM: TerraformComponent(
            config.project_id,
            config.region,
            config.cluster_name,
            kube,
            terraform_dir=config.terraform_dir,
            logger=logger,
        ),
        ComponentID.INGRESS: IngressComponent(
            kube, values_file=manifests / "nginx-ingress" / "values.yaml", logger=logger
        ),
        ComponentID.CERT_MANAGER: CertManagerComponent(
            kube, manifests_dir=manifests / "cert-manager", logger=logger
        ),
        ComponentID.EXTERNAL_DNS: ExternalDNSComponent(
            kube,
            config.cloudflare_token,
            manifests_dir=manifests / "external-dns",
            logger=logger,
        ),
        ComponentID.KNATIVE: KnativeComponent(
            kube, domain=config.domain, manifests_dir=manifests / "knative", logger=logger
        ),
        ComponentID.VALIDATION: ValidationComponent(Validator(config, kube, logger)),
    }

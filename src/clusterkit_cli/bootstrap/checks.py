"""Read-only cluster checks shared by validation, diagnostics and health probes.

Each probe returns a list of checks for one component. A probe stops at
the first check that makes the rest meaningless (e.g. a missing namespace)
but never raises for cluster-side problems: those become failing checks
with remediation text.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ..errors import KubectlError
from .kube import KubeClient, analyze_pod_status
from .types import ComponentID

# Namespaces and selectors of installed components
KNATIVE_NAMESPACE = "knative-serving"
INGRESS_NAMESPACE = "ingress-nginx"
INGRESS_SERVICE = "ingress-nginx-controller"
INGRESS_CONTROLLER_SELECTOR = "app.kubernetes.io/component=controller"
CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_WEBHOOK_SERVICE = "cert-manager-webhook"
CERT_MANAGER_MIN_PODS = 3  # cert-manager, cainjector, webhook
EXTERNAL_DNS_NAMESPACES = ["external-dns", "kube-system"]
EXTERNAL_DNS_SELECTOR = "app.kubernetes.io/name=external-dns"
CLOUDFLARE_SECRET = "cloudflare-api-token"
ESSENTIAL_SYSTEM_PODS = ["kube-dns", "metrics-server"]

CATEGORIES = {
    ComponentID.TERRAFORM: "Infrastructure",
    ComponentID.INGRESS: "Ingress",
    ComponentID.CERT_MANAGER: "cert-manager",
    ComponentID.EXTERNAL_DNS: "ExternalDNS",
    ComponentID.KNATIVE: "Knative",
}


@dataclass
class ValidationCheck:
    """A single pass/fail check with optional remediation guidance."""

    name: str
    category: str
    passed: bool
    message: str
    error: Exception | None = None
    remediation: str | None = None


@dataclass
class ValidationResult:
    """Aggregated checks of one validation or diagnostics pass."""

    checks: list[ValidationCheck] = field(default_factory=list)
    failed_count: int = 0
    all_passed: bool = False
    duration: timedelta = timedelta(0)

    @property
    def passed_count(self) -> int:
        return len(self.checks) - self.failed_count

    def finalize(self, start_time: datetime) -> None:
        """Count failures and record the duration."""
        self.failed_count = sum(1 for check in self.checks if not check.passed)
        self.all_passed = self.failed_count == 0
        self.duration = datetime.now() - start_time


# Diagnostics reuse the same shapes
DiagnosticCheck = ValidationCheck
DiagnosticResult = ValidationResult

Probe = Callable[[KubeClient], list[ValidationCheck]]


def _pods_running(pods: list[dict[str, Any]]) -> int:
    return analyze_pod_status(pods).running


def _namespace_check(
    kube: KubeClient,
    namespace: str,
    label: str,
    category: str,
    remediation: str,
) -> ValidationCheck:
    name = f"{label} Namespace"
    try:
        ns = kube.get_namespace(namespace)
    except KubectlError as e:
        message = (
            f"{namespace} namespace not found"
            if e.not_found
            else f"Cannot get {namespace} namespace"
        )
        return ValidationCheck(name, category, False, message, e, remediation)

    phase = ns.get("status", {}).get("phase", "Unknown")
    return ValidationCheck(name, category, True, f"Namespace exists (phase: {phase})")


def _webhook_check(
    kube: KubeClient, namespace: str, service: str, category: str
) -> ValidationCheck:
    name = f"{category} Webhook"
    try:
        svc = kube.get_service(namespace, service)
    except KubectlError as e:
        return ValidationCheck(
            name,
            category,
            False,
            "Webhook service not found",
            e,
            f"Check the webhook service:\n  kubectl get svc -n {namespace} {service}",
        )

    if not svc.get("spec", {}).get("clusterIP"):
        return ValidationCheck(name, category, False, "Webhook service has no ClusterIP")
    return ValidationCheck(name, category, True, "Webhook service configured")


def check_cluster_connectivity(kube: KubeClient) -> ValidationCheck:
    """Verify the API server is reachable and report its version."""
    category = CATEGORIES[ComponentID.TERRAFORM]
    try:
        kube.test_connection()
    except KubectlError as e:
        return ValidationCheck(
            "Cluster Connectivity",
            category,
            False,
            f"Cannot connect to cluster: {e}",
            e,
            "Check cluster connectivity:\n"
            "  - Verify kubeconfig: kubectl config view\n"
            "  - Test connection: kubectl cluster-info\n"
            "  - Check credentials: gcloud auth list\n"
            "  - Fetch credentials: gcloud container clusters get-credentials"
            " <cluster> --region=<region>",
        )

    try:
        version = kube.server_version()
    except KubectlError as e:
        return ValidationCheck(
            "Cluster Connectivity",
            category,
            False,
            "Connected but cannot get version",
            e,
        )

    return ValidationCheck(
        "Cluster Connectivity",
        category,
        True,
        f"Connected to cluster (Kubernetes {version})",
    )


def cluster_checks(kube: KubeClient) -> list[ValidationCheck]:
    """Node readiness and essential kube-system pods."""
    category = CATEGORIES[ComponentID.TERRAFORM]
    checks: list[ValidationCheck] = []

    try:
        nodes = kube.list_nodes()
    except KubectlError as e:
        return [ValidationCheck("Cluster Nodes", category, False, "Cannot list nodes", e)]

    ready = 0
    for node in nodes:
        for condition in node.get("status", {}).get("conditions", []):
            if condition.get("type") == "Ready" and condition.get("status") == "True":
                ready += 1
                break

    if ready == 0:
        checks.append(
            ValidationCheck(
                "Cluster Nodes",
                category,
                False,
                "No ready nodes found in cluster" if nodes else "No nodes found in cluster",
                remediation="Check node pools:\n"
                "  kubectl get nodes\n"
                "  gcloud container node-pools list --cluster=<cluster> --region=<region>",
            )
        )
        return checks

    checks.append(
        ValidationCheck("Cluster Nodes", category, True, f"{ready}/{len(nodes)} nodes ready")
    )

    try:
        pods = kube.list_pods("kube-system")
    except KubectlError as e:
        checks.append(
            ValidationCheck("System Pods", category, False, "Cannot list kube-system pods", e)
        )
        return checks

    missing = [
        essential
        for essential in ESSENTIAL_SYSTEM_PODS
        if not any(
            pod.get("metadata", {}).get("name", "").startswith(essential)
            and pod.get("status", {}).get("phase") == "Running"
            for pod in pods
        )
    ]
    if missing:
        checks.append(
            ValidationCheck(
                "System Pods",
                category,
                False,
                f"Essential pods not running in kube-system: {', '.join(missing)}",
                remediation="Check system pods:\n  kubectl get pods -n kube-system",
            )
        )
    else:
        checks.append(ValidationCheck("System Pods", category, True, "Essential pods running"))

    return checks


def knative_checks(kube: KubeClient) -> list[ValidationCheck]:
    """Knative Serving namespace, pods and webhook."""
    category = CATEGORIES[ComponentID.KNATIVE]
    ns_check = _namespace_check(
        kube,
        KNATIVE_NAMESPACE,
        "Knative",
        category,
        "Install Knative Serving:\n"
        "  kubectl apply -f https://github.com/knative/serving/releases/latest/download/serving-crds.yaml\n"
        "  kubectl apply -f https://github.com/knative/serving/releases/latest/download/serving-core.yaml",
    )
    checks = [ns_check]
    if not ns_check.passed:
        return checks

    try:
        pods = kube.list_pods(KNATIVE_NAMESPACE)
    except KubectlError as e:
        checks.append(ValidationCheck("Knative Pods", category, False, "Cannot list pods", e))
        return checks

    status = analyze_pod_status(pods)
    if status.failed > 0 or status.running == 0:
        checks.append(
            ValidationCheck(
                "Knative Pods",
                category,
                False,
                f"Issues detected: {status.running} running, {status.pending} pending, "
                f"{status.failed} failed",
                remediation="Check pod issues:\n"
                f"  kubectl get pods -n {KNATIVE_NAMESPACE}\n"
                f"  kubectl describe pods -n {KNATIVE_NAMESPACE}\n"
                f"  kubectl logs -n {KNATIVE_NAMESPACE} -l app=controller",
            )
        )
    else:
        checks.append(
            ValidationCheck("Knative Pods", category, True, f"{status.running} pods running")
        )

    checks.append(_webhook_check(kube, KNATIVE_NAMESPACE, "webhook", category))
    return checks


def ingress_checks(kube: KubeClient) -> list[ValidationCheck]:
    """NGINX ingress namespace, controller pods and LoadBalancer."""
    category = CATEGORIES[ComponentID.INGRESS]
    ns_check = _namespace_check(
        kube,
        INGRESS_NAMESPACE,
        "Ingress",
        category,
        "Install NGINX Ingress Controller:\n"
        "  helm upgrade --install ingress-nginx ingress-nginx/ingress-nginx"
        f" --namespace {INGRESS_NAMESPACE}",
    )
    checks = [ns_check]
    if not ns_check.passed:
        return checks

    try:
        pods = kube.list_pods(INGRESS_NAMESPACE, INGRESS_CONTROLLER_SELECTOR)
    except KubectlError as e:
        checks.append(
            ValidationCheck(
                "Ingress Controller Pods", category, False, "Cannot list controller pods", e
            )
        )
        return checks

    running = _pods_running(pods)
    if running == 0:
        checks.append(
            ValidationCheck(
                "Ingress Controller Pods",
                category,
                False,
                "No controller pods running",
                remediation="Check ingress controller:\n"
                f"  kubectl get pods -n {INGRESS_NAMESPACE}\n"
                f"  kubectl describe pod -n {INGRESS_NAMESPACE} -l {INGRESS_CONTROLLER_SELECTOR}\n"
                f"  kubectl logs -n {INGRESS_NAMESPACE} -l {INGRESS_CONTROLLER_SELECTOR}",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "Ingress Controller Pods", category, True, f"{running} controller pods running"
            )
        )

    try:
        svc = kube.get_service(INGRESS_NAMESPACE, INGRESS_SERVICE)
    except KubectlError as e:
        checks.append(
            ValidationCheck(
                "Ingress LoadBalancer", category, False, "LoadBalancer service not found", e
            )
        )
        return checks

    ingress = svc.get("status", {}).get("loadBalancer", {}).get("ingress") or []
    if not ingress:
        checks.append(
            ValidationCheck(
                "Ingress LoadBalancer",
                category,
                False,
                "LoadBalancer IP not assigned",
                remediation="Wait for LoadBalancer IP assignment or check:\n"
                f"  kubectl get svc -n {INGRESS_NAMESPACE} {INGRESS_SERVICE}\n"
                f"  kubectl describe svc -n {INGRESS_NAMESPACE} {INGRESS_SERVICE}",
            )
        )
    else:
        address = ingress[0].get("ip") or ingress[0].get("hostname", "")
        checks.append(
            ValidationCheck("Ingress LoadBalancer", category, True, f"LoadBalancer IP: {address}")
        )

    return checks


def cert_manager_checks(kube: KubeClient) -> list[ValidationCheck]:
    """cert-manager namespace, pods and webhook."""
    category = CATEGORIES[ComponentID.CERT_MANAGER]
    ns_check = _namespace_check(
        kube,
        CERT_MANAGER_NAMESPACE,
        "cert-manager",
        category,
        "Install cert-manager:\n"
        "  kubectl apply -f https://github.com/cert-manager/cert-manager/releases/latest/download/cert-manager.yaml",
    )
    checks = [ns_check]
    if not ns_check.passed:
        return checks

    try:
        pods = kube.list_pods(CERT_MANAGER_NAMESPACE)
    except KubectlError as e:
        checks.append(ValidationCheck("cert-manager Pods", category, False, "Cannot list pods", e))
        return checks

    running = _pods_running(pods)
    if running < CERT_MANAGER_MIN_PODS:
        checks.append(
            ValidationCheck(
                "cert-manager Pods",
                category,
                False,
                f"Expected {CERT_MANAGER_MIN_PODS} pods, found {running} running",
                remediation="Check cert-manager pods:\n"
                f"  kubectl get pods -n {CERT_MANAGER_NAMESPACE}\n"
                f"  kubectl describe pods -n {CERT_MANAGER_NAMESPACE}\n"
                f"  kubectl logs -n {CERT_MANAGER_NAMESPACE} -l app=cert-manager",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "cert-manager Pods",
                category,
                True,
                f"{running} pods running (cert-manager, webhook, cainjector)",
            )
        )

    checks.append(
        _webhook_check(kube, CERT_MANAGER_NAMESPACE, CERT_MANAGER_WEBHOOK_SERVICE, category)
    )
    return checks


def find_external_dns_pods(kube: KubeClient) -> tuple[str | None, list[dict[str, Any]]]:
    """Locate ExternalDNS pods in the namespaces it is usually deployed to."""
    for namespace in EXTERNAL_DNS_NAMESPACES:
        try:
            pods = kube.list_pods(namespace, EXTERNAL_DNS_SELECTOR)
        except KubectlError:
            continue
        if pods:
            return namespace, pods
    return None, []


def external_dns_checks(kube: KubeClient) -> list[ValidationCheck]:
    """ExternalDNS pods and Cloudflare token secret."""
    category = CATEGORIES[ComponentID.EXTERNAL_DNS]
    namespace, pods = find_external_dns_pods(kube)
    if namespace is None:
        return [
            ValidationCheck(
                "ExternalDNS Pods",
                category,
                False,
                "ExternalDNS pods not found in expected namespaces",
                remediation="Install ExternalDNS:\n"
                f"  - Check installation in {' or '.join(EXTERNAL_DNS_NAMESPACES)} namespace\n"
                f"  - Verify ExternalDNS is deployed with label {EXTERNAL_DNS_SELECTOR}\n"
                "  - See: https://github.com/kubernetes-sigs/external-dns",
            )
        ]

    checks: list[ValidationCheck] = []
    running = _pods_running(pods)
    if running == 0:
        checks.append(
            ValidationCheck(
                "ExternalDNS Pods",
                category,
                False,
                f"No pods running in {namespace}",
                remediation="Check ExternalDNS status:\n"
                f"  kubectl get pods -n {namespace} -l {EXTERNAL_DNS_SELECTOR}\n"
                f"  kubectl describe pods -n {namespace} -l {EXTERNAL_DNS_SELECTOR}\n"
                f"  kubectl logs -n {namespace} -l {EXTERNAL_DNS_SELECTOR}",
            )
        )
    else:
        checks.append(
            ValidationCheck(
                "ExternalDNS Pods", category, True, f"{running} pods running in {namespace}"
            )
        )

    try:
        secret = kube.get_secret(namespace, CLOUDFLARE_SECRET)
    except KubectlError as e:
        checks.append(
            ValidationCheck(
                "Cloudflare API Token",
                category,
                False,
                "Cloudflare API token secret not found",
                e,
                "Create Cloudflare API token secret:\n"
                f"  kubectl create secret generic {CLOUDFLARE_SECRET} \\\n"
                "    --from-literal=cloudflare_api_token=YOUR_TOKEN \\\n"
                f"    -n {namespace}",
            )
        )
        return checks

    if not secret.get("data"):
        checks.append(
            ValidationCheck("Cloudflare API Token", category, False, "Secret exists but is empty")
        )
    else:
        checks.append(
            ValidationCheck("Cloudflare API Token", category, True, "API token secret configured")
        )
    return checks


COMPONENT_PROBES: dict[ComponentID, Probe] = {
    ComponentID.TERRAFORM: cluster_checks,
    ComponentID.INGRESS: ingress_checks,
    ComponentID.CERT_MANAGER: cert_manager_checks,
    ComponentID.EXTERNAL_DNS: external_dns_checks,
    ComponentID.KNATIVE: knative_checks,
}


def run_probe(probe: Probe, kube: KubeClient, category: str) -> list[ValidationCheck]:
    """Run a probe, turning unexpected errors into a failing check."""
    try:
        return probe(kube)
    except Exception as e:
        return [
            ValidationCheck(
                f"{category} Checks",
                category,
                False,
                f"Check aborted with unexpected error: {e}",
                e,
            )
        ]

"""Bootstrap package for provisioning a ClusterKit platform.

This package provides the engine behind `clusterkit bootstrap` which:
1. Provisions a GKE cluster with Terraform
2. Installs NGINX Ingress, cert-manager, ExternalDNS and Knative Serving
3. Retries each step and gates it on a health check
4. Validates the installation end to end
5. Optionally rolls back the components installed so far
"""

from .checks import DiagnosticCheck, DiagnosticResult, ValidationCheck, ValidationResult
from .components import Component, build_components
from .executor import StepExecutor
from .kube import KubeClient
from .orchestrator import Orchestrator
from .progress import ConsoleProgressReporter
from .registry import Step, build_steps
from .rollback import RollbackController
from .troubleshoot import Troubleshooter
from .types import BootstrapConfig, BootstrapResult, ComponentID, StepResult, StepStatus
from .validation import Validator

__all__ = [
    # Types
    "BootstrapConfig",
    "BootstrapResult",
    "ComponentID",
    "StepResult",
    "StepStatus",
    # Components
    "Component",
    "KubeClient",
    "build_components",
    # Engine
    "Step",
    "build_steps",
    "StepExecutor",
    "Orchestrator",
    "RollbackController",
    "ConsoleProgressReporter",
    # Checks
    "Validator",
    "ValidationCheck",
    "ValidationResult",
    "Troubleshooter",
    "DiagnosticCheck",
    "DiagnosticResult",
]

"""Shared types for the bootstrap engine.

Result objects are created by the orchestrator (through the step executor)
and are read-only for everything else, including rollback and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path


class ComponentID(Enum):
    """Installable components, in bootstrap order."""

    TERRAFORM = "terraform"
    INGRESS = "ingress"
    CERT_MANAGER = "cert-manager"
    EXTERNAL_DNS = "external-dns"
    KNATIVE = "knative"
    VALIDATION = "validation"


class StepStatus(Enum):
    """Status of a bootstrap step."""

    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BootstrapConfig:
    """Immutable run parameters for a bootstrap run."""

    project_id: str = ""
    region: str = "us-central1"
    cluster_name: str = "clusterkit"

    domain: str = ""
    cloudflare_token: str = field(default="", repr=False)

    skip_terraform: bool = False
    skip_ingress: bool = False
    skip_cert_manager: bool = False
    skip_external_dns: bool = False
    skip_knative: bool = False

    kubeconfig: str | None = None
    context: str | None = None

    terraform_dir: Path = Path("terraform")
    manifests_dir: Path = Path("k8s")

    def is_skipped(self, component_id: ComponentID) -> bool:
        """Whether the given component is disabled for this run."""
        flags = {
            ComponentID.TERRAFORM: self.skip_terraform,
            ComponentID.INGRESS: self.skip_ingress,
            ComponentID.CERT_MANAGER: self.skip_cert_manager,
            ComponentID.EXTERNAL_DNS: self.skip_external_dns,
            ComponentID.KNATIVE: self.skip_knative,
        }
        return flags.get(component_id, False)


@dataclass
class StepResult:
    """Result of a single bootstrap step."""

    name: str
    component_id: ComponentID
    status: StepStatus = StepStatus.PENDING
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    duration: timedelta = timedelta(0)
    retries: int = 0
    error: Exception | None = None
    message: str = ""

    def finish(self, status: StepStatus, message: str, error: Exception | None = None) -> None:
        """Record the terminal status and timing of the step."""
        self.status = status
        self.message = message
        self.error = error
        self.end_time = datetime.now()
        self.duration = self.end_time - self.start_time


@dataclass
class BootstrapResult:
    """Result of a whole bootstrap run."""

    success: bool = False
    steps: list[StepResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    duration: timedelta = timedelta(0)
    error: Exception | None = None

    @property
    def failed_step(self) -> StepResult | None:
        """The step that stopped the run, if any."""
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None

"""The fixed, ordered list of bootstrap steps."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .components import Component
from .types import BootstrapConfig, ComponentID


@dataclass(frozen=True)
class Step:
    """One installable unit of the bootstrap sequence."""

    name: str
    component_id: ComponentID
    skip: bool
    execute: Callable[[], None]
    health_check: Callable[[], None] | None = None


# (name, component, gated by health check), in dependency order
STEP_DEFINITIONS: tuple[tuple[str, ComponentID, bool], ...] = (
    ("Deploy GKE Cluster", ComponentID.TERRAFORM, True),
    ("Install NGINX Ingress", ComponentID.INGRESS, True),
    ("Install cert-manager", ComponentID.CERT_MANAGER, True),
    ("Install ExternalDNS", ComponentID.EXTERNAL_DNS, True),
    ("Install Knative Serving", ComponentID.KNATIVE, True),
    ("Verify End-to-End Functionality", ComponentID.VALIDATION, False),
)


def build_steps(
    config: BootstrapConfig,
    components: Mapping[ComponentID, Component],
) -> tuple[Step, ...]:
    """Build the step registry for a run.

    Args:
        config: Run configuration; supplies the skip flags.
        components: Component implementation for each ComponentID.

    Returns:
        Immutable tuple of steps in execution order.
    """
    steps = []
    for name, component_id, gated in STEP_DEFINITIONS:
        component = components[component_id]
        steps.append(
            Step(
                name=name,
                component_id=component_id,
                skip=config.is_skipped(component_id),
                execute=component.install,
                health_check=component.health_check if gated else None,
            )
        )
    return tuple(steps)

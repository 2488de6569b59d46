"""Bootstrap orchestrator.

Drives the step registry through the retry executor in order, one step at
a time, and stops at the first step that fails. Steps after a failure are
never attempted and do not appear in the result.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

import structlog

from ..shared.logging import get_logger
from .components import Component, build_components
from .executor import StepExecutor
from .kube import KubeClient
from .registry import Step, build_steps
from .rollback import RollbackController
from .types import BootstrapConfig, BootstrapResult, ComponentID, StepResult, StepStatus

ProgressCallback = Callable[[StepResult], None]


class Orchestrator:
    """Run the bootstrap sequence for one configuration."""

    def __init__(
        self,
        config: BootstrapConfig,
        dry_run: bool = False,
        logger: structlog.stdlib.BoundLogger | None = None,
        components: Mapping[ComponentID, Component] | None = None,
        steps: Iterable[Step] | None = None,
        executor: StepExecutor | None = None,
        kube: KubeClient | None = None,
    ):
        """Initialize orchestrator.

        Args:
            config: Immutable run configuration.
            dry_run: Simulate every step without side effects.
            logger: Logger handle shared with the executor and rollback.
            components: Component per ComponentID (built from config if omitted).
            steps: Step registry override (built from config if omitted).
            executor: Step executor (default retry policy if omitted).
            kube: Cluster client used when building components.
        """
        self.config = config
        self.dry_run = dry_run
        self.logger = logger or get_logger(__name__)
        if components is None:
            components = build_components(config, kube, self.logger)
        self.components = components
        self.steps: tuple[Step, ...] = (
            tuple(steps) if steps is not None else build_steps(config, components)
        )
        self.executor = executor or StepExecutor(self.logger)
        self.rollback_controller = RollbackController(components, self.logger)

    def run(self, progress_callback: ProgressCallback | None = None) -> BootstrapResult:
        """Execute all steps in order, stopping at the first failure.

        Args:
            progress_callback: Called with each StepResult as it completes.
                Errors raised by the callback are logged and ignored.

        Returns:
            BootstrapResult whose steps are a prefix of the registry.
        """
        result = BootstrapResult()
        self.logger.info(
            "Starting ClusterKit bootstrap",
            project=self.config.project_id,
            cluster=self.config.cluster_name,
            region=self.config.region,
        )
        if self.dry_run:
            self.logger.info("Running in DRY-RUN mode - no changes will be made")

        for step in self.steps:
            step_result = self.executor.execute_step(step, self.dry_run)
            result.steps.append(step_result)

            if progress_callback is not None:
                self._notify(progress_callback, step_result)

            if step_result.status == StepStatus.FAILED:
                result.error = step_result.error
                self.logger.error(
                    f"Bootstrap failed at step '{step.name}'", error=str(step_result.error)
                )
                break

        result.end_time = datetime.now()
        result.duration = result.end_time - result.start_time
        result.success = result.failed_step is None

        if result.success:
            self.logger.info(
                f"Bootstrap completed successfully in {result.duration.total_seconds():.1f}s"
            )
        else:
            self.logger.error(f"Bootstrap failed after {result.duration.total_seconds():.1f}s")
        return result

    def rollback(self, result: BootstrapResult) -> None:
        """Best-effort teardown of the successful steps of a run."""
        self.rollback_controller.rollback(result)

    def _notify(self, callback: ProgressCallback, step_result: StepResult) -> None:
        try:
            callback(step_result)
        except Exception as e:
            self.logger.warning("Progress callback failed", step=step_result.name, error=str(e))

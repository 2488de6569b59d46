"""Best-effort rollback of a bootstrap run."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from ..shared.logging import get_logger
from .components import Component
from .types import BootstrapResult, ComponentID, StepStatus


class RollbackController:
    """Tear down the successful steps of a run, newest first."""

    def __init__(
        self,
        components: Mapping[ComponentID, Component],
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        self.components = components
        self.logger = logger or get_logger(__name__)

    def rollback(self, result: BootstrapResult) -> None:
        """Uninstall every step that reported success, in reverse order.

        Teardown failures are logged and the remaining steps are still
        rolled back. Failed and skipped steps are left alone.

        Args:
            result: Result of a previous run; not modified.
        """
        self.logger.warning("Starting bootstrap rollback")

        for step in reversed(result.steps):
            if step.status != StepStatus.SUCCESS:
                continue

            component = self.components.get(step.component_id)
            if component is None:
                self.logger.warning("No teardown registered", step=step.name)
                continue

            self.logger.info(f"Rolling back: {step.name}", component=step.component_id.value)
            try:
                component.uninstall()
            except Exception as e:
                self.logger.error(f"Rollback failed for {step.name}", error=str(e))

        self.logger.info("Rollback completed")

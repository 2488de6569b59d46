"""Retry executor for a single bootstrap step.

Runs a step's execute function with a bounded number of attempts, gating
success on the step's health check. Retries back off linearly
(``attempt * retry_delay_seconds``). The executor never rolls anything back;
it only reports the outcome.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from ..errors import HealthCheckError
from ..shared.logging import get_logger
from .registry import Step
from .types import StepResult, StepStatus

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 10


class StepExecutor:
    """Execute steps with retry, health-check gating and dry-run support."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay_seconds: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize executor.

        Args:
            logger: Logger handle; a module logger is used when omitted.
            max_attempts: Total attempts per step (first try included).
            retry_delay_seconds: Delay unit; retry N waits N times this.
            sleep: Blocking sleep function.
        """
        self.logger = logger or get_logger(__name__)
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.sleep = sleep

    def execute_step(self, step: Step, dry_run: bool = False) -> StepResult:
        """Execute a step and return its result.

        Args:
            step: Step to execute.
            dry_run: Report simulated success without calling the step.

        Returns:
            StepResult with status SKIPPED, SUCCESS or FAILED.
        """
        result = StepResult(name=step.name, component_id=step.component_id)
        log = self.logger.bind(step=step.name, component=step.component_id.value)

        if step.skip:
            result.finish(StepStatus.SKIPPED, "Skipped by configuration")
            log.info("[SKIPPED] Step disabled by configuration")
            return result

        log.info("[RUNNING] Starting step")
        result.status = StepStatus.RUNNING
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            if attempt > 0:
                result.status = StepStatus.RETRYING
                result.retries = attempt
                log.warning(f"[RETRY {attempt}/{self.max_attempts - 1}] Retrying step")
                self.sleep(attempt * self.retry_delay_seconds)

            if dry_run:
                result.finish(StepStatus.SUCCESS, "Dry-run simulation")
                log.info("[DRY-RUN] Would execute step")
                return result

            try:
                step.execute()
            except Exception as e:
                last_error = e
                log.warning("Step attempt failed", attempt=attempt + 1, error=str(e))
                continue

            if step.health_check is not None:
                log.debug("Running health check")
                try:
                    step.health_check()
                except Exception as e:
                    last_error = HealthCheckError(e)
                    log.warning("Health check failed", attempt=attempt + 1, error=str(e))
                    continue

            result.finish(StepStatus.SUCCESS, "Completed successfully")
            log.info(f"[SUCCESS] Step completed in {result.duration.total_seconds():.1f}s")
            return result

        result.finish(
            StepStatus.FAILED,
            f"Failed after {self.max_attempts} attempts: {last_error}",
            error=last_error,
        )
        log.error("[FAILED] Step failed", error=str(last_error))
        return result

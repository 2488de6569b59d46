"""Unit tests for the orchestrator and rollback controller."""

from __future__ import annotations

from unittest.mock import MagicMock

from clusterkit_cli.bootstrap.executor import StepExecutor
from clusterkit_cli.bootstrap.orchestrator import Orchestrator
from clusterkit_cli.bootstrap.registry import Step
from clusterkit_cli.bootstrap.rollback import RollbackController
from clusterkit_cli.bootstrap.types import (
    BootstrapResult,
    ComponentID,
    StepResult,
    StepStatus,
)


def steps_for(components) -> list[Step]:
    return [
        Step(
            name=f"Step {c.component_id.value}",
            component_id=c.component_id,
            skip=False,
            execute=c.install,
            health_check=c.health_check,
        )
        for c in components
    ]


def make_orchestrator(config, components, dry_run=False) -> Orchestrator:
    return Orchestrator(
        config,
        dry_run=dry_run,
        components={c.component_id: c for c in components},
        steps=steps_for(components),
        executor=StepExecutor(sleep=MagicMock()),
    )


class TestOrchestratorRun:
    """Tests for Orchestrator.run."""

    def test_all_steps_succeed(self, config, make_component):
        """Every step succeeds and the run is successful."""
        components = [
            make_component(ComponentID.TERRAFORM),
            make_component(ComponentID.INGRESS),
            make_component(ComponentID.KNATIVE),
        ]

        result = make_orchestrator(config, components).run()

        assert result.success is True
        assert result.error is None
        assert result.failed_step is None
        assert [s.status for s in result.steps] == [StepStatus.SUCCESS] * 3
        assert result.end_time is not None

    def test_stops_at_first_failure(self, config, make_component, calls):
        """A failing step halts the run; later steps never run."""
        first = make_component(ComponentID.TERRAFORM)
        second = make_component(ComponentID.INGRESS, always_fail=True)
        third = make_component(ComponentID.KNATIVE)

        result = make_orchestrator(config, [first, second, third]).run()

        assert result.success is False
        assert len(result.steps) == 2
        assert result.steps[0].status == StepStatus.SUCCESS
        assert result.steps[1].status == StepStatus.FAILED
        assert result.steps[1].retries == 2
        assert result.failed_step is result.steps[1]
        assert result.error is result.steps[1].error
        assert third.count("install") == 0

    def test_results_are_prefix_of_registry(self, config, make_component):
        """Result names follow registry order with only the last possibly failed."""
        components = [
            make_component(ComponentID.TERRAFORM),
            make_component(ComponentID.INGRESS),
            make_component(ComponentID.CERT_MANAGER, always_fail=True),
            make_component(ComponentID.KNATIVE),
        ]
        orchestrator = make_orchestrator(config, components)

        result = orchestrator.run()

        registry_names = [step.name for step in orchestrator.steps]
        result_names = [step.name for step in result.steps]
        assert result_names == registry_names[: len(result_names)]
        assert all(s.status != StepStatus.FAILED for s in result.steps[:-1])

    def test_skipped_steps_do_not_stop_run(self, config, make_component):
        """Skipped steps are recorded and the run continues."""
        ingress = make_component(ComponentID.INGRESS)
        knative = make_component(ComponentID.KNATIVE)
        steps = steps_for([ingress, knative])
        steps[0] = Step(steps[0].name, ComponentID.INGRESS, True, ingress.install)
        orchestrator = Orchestrator(
            config,
            components={ComponentID.INGRESS: ingress, ComponentID.KNATIVE: knative},
            steps=steps,
            executor=StepExecutor(sleep=MagicMock()),
        )

        result = orchestrator.run()

        assert result.success is True
        assert [s.status for s in result.steps] == [StepStatus.SKIPPED, StepStatus.SUCCESS]
        assert ingress.count("install") == 0

    def test_dry_run_calls_nothing(self, config, make_component, calls):
        """In dry-run mode no component operation is invoked."""
        components = [
            make_component(ComponentID.TERRAFORM, always_fail=True),
            make_component(ComponentID.INGRESS, always_fail=True),
        ]

        result = make_orchestrator(config, components, dry_run=True).run()

        assert result.success is True
        assert calls == []
        assert all(s.message == "Dry-run simulation" for s in result.steps)

    def test_progress_callback_per_step(self, config, make_component):
        """The callback sees every StepResult in order."""
        components = [make_component(ComponentID.TERRAFORM), make_component(ComponentID.INGRESS)]
        seen: list[StepResult] = []

        result = make_orchestrator(config, components).run(progress_callback=seen.append)

        assert seen == result.steps

    def test_progress_callback_errors_are_ignored(self, config, make_component):
        """A failing callback does not affect the run."""
        components = [make_component(ComponentID.TERRAFORM), make_component(ComponentID.INGRESS)]
        callback = MagicMock(side_effect=RuntimeError("terminal closed"))

        result = make_orchestrator(config, components).run(progress_callback=callback)

        assert result.success is True
        assert callback.call_count == 2

    def test_default_registry_order(self, config, fake_components):
        """Without overrides the six registry steps run in dependency order."""
        orchestrator = Orchestrator(
            config, components=fake_components, executor=StepExecutor(sleep=MagicMock())
        )

        result = orchestrator.run()

        assert [s.component_id for s in result.steps] == [
            ComponentID.TERRAFORM,
            ComponentID.INGRESS,
            ComponentID.CERT_MANAGER,
            ComponentID.EXTERNAL_DNS,
            ComponentID.KNATIVE,
            ComponentID.VALIDATION,
        ]
        assert fake_components[ComponentID.VALIDATION].count("health_check") == 0


def result_with(*statuses: tuple[ComponentID, StepStatus]) -> BootstrapResult:
    result = BootstrapResult()
    for component_id, status in statuses:
        step = StepResult(name=f"Step {component_id.value}", component_id=component_id)
        step.status = status
        result.steps.append(step)
    return result


class TestRollbackController:
    """Tests for RollbackController."""

    def test_reverse_order_only_successful(self, make_component, calls):
        """Steps 1 and 3 succeeded, step 2 failed: teardown runs 3 then 1."""
        components = {
            cid: make_component(cid)
            for cid in (ComponentID.TERRAFORM, ComponentID.INGRESS, ComponentID.CERT_MANAGER)
        }
        result = result_with(
            (ComponentID.TERRAFORM, StepStatus.SUCCESS),
            (ComponentID.INGRESS, StepStatus.FAILED),
            (ComponentID.CERT_MANAGER, StepStatus.SUCCESS),
        )

        RollbackController(components).rollback(result)

        assert calls == [
            ("uninstall", ComponentID.CERT_MANAGER),
            ("uninstall", ComponentID.TERRAFORM),
        ]

    def test_skipped_steps_not_torn_down(self, make_component, calls):
        """Skipped steps are left alone."""
        components = {
            ComponentID.TERRAFORM: make_component(ComponentID.TERRAFORM),
            ComponentID.INGRESS: make_component(ComponentID.INGRESS),
        }
        result = result_with(
            (ComponentID.TERRAFORM, StepStatus.SKIPPED),
            (ComponentID.INGRESS, StepStatus.SUCCESS),
        )

        RollbackController(components).rollback(result)

        assert calls == [("uninstall", ComponentID.INGRESS)]

    def test_continues_after_teardown_error(self, make_component, calls):
        """A failing teardown is logged and the remaining steps still roll back."""
        components = {
            ComponentID.TERRAFORM: make_component(ComponentID.TERRAFORM),
            ComponentID.INGRESS: make_component(
                ComponentID.INGRESS, uninstall_error=RuntimeError("helm unreachable")
            ),
        }
        result = result_with(
            (ComponentID.TERRAFORM, StepStatus.SUCCESS),
            (ComponentID.INGRESS, StepStatus.SUCCESS),
        )

        RollbackController(components).rollback(result)

        assert calls == [
            ("uninstall", ComponentID.INGRESS),
            ("uninstall", ComponentID.TERRAFORM),
        ]

    def test_missing_component_is_skipped(self, make_component, calls):
        """Steps without a registered component are skipped."""
        components = {ComponentID.TERRAFORM: make_component(ComponentID.TERRAFORM)}
        result = result_with(
            (ComponentID.TERRAFORM, StepStatus.SUCCESS),
            (ComponentID.VALIDATION, StepStatus.SUCCESS),
        )

        RollbackController(components).rollback(result)

        assert calls == [("uninstall", ComponentID.TERRAFORM)]

    def test_result_is_not_modified(self, make_component):
        """Rollback leaves the result untouched."""
        components = {ComponentID.INGRESS: make_component(ComponentID.INGRESS)}
        result = result_with((ComponentID.INGRESS, StepStatus.SUCCESS))

        RollbackController(components).rollback(result)

        assert result.steps[0].status == StepStatus.SUCCESS

    def test_orchestrator_rollback_delegates(self, config, make_component, calls):
        """Orchestrator.rollback tears down the successful steps of its run."""
        components = [
            make_component(ComponentID.TERRAFORM),
            make_component(ComponentID.INGRESS),
            make_component(ComponentID.KNATIVE, always_fail=True),
        ]
        orchestrator = make_orchestrator(config, components)
        result = orchestrator.run()
        calls.clear()

        orchestrator.rollback(result)

        assert calls == [
            ("uninstall", ComponentID.INGRESS),
            ("uninstall", ComponentID.TERRAFORM),
        ]

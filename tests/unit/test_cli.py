"""Unit tests for the clusterkit CLI commands."""

from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from clusterkit_cli.bootstrap.checks import ValidationCheck, ValidationResult
from clusterkit_cli.bootstrap.types import BootstrapResult, ComponentID, StepResult, StepStatus
from clusterkit_cli.config import ClusterKitConfig
from clusterkit_cli.errors import ComponentError, ConfigError
from clusterkit_cli.main import cli


@pytest.fixture
def runner():
    """Create CLI runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config():
    """Load an empty configuration and leave logging alone."""
    with (
        patch("clusterkit_cli.main.load_config", return_value=ClusterKitConfig()),
        patch("clusterkit_cli.main.configure_logging"),
    ):
        yield


def step(name, component_id, status, message="", error=None) -> StepResult:
    result = StepResult(name=name, component_id=component_id)
    result.finish(status, message, error)
    return result


def successful_run() -> BootstrapResult:
    result = BootstrapResult(success=True)
    result.steps = [
        step("Deploy GKE Cluster", ComponentID.TERRAFORM, StepStatus.SUCCESS, "Completed"),
        step("Install NGINX Ingress", ComponentID.INGRESS, StepStatus.SKIPPED, "Skipped"),
    ]
    return result


def failed_run() -> BootstrapResult:
    cause = RuntimeError("helm exited with status 1: timed out waiting for the condition")
    error = ComponentError("failed to install cert-manager")
    error.__cause__ = cause
    result = BootstrapResult(success=False, error=error)
    result.steps = [
        step("Deploy GKE Cluster", ComponentID.TERRAFORM, StepStatus.SUCCESS, "Completed"),
        step(
            "Install cert-manager",
            ComponentID.CERT_MANAGER,
            StepStatus.FAILED,
            f"Failed after 3 attempts: {error}",
            error,
        ),
    ]
    return result


def mock_orchestrator(result: BootstrapResult) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.steps = [MagicMock()] * 6
    orchestrator.run.return_value = result
    return orchestrator


class TestBootstrapCommand:
    """Tests for `clusterkit bootstrap`."""

    def test_success_exits_zero(self, runner):
        """A successful run exits 0 and prints the summary."""
        orchestrator = mock_orchestrator(successful_run())
        with patch(
            "clusterkit_cli.commands.bootstrap.Orchestrator", return_value=orchestrator
        ) as cls:
            result = runner.invoke(
                cli, ["bootstrap", "--project-id", "p", "--cloudflare-token", "t"]
            )

        assert result.exit_code == 0, result.output
        assert "Bootstrap completed" in result.output
        config = cls.call_args[0][0]
        assert config.project_id == "p"
        assert config.cloudflare_token == "t"
        assert cls.call_args.kwargs["dry_run"] is False
        orchestrator.rollback.assert_not_called()

    def test_failure_exits_one_with_step_and_error(self, runner):
        """A failed run exits 1 naming the step and the error chain."""
        orchestrator = mock_orchestrator(failed_run())
        with patch("clusterkit_cli.commands.bootstrap.Orchestrator", return_value=orchestrator):
            result = runner.invoke(
                cli, ["bootstrap", "--project-id", "p", "--cloudflare-token", "t"]
            )

        assert result.exit_code == 1
        assert "Bootstrap failed at step 'Install cert-manager'" in result.output
        assert "failed to install cert-manager: helm exited with status 1" in result.output
        orchestrator.rollback.assert_not_called()

    def test_rollback_on_failure(self, runner):
        """--rollback-on-failure tears down after a failed run."""
        run_result = failed_run()
        orchestrator = mock_orchestrator(run_result)
        with patch("clusterkit_cli.commands.bootstrap.Orchestrator", return_value=orchestrator):
            result = runner.invoke(
                cli,
                [
                    "bootstrap",
                    "--project-id",
                    "p",
                    "--cloudflare-token",
                    "t",
                    "--rollback-on-failure",
                ],
            )

        assert result.exit_code == 1
        orchestrator.rollback.assert_called_once_with(run_result)

    def test_flags_map_to_config(self, runner):
        """Skip flags, kube options and dry-run reach the orchestrator."""
        orchestrator = mock_orchestrator(successful_run())
        with patch(
            "clusterkit_cli.commands.bootstrap.Orchestrator", return_value=orchestrator
        ) as cls:
            result = runner.invoke(
                cli,
                [
                    "bootstrap",
                    "--skip-terraform",
                    "--skip-external-dns",
                    "--skip-ingress",
                    "--region",
                    "europe-west4",
                    "--domain",
                    "example.com",
                    "--kubeconfig",
                    "/tmp/kc",
                    "--context",
                    "gke_ctx",
                    "--dry-run",
                ],
            )

        assert result.exit_code == 0, result.output
        config = cls.call_args[0][0]
        assert config.skip_terraform and config.skip_external_dns and config.skip_ingress
        assert not config.skip_knative
        assert config.region == "europe-west4"
        assert config.domain == "example.com"
        assert config.kubeconfig == "/tmp/kc"
        assert config.context == "gke_ctx"
        assert cls.call_args.kwargs["dry_run"] is True

    def test_cloudflare_token_from_env(self, runner):
        """The token is read from CLOUDFLARE_API_TOKEN."""
        orchestrator = mock_orchestrator(successful_run())
        with patch(
            "clusterkit_cli.commands.bootstrap.Orchestrator", return_value=orchestrator
        ) as cls:
            result = runner.invoke(
                cli,
                ["bootstrap", "--project-id", "p"],
                env={"CLOUDFLARE_API_TOKEN": "env-token"},
            )

        assert result.exit_code == 0, result.output
        assert cls.call_args[0][0].cloudflare_token == "env-token"

    def test_project_id_required(self, runner):
        """Terraform needs a project ID."""
        result = runner.invoke(cli, ["bootstrap", "--skip-external-dns"])
        assert result.exit_code == 2
        assert "--project-id is required" in result.output

    def test_token_required(self, runner):
        """ExternalDNS needs a Cloudflare token."""
        result = runner.invoke(
            cli, ["bootstrap", "--project-id", "p"], env={"CLOUDFLARE_API_TOKEN": ""}
        )
        assert result.exit_code == 2
        assert "--cloudflare-token" in result.output

    def test_dry_run_without_inputs(self, runner):
        """A dry run does not need a project ID or token."""
        with patch("subprocess.run") as mock_run:
            result = runner.invoke(
                cli, ["bootstrap", "--dry-run"], env={"CLOUDFLARE_API_TOKEN": ""}
            )

        assert result.exit_code == 0, result.output
        assert "Deploy GKE Cluster" in result.output
        mock_run.assert_not_called()

    def test_dry_run_end_to_end(self, runner):
        """A real dry run reports every step without calling any tool."""
        with patch("subprocess.run") as mock_run:
            result = runner.invoke(
                cli,
                ["bootstrap", "--project-id", "p", "--cloudflare-token", "t", "--dry-run"],
            )

        assert result.exit_code == 0, result.output
        assert "Verify End-to-End Functionality" in result.output
        mock_run.assert_not_called()


def validation_result(passed: bool) -> ValidationResult:
    check = ValidationCheck(
        "Knative Namespace",
        "Knative",
        passed,
        "Namespace exists" if passed else "knative-serving namespace not found",
        remediation=None if passed else "Install Knative Serving",
    )
    result = ValidationResult(checks=[check])
    result.failed_count = 0 if passed else 1
    result.all_passed = passed
    return result


class TestValidateCommand:
    """Tests for `clusterkit bootstrap validate`."""

    def test_all_passed(self, runner):
        """Passing validation exits 0."""
        with patch("clusterkit_cli.commands.bootstrap.Validator") as cls:
            cls.return_value.run.return_value = validation_result(True)
            result = runner.invoke(cli, ["bootstrap", "validate"])

        assert result.exit_code == 0, result.output
        assert "All 1 checks passed" in result.output

    def test_failures_exit_one(self, runner):
        """Failed checks are printed with their fix and exit 1."""
        with patch("clusterkit_cli.commands.bootstrap.Validator") as cls:
            cls.return_value.run.return_value = validation_result(False)
            result = runner.invoke(cli, ["bootstrap", "--skip-knative", "validate"])

        assert result.exit_code == 1
        assert "✗ Knative Namespace" in result.output
        assert "Fix: Install Knative Serving" in result.output
        assert cls.call_args[0][0].skip_knative is True


class TestTroubleshootCommand:
    """Tests for `clusterkit troubleshoot`."""

    def test_component_filter_passed_through(self, runner):
        """--component is forwarded to the diagnostics run."""
        with patch("clusterkit_cli.commands.troubleshoot.Troubleshooter") as cls:
            cls.return_value.run_diagnostics.return_value = validation_result(True)
            result = runner.invoke(cli, ["troubleshoot", "--component", "knative"])

        assert result.exit_code == 0, result.output
        cls.return_value.run_diagnostics.assert_called_once_with("knative")

    def test_unknown_component_rejected(self, runner):
        """Unknown component names are a usage error."""
        result = runner.invoke(cli, ["troubleshoot", "--component", "redis"])
        assert result.exit_code == 2

    def test_failures_exit_one(self, runner):
        """Any failed check exits 1."""
        with patch("clusterkit_cli.commands.troubleshoot.Troubleshooter") as cls:
            cls.return_value.run_diagnostics.return_value = validation_result(False)
            result = runner.invoke(cli, ["troubleshoot"])

        assert result.exit_code == 1
        assert "1 of 1 checks failed" in result.output

    def test_collect_logs(self, runner):
        """--collect-logs writes component logs into the directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logs_dir = Path(tmpdir) / "logs"
            with patch("clusterkit_cli.commands.troubleshoot.Troubleshooter") as cls:
                cls.return_value.run_diagnostics.return_value = validation_result(True)
                cls.return_value.collect_logs.return_value = [logs_dir / "knative-controller.log"]
                result = runner.invoke(cli, ["troubleshoot", "--collect-logs", str(logs_dir)])

        assert result.exit_code == 0, result.output
        cls.return_value.collect_logs.assert_called_once_with(logs_dir)
        assert "Collected 1 log files" in result.output


class TestGlobalOptions:
    """Tests for options on the top-level group."""

    def test_invalid_config_exits_one(self, runner):
        """Configuration errors are reported without a traceback."""
        with patch(
            "clusterkit_cli.main.load_config",
            side_effect=ConfigError("invalid log_level: trace"),
        ):
            result = runner.invoke(cli, ["troubleshoot"])

        assert result.exit_code == 1
        assert "invalid log_level: trace" in result.output

    def test_verbose_enables_debug(self, runner):
        """-v switches logging to debug."""
        with (
            patch("clusterkit_cli.main.configure_logging") as configure,
            patch("clusterkit_cli.commands.troubleshoot.Troubleshooter") as cls,
        ):
            cls.return_value.run_diagnostics.return_value = validation_result(True)
            runner.invoke(cli, ["-v", "--log-format", "json", "troubleshoot"])

        configure.assert_called_once_with(level="debug", log_format="json")

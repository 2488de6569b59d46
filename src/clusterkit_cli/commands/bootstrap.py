"""Bootstrap command for provisioning a ClusterKit platform.

This module provides the `clusterkit bootstrap` command which provisions a
GKE cluster and installs the platform components on it in order, and the
`clusterkit bootstrap validate` subcommand which checks an existing
installation.
"""

from __future__ import annotations

import sys

import click

from ..bootstrap import ConsoleProgressReporter, Orchestrator, Validator
from ..bootstrap.kube import KubeClient
from ..bootstrap.types import BootstrapConfig
from ..config import ClusterKitConfig
from ..errors import ConfigError
from ..formatters import format_error_chain, print_bootstrap_summary, print_check_report
from ..shared.logging import get_logger


def check_required_options(config: BootstrapConfig) -> None:
    """Reject runs that would fail on missing inputs.

    Raises:
        click.UsageError: If an enabled component lacks its inputs.
    """
    if not config.skip_terraform and not config.project_id:
        raise click.UsageError("--project-id is required unless --skip-terraform is set")
    if not config.skip_external_dns and not config.cloudflare_token:
        raise click.UsageError(
            "--cloudflare-token (or CLOUDFLARE_API_TOKEN) is required "
            "unless --skip-external-dns is set"
        )


@click.group(invoke_without_command=True)
@click.option("--project-id", default=None, help="GCP project ID")
@click.option("--region", default=None, help="GCP region (default: us-central1)")
@click.option("--cluster-name", default=None, help="GKE cluster name (default: clusterkit)")
@click.option("--domain", default=None, help="Base domain for Knative services")
@click.option(
    "--cloudflare-token",
    envvar="CLOUDFLARE_API_TOKEN",
    default=None,
    help="Cloudflare API token for ExternalDNS",
)
@click.option("--skip-terraform", is_flag=True, help="Use an existing cluster")
@click.option("--skip-ingress", is_flag=True, help="Skip NGINX Ingress")
@click.option("--skip-cert-manager", is_flag=True, help="Skip cert-manager")
@click.option("--skip-external-dns", is_flag=True, help="Skip ExternalDNS")
@click.option("--skip-knative", is_flag=True, help="Skip Knative Serving")
@click.option("--kubeconfig", default=None, help="Kubeconfig path")
@click.option("--context", "kube_context", default=None, help="Kubeconfig context")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without doing it (inputs are not required)",
)
@click.option(
    "--rollback-on-failure",
    is_flag=True,
    help="Tear down successfully installed components if a step fails",
)
@click.pass_context
def bootstrap(
    ctx,
    project_id,
    region,
    cluster_name,
    domain,
    cloudflare_token,
    skip_terraform,
    skip_ingress,
    skip_cert_manager,
    skip_external_dns,
    skip_knative,
    kubeconfig,
    kube_context,
    dry_run,
    rollback_on_failure,
):
    """Provision a cluster and install the platform.

    Runs, in order: Terraform (GKE), NGINX Ingress, cert-manager,
    ExternalDNS, Knative Serving and end-to-end validation. The run stops
    at the first step that fails after retries.

    Examples:

        # Full bootstrap
        clusterkit bootstrap --project-id my-project --domain example.com

        # Install onto an existing cluster
        clusterkit bootstrap --skip-terraform --domain example.com

        # Preview the steps
        clusterkit bootstrap --project-id my-project --dry-run
    """
    ctx.ensure_object(dict)
    settings: ClusterKitConfig = ctx.obj.get("config") or ClusterKitConfig()
    logger = ctx.obj.get("logger") or get_logger("clusterkit")

    try:
        config = settings.to_bootstrap_config(
            project_id=project_id,
            region=region,
            cluster_name=cluster_name,
            domain=domain,
            cloudflare_token=cloudflare_token,
            skip_terraform=skip_terraform,
            skip_ingress=skip_ingress,
            skip_cert_manager=skip_cert_manager,
            skip_external_dns=skip_external_dns,
            skip_knative=skip_knative,
            kubeconfig=kubeconfig,
            context=kube_context,
        )
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    ctx.obj["bootstrap_config"] = config

    if ctx.invoked_subcommand is not None:
        return  # Subcommand handles it

    if not dry_run:
        check_required_options(config)
    _run_bootstrap(config, dry_run=dry_run, rollback_on_failure=rollback_on_failure, logger=logger)


def _run_bootstrap(config: BootstrapConfig, dry_run: bool, rollback_on_failure: bool, logger):
    orchestrator = Orchestrator(config, dry_run=dry_run, logger=logger)

    header = "ClusterKit bootstrap"
    if dry_run:
        header += " (dry run)"
    click.echo(f"{header}: cluster {config.cluster_name} in {config.region}\n")

    reporter = ConsoleProgressReporter(total_steps=len(orchestrator.steps))
    result = orchestrator.run(progress_callback=reporter)
    print_bootstrap_summary(result)

    if result.success:
        return

    failed = result.failed_step
    error = format_error_chain(result.error) if result.error else failed.message
    click.echo(f"Error: Bootstrap failed at step '{failed.name}': {error}", err=True)

    if rollback_on_failure:
        click.echo("Rolling back installed components...", err=True)
        orchestrator.rollback(result)
        click.echo("Rollback finished; see the log for any teardown errors.", err=True)

    sys.exit(1)


@bootstrap.command()
@click.pass_context
def validate(ctx):
    """Validate an existing installation.

    Checks cluster connectivity, every enabled component, DNS and TLS
    configuration. Honors the --skip-* and --kubeconfig options given to
    `clusterkit bootstrap`.
    """
    config: BootstrapConfig = ctx.obj["bootstrap_config"]
    logger = ctx.obj.get("logger") or get_logger("clusterkit")

    validator = Validator(config, KubeClient(config.kubeconfig, config.context), logger=logger)
    result = validator.run()
    print_check_report("ClusterKit validation", result)

    if not result.all_passed:
        sys.exit(1)

"""Troubleshoot command for diagnosing a ClusterKit platform."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from ..bootstrap import Troubleshooter
from ..bootstrap.kube import KubeClient
from ..bootstrap.troubleshoot import diagnosable_names
from ..config import ClusterKitConfig
from ..formatters import print_check_report
from ..shared.logging import get_logger


@click.command()
@click.option(
    "--component",
    type=click.Choice(diagnosable_names()),
    default=None,
    help="Only diagnose this component",
)
@click.option(
    "--collect-logs",
    "logs_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also write recent component logs into this directory",
)
@click.option("--kubeconfig", default=None, help="Kubeconfig path")
@click.option("--context", "kube_context", default=None, help="Kubeconfig context")
@click.pass_context
def troubleshoot(ctx, component, logs_dir, kubeconfig, kube_context):
    """Diagnose common problems with an installation.

    Every failing check is printed with a suggested fix.

    Examples:

        clusterkit troubleshoot

        clusterkit troubleshoot --component cert-manager

        clusterkit troubleshoot --collect-logs ./clusterkit-logs
    """
    ctx.ensure_object(dict)
    settings: ClusterKitConfig = ctx.obj.get("config") or ClusterKitConfig()
    logger = ctx.obj.get("logger") or get_logger("clusterkit")

    kube = KubeClient(
        kubeconfig or settings.kubeconfig or None,
        kube_context or settings.context or None,
    )
    troubleshooter = Troubleshooter(kube, logger=logger)

    result = troubleshooter.run_diagnostics(component)
    print_check_report("ClusterKit diagnostics", result)

    if logs_dir is not None:
        written = troubleshooter.collect_logs(logs_dir)
        click.echo(f"\nCollected {len(written)} log files into {logs_dir}")
        for path in written:
            click.echo(f"  {path}")

    if not result.all_passed:
        sys.exit(1)

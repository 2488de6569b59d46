"""CLI output formatting helpers.

All formatters work with the result objects of the bootstrap engine.
"""

import click

from .bootstrap.checks import ValidationResult
from .bootstrap.types import BootstrapResult, StepStatus


def print_check_report(title: str, result: ValidationResult) -> None:
    """Print checks grouped by category, with remediation for failures.

    Args:
        title: Report header
        result: Validation or diagnostic result
    """
    click.echo(f"{title}\n")

    by_category: dict[str, list] = {}
    for check in result.checks:
        by_category.setdefault(check.category, []).append(check)

    for category, checks in by_category.items():
        click.echo(f"{category}:")
        for check in checks:
            marker = "✓" if check.passed else "✗"
            click.echo(f"  {marker} {check.name}: {check.message}")
            if not check.passed and check.error is not None:
                click.echo(f"      Error: {check.error}")
            if not check.passed and check.remediation:
                click.echo(f"      Fix: {check.remediation}")
        click.echo()

    total = len(result.checks)
    seconds = result.duration.total_seconds()
    if result.all_passed:
        click.echo(f"✓ All {total} checks passed ({seconds:.1f}s)")
    else:
        click.echo(f"✗ {result.failed_count} of {total} checks failed ({seconds:.1f}s)")


def print_bootstrap_summary(result: BootstrapResult) -> None:
    """Print the per-step outcome of a bootstrap run.

    Args:
        result: Completed bootstrap result
    """
    click.echo("\nSummary:")
    for step in result.steps:
        if step.status == StepStatus.SUCCESS:
            retries = f", {step.retries} retries" if step.retries else ""
            click.echo(f"  ✓ {step.name} ({step.duration.total_seconds():.1f}s{retries})")
        elif step.status == StepStatus.SKIPPED:
            click.echo(f"  - {step.name} (skipped)")
        else:
            click.echo(f"  ✗ {step.name}: {step.message}")

    seconds = result.duration.total_seconds()
    if result.success:
        click.echo(f"\n✓ Bootstrap completed in {seconds:.1f}s")
    else:
        click.echo(f"\n✗ Bootstrap failed after {seconds:.1f}s")


def format_error_chain(error: BaseException) -> str:
    """Join an exception and its causes into one line.

    Causes already quoted in a parent message are not repeated.
    """
    parts = [str(error)]
    cause = error.__cause__
    while cause is not None:
        text = str(cause)
        if text and text not in parts[-1]:
            parts.append(text)
        cause = cause.__cause__
    return ": ".join(parts)

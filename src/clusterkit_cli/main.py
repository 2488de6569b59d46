"""CLI main entry point."""

import sys

import click

from .commands.bootstrap import bootstrap
from .commands.troubleshoot import troubleshoot
from .config import VALID_LOG_FORMATS, load_config
from .errors import ConfigError
from .shared.logging import configure_logging, get_logger


@click.group()
@click.option(
    "-c", "--config", "config_path", type=click.Path(dir_okay=False), help="Config file path"
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v: debug)")
@click.option(
    "--log-format",
    type=click.Choice(VALID_LOG_FORMATS),
    default=None,
    help="Log output format (default: text)",
)
@click.version_option(package_name="clusterkit")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: int, log_format: str | None) -> None:
    """ClusterKit: bootstrap a serverless Kubernetes platform on GKE."""
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    level = "debug" if verbose else config.log_level
    configure_logging(level=level, log_format=log_format or config.log_format)

    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["logger"] = get_logger("clusterkit")


cli.add_command(bootstrap)
cli.add_command(troubleshoot)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()

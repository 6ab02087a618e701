"""CLI main entry point."""

import click

from . import __version__
from .commands.deploy import deploy
from .commands.plan import plan
from .commands.status import status
from .commands.teardown import teardown
from .config import load_config
from .shared.logging import configure_logging, level_from_verbosity


def _setup_logging(config_path, verbose: int, log_json: bool, log_file) -> None:
    config = load_config(config_path)
    configure_logging(
        level=level_from_verbosity(config.log_level, verbose),
        log_file=log_file,
        json_output=log_json,
    )


@click.group()
@click.option("-c", "--config", type=click.Path(), help="Config file path")
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON")
@click.option("--log-file", type=click.Path(), help="Write logs to a file instead of stderr")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: int, log_json: bool, log_file: str) -> None:
    """Deploy and tear down Kong Mesh zones on AWS ECS."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = click.format_filename(config) if config else None
    ctx.obj["verbose"] = verbose
    _setup_logging(ctx.obj["config_path"], verbose, log_json, log_file)


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"meshzone version {__version__}")


cli.add_command(deploy)
cli.add_command(teardown)
cli.add_command(status)
cli.add_command(plan)


def main() -> None:
    """Main entry point."""
    cli(obj={})


def deploy_zone() -> None:
    """Entry point for the standalone `deploy-zone` script."""
    _setup_logging(None, 0, False, None)
    deploy(obj={})


def cleanup_zone() -> None:
    """Entry point for the standalone `cleanup-zone` script."""
    _setup_logging(None, 0, False, None)
    teardown(obj={})

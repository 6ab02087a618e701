"""Status command: show what currently exists for a zone."""

import click

from ..config import load_config
from ..decorators import ZoneCommand
from ..errors import MissingRequiredParameter
from ..zone.backends import create_backends
from ..zone.options import validate_zone_name
from ..zone.secrets import SecretLifecycleManager
from ..zone.state import ZoneStateInspector
from ..zone.summary import print_zone_state


@click.command(cls=ZoneCommand)
@click.option("--zone-name", help="Name of the zone (required)")
@click.option("--region", help="AWS region (default: us-east-2)")
@click.pass_context
def status(ctx, zone_name, region):
    """Show the stacks and secrets of a zone.

    State is always read from AWS; nothing is cached locally.
    """
    if not zone_name:
        raise MissingRequiredParameter(parameters=("--zone-name",))
    validate_zone_name(zone_name)

    obj = ctx.obj or {}
    region = region or load_config(obj.get("config_path")).region

    backends = create_backends(region)
    backends.prerequisites.ensure(require_kumactl=False)

    inspector = ZoneStateInspector(backends.engine, SecretLifecycleManager(backends.store, zone_name))
    print_zone_state(inspector.detect_state(), region)

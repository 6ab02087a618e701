"""Plan command: print the apply and teardown order for a zone."""

import click

from .. import formatters as fmt
from ..decorators import ZoneCommand
from ..errors import MissingRequiredParameter
from ..zone.graph import build_plan
from ..zone.options import validate_zone_name


@click.command(cls=ZoneCommand)
@click.option("--zone-name", help="Name of the zone (required)")
@click.option("--skip-demo", is_flag=True, help="Leave out the counter demo stacks")
@click.option("--skip-ingress", is_flag=True, help="Leave out the zone ingress stack")
def plan(zone_name, skip_demo, skip_ingress):
    """Show which stacks deploy and teardown would touch, in order."""
    if not zone_name:
        raise MissingRequiredParameter(parameters=("--zone-name",))

    deployment_plan = build_plan(validate_zone_name(zone_name), skip_ingress, skip_demo)
    names = deployment_plan.stack_names()
    fmt.print_plan(names, list(reversed(names)))

"""Teardown command for removing a Kong Mesh zone.

This module provides the `meshzone teardown` command (also installed as
`cleanup-zone`). It shows exactly what will be removed, asks for an
explicit "yes", deletes the stacks in reverse dependency order and then,
unless --keep-secrets is given, deletes the zone secrets.
"""

from __future__ import annotations

import click

from .. import formatters as fmt
from ..config import load_config
from ..decorators import ZoneCommand
from ..shared.logging import get_logger
from ..zone.backends import create_backends
from ..zone.confirm import ConfirmationDecision, ConfirmationGate, build_removal_set
from ..zone.graph import build_plan
from ..zone.options import build_teardown_request
from ..zone.orchestrator import StackOrchestrator
from ..zone.secrets import SecretLifecycleManager
from ..zone.state import ZoneStateInspector
from ..zone.summary import print_teardown_summary
from ..zone.workflow import ZoneTeardown

logger = get_logger(__name__)


@click.command(cls=ZoneCommand)
@click.option("--zone-name", help="Name of the zone to delete (required)")
@click.option("--region", help="AWS region (default: us-east-2)")
@click.option("--keep-secrets", is_flag=True, help="Don't delete the zone secrets")
@click.option("--skip-demo", is_flag=True, help="Don't delete the counter demo stacks")
@click.option("--skip-ingress", is_flag=True, help="Don't delete the zone ingress stack")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip the confirmation prompt")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted and exit")
@click.pass_context
def teardown(ctx, zone_name, region, keep_secrets, skip_demo, skip_ingress, assume_yes, dry_run):
    """Delete a Kong Mesh zone and its resources.

    Stacks a dependent still needs are not deleted; the summary lists
    everything that remains.

    Examples:

        meshzone teardown --zone-name zone1

        # Keep secrets for a later `deploy --reuse-secrets`
        meshzone teardown --zone-name zone1 --keep-secrets -y
    """
    obj = ctx.obj or {}
    config = load_config(obj.get("config_path"))

    request = build_teardown_request(
        zone_name=zone_name,
        region=region if region is not None else config.region,
        keep_secrets=keep_secrets,
        skip_demo=skip_demo,
        skip_ingress=skip_ingress,
        assume_yes=assume_yes,
    )
    plan = build_plan(request.zone_name, request.skip_ingress, request.skip_demo)

    fmt.banner("  Kong Mesh ECS Zone Cleanup")

    backends = create_backends(request.region)
    secrets = SecretLifecycleManager(backends.store, request.zone_name)
    removal = build_removal_set(plan, None if request.keep_secrets else secrets)

    if dry_run:
        fmt.print_removal_set(removal)
        fmt.info("Dry run: no changes made")
        return

    backends.prerequisites.ensure(require_kumactl=False)

    if request.assume_yes:
        fmt.print_removal_set(removal)

    gate = ConfirmationGate(render=fmt.print_removal_set)
    if gate.confirm(removal, request.assume_yes) == ConfirmationDecision.ABORT:
        fmt.info("Cleanup cancelled")
        logger.info("teardown_cancelled", zone=request.zone_name)
        return

    fmt.info(f"Starting cleanup for zone: {request.zone_name}")

    orchestrator = StackOrchestrator(backends.engine, on_event=fmt.print_stack_event)
    result = ZoneTeardown(orchestrator, secrets, on_secret=fmt.print_secret_outcome).teardown(
        request, plan
    )

    state = ZoneStateInspector(backends.engine, secrets).detect_state(plan.graph)
    print_teardown_summary(result, state)

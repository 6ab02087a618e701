"""Deploy command for provisioning a Kong Mesh zone on ECS.

This module provides the `meshzone deploy` command (also installed as
`deploy-zone`) which creates the zone secrets, applies the network stack,
issues the control-plane certificate and applies the remaining stacks.
"""

from __future__ import annotations

from pathlib import Path

import click

from .. import formatters as fmt
from ..config import load_config
from ..decorators import ZoneCommand
from ..errors import InvalidPath
from ..shared.logging import get_logger
from ..zone.backends import create_backends
from ..zone.certs import CertificateProvisioner
from ..zone.graph import build_plan
from ..zone.options import (
    DEFAULT_SUBNET1_CIDR,
    DEFAULT_SUBNET2_CIDR,
    DEFAULT_VPC_CIDR,
    build_deployment_request,
)
from ..zone.orchestrator import StackOrchestrator
from ..zone.secrets import SecretLifecycleManager
from ..zone.summary import print_deploy_summary
from ..zone.workflow import ZoneDeployer

logger = get_logger(__name__)


def _pick(flag, configured):
    return flag if flag is not None else configured


@click.command(cls=ZoneCommand)
@click.option("--zone-name", help="Name of the zone (required)")
@click.option("--kds-address", help="Global KDS address from Konnect")
@click.option("--cp-id", help="Konnect control plane ID")
@click.option(
    "--connectivity-token",
    "--konnect-token",
    "connectivity_token",
    help="Konnect connectivity token (or MESHZONE_CONNECTIVITY_TOKEN)",
)
@click.option(
    "--license-file",
    help="Kong Mesh license file (enables self-hosted mode)",
)
@click.option("--vpc-cidr", default=DEFAULT_VPC_CIDR, show_default=True, help="VPC CIDR block")
@click.option(
    "--subnet1-cidr", default=DEFAULT_SUBNET1_CIDR, show_default=True, help="Public subnet 1 CIDR"
)
@click.option(
    "--subnet2-cidr", default=DEFAULT_SUBNET2_CIDR, show_default=True, help="Public subnet 2 CIDR"
)
@click.option("--region", help="AWS region (default: us-east-2)")
@click.option("--skip-demo", is_flag=True, help="Skip deploying the counter demo app")
@click.option("--skip-ingress", is_flag=True, help="Skip deploying the zone ingress")
@click.option(
    "--reuse-secrets",
    is_flag=True,
    help="Reuse zone secrets kept by a previous teardown",
)
@click.option(
    "--settle-seconds",
    type=int,
    help="Seconds to wait after the control plane is up (default: 30)",
)
@click.option("--templates-dir", help="Directory holding the stack templates (default: ./deploy)")
@click.option("--dry-run", is_flag=True, help="Print the plan and exit without changes")
@click.pass_context
def deploy(
    ctx,
    zone_name,
    kds_address,
    cp_id,
    connectivity_token,
    license_file,
    vpc_cidr,
    subnet1_cidr,
    subnet2_cidr,
    region,
    skip_demo,
    skip_ingress,
    reuse_secrets,
    settle_seconds,
    templates_dir,
    dry_run,
):
    """Deploy a Kong Mesh zone to ECS.

    Examples:

        # Konnect-hosted global control plane
        meshzone deploy --zone-name zone1 --kds-address grpcs://... \\
            --cp-id abc123 --connectivity-token $TOKEN

        # Self-hosted with a license, no demo workloads
        meshzone deploy --zone-name zone1 ... --license-file license.json --skip-demo
    """
    obj = ctx.obj or {}
    config = load_config(obj.get("config_path"))

    request = build_deployment_request(
        zone_name=zone_name,
        kds_address=_pick(kds_address, config.kds_address),
        cp_id=_pick(cp_id, config.cp_id),
        connectivity_token=_pick(connectivity_token, config.connectivity_token),
        license_file=license_file,
        vpc_cidr=vpc_cidr,
        subnet1_cidr=subnet1_cidr,
        subnet2_cidr=subnet2_cidr,
        region=_pick(region, config.region),
        skip_demo=skip_demo,
        skip_ingress=skip_ingress,
        reuse_secrets=reuse_secrets,
        settle_seconds=_pick(settle_seconds, config.settle_seconds),
        templates_dir=_pick(templates_dir, config.templates_dir),
    )
    plan = build_plan(request.zone_name, request.skip_ingress, request.skip_demo)

    fmt.banner("  Kong Mesh ECS Zone Deployment")

    if dry_run:
        fmt.print_plan(plan.stack_names(), list(reversed(plan.stack_names())))
        fmt.info("Dry run: no changes made")
        return

    if not Path(request.templates_dir).is_dir():
        raise InvalidPath(message="Templates directory not found", path=str(request.templates_dir))

    backends = create_backends(request.region)
    fmt.info("Checking prerequisites...")
    backends.prerequisites.ensure(require_kumactl=True)
    fmt.success("All prerequisites met")

    mode = "self-hosted (license)" if request.self_hosted else "Konnect-hosted"
    fmt.info(f"Starting deployment for zone: {request.zone_name} ({mode})")
    logger.info("deploy_command", zone=request.zone_name, region=request.region)

    orchestrator = StackOrchestrator(
        backends.engine,
        request.templates_dir,
        on_event=fmt.print_stack_event,
        settle_seconds=request.settle_seconds,
    )
    deployer = ZoneDeployer(
        orchestrator,
        SecretLifecycleManager(backends.store, request.zone_name),
        CertificateProvisioner(backends.certificates),
        on_secret=fmt.print_secret_outcome,
    )
    result = deployer.deploy(request, plan)

    for message in result.warnings:
        fmt.warning(message)
    if result.certificate_reused:
        fmt.warning("Existing TLS key pair reused; certificate generation skipped")

    print_deploy_summary(result)

    if not result.success:
        ctx.exit(result.error.exit_code)

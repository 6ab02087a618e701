"""Summary reporting for zone commands.

Read-only: everything printed here comes from result objects or a freshly
detected ZoneState. Nothing in this module touches a remote store.
"""

from __future__ import annotations

from rich.markup import escape
from rich.table import Table

from .. import formatters as fmt
from .graph import StackRole
from .state import ZoneState
from .workflow import DELETED, FAILED, KEPT, DeployResult, TeardownResult

WORKLOAD_ROLES = (StackRole.REDIS, StackRole.DEMO_APP)


def _field(label: str, value: str | None) -> None:
    fmt.console.print(f"{label + ':':<21}{escape(value or '-')}")


def _names(title: str, names: list[str]) -> None:
    fmt.console.print(f"{title}:")
    if not names:
        fmt.console.print("  (none)")
    for name in names:
        fmt.console.print(f"  - {escape(name)}")


def print_deploy_summary(result: DeployResult) -> None:
    """Final report of a deploy invocation, successful or not."""
    request = result.request

    fmt.console.print()
    fmt.console.print("=" * fmt.BANNER_WIDTH)
    if result.success:
        fmt.success("Deployment Complete!")
    else:
        fmt.error("Deployment Failed")
    fmt.console.print("=" * fmt.BANNER_WIDTH)
    fmt.console.print()

    _field("Zone Name", request.zone_name)
    _field("Region", request.region)
    _field("VPC CIDR", request.network.vpc_cidr)
    _field("CP Address", result.cp_address)
    fmt.console.print()

    _names("Deployed Stacks", result.applied_stacks)

    if not result.success:
        fmt.console.print()
        if result.failed_stack:
            _field("Failed Stack", result.failed_stack)
        not_applied = [
            name for name in result.plan.stack_names() if name not in result.applied_stacks
        ]
        _names("Not Deployed", not_applied)
        created = [s.key for s in result.secrets if s.action != FAILED]
        fmt.console.print()
        _names("Secrets In Place", created)
        fmt.console.print()
        fmt.error(str(result.error))
        fmt.console.print()
        fmt.console.print("Stacks deployed before the failure were left in place.")
        fmt.console.print("Clean up with:")
        fmt.console.print(
            f"  cleanup-zone --zone-name {escape(request.zone_name)} --region {escape(request.region)}"
        )
        fmt.console.print()
        return

    applied_roles = {r.role for r in result.records if r.stack_name in result.applied_stacks}
    if result.cp_address and all(role in applied_roles for role in WORKLOAD_ROLES):
        fmt.console.print()
        _field("Demo App URL", f"http://{result.cp_address}:80")
        fmt.console.print()
        fmt.console.print("Test the demo app:")
        fmt.console.print(f"  curl http://{escape(result.cp_address)}/counter")
        fmt.console.print(f"  curl -X POST http://{escape(result.cp_address)}/increment")

    fmt.console.print()
    fmt.console.print("Next Steps:")
    fmt.console.print("  1. Check Konnect console to verify zone is connected")
    fmt.console.print("  2. Verify dataplanes are registered in Konnect")
    fmt.console.print("  3. Use kumactl (configured for Konnect) to manage the mesh")
    fmt.console.print()
    fmt.console.print("Cleanup command:")
    fmt.console.print(
        f"  cleanup-zone --zone-name {escape(request.zone_name)} --region {escape(request.region)}"
    )
    fmt.console.print()


def print_teardown_summary(result: TeardownResult, state: ZoneState | None = None) -> None:
    """Final report of a teardown invocation.

    Args:
        result: What this invocation did.
        state: Freshly detected zone state; when given, it is the source of
            truth for what remains.
    """
    request = result.request

    fmt.console.print()
    fmt.console.print("=" * fmt.BANNER_WIDTH)
    if result.complete:
        fmt.success("Cleanup Complete!")
    else:
        fmt.warning("Cleanup finished with errors")
    fmt.console.print("=" * fmt.BANNER_WIDTH)
    fmt.console.print()

    _field("Zone Name", request.zone_name)
    _field("Region", request.region)
    fmt.console.print()

    _names("Removed Stacks", result.removed_stacks)
    remaining = state.present_stacks if state is not None else result.remaining_stacks
    _names("Remaining Stacks", remaining)
    fmt.console.print()

    if request.keep_secrets:
        if state is not None:
            kept = state.present_secrets
        else:
            kept = [s.key for s in result.secrets if s.action == KEPT]
        _names("Kept Secrets", kept)
    else:
        _names("Removed Secrets", [s.key for s in result.secrets if s.action == DELETED])
        if state is not None:
            remaining_secrets = state.present_secrets
        else:
            remaining_secrets = [s.key for s in result.secrets if s.action == FAILED]
        _names("Remaining Secrets", remaining_secrets)
    fmt.console.print()

    for failure in result.failures:
        fmt.error(str(failure))

    if request.keep_secrets:
        fmt.info("Secrets were preserved and can be reused for redeployment")
    elif result.complete and not remaining:
        fmt.info("All resources have been deleted")
    fmt.console.print()


def _presence(exists: bool | None) -> str:
    if exists is None:
        return "[yellow]unknown[/yellow]"
    return "[green]present[/green]" if exists else "[dim]absent[/dim]"


def print_zone_state(state: ZoneState, region: str) -> None:
    """Tables of stack and secret presence for ``meshzone status``."""
    stacks = Table(title=f"Zone {escape(state.zone_name)} ({escape(region)})", border_style="cyan")
    stacks.add_column("Stack")
    stacks.add_column("Role", style="dim")
    stacks.add_column("Present")
    stacks.add_column("Status")
    for presence in state.stacks:
        stacks.add_row(
            escape(presence.stack_name),
            presence.role.value,
            _presence(presence.exists),
            escape(presence.status or "-"),
        )
    fmt.console.print(stacks)

    secrets = Table(title="Secrets", border_style="cyan")
    secrets.add_column("Secret")
    secrets.add_column("Present")
    for secret in state.secrets:
        secrets.add_row(escape(secret.key), _presence(secret.exists))
    fmt.console.print(secrets)

    address = None
    vpc = state.stack(StackRole.VPC)
    if vpc is not None and vpc.exists:
        address = vpc.outputs.get("ExternalCPAddress")
    if address:
        fmt.info(f"Control plane address: {address}")
    if not state.deployed:
        fmt.info(f"Zone {state.zone_name} has no deployed stacks")

"""Stack dependency graph and deployment plans.

A zone is made of a fixed set of stack roles with a static partial order:
``vpc < control-plane < {ingress, redis, demo-app}``. A deployment plan is
that graph filtered by the skip flags and sorted topologically, breaking
ties by the declared order below.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from .options import DeploymentRequest
from .secrets import SecretPurpose

# Output holding the network stack's externally reachable control-plane address
CP_ADDRESS_OUTPUT = "ExternalCPAddress"

# Synthetic output carrying a stack's own identity to its dependents
STACK_NAME_OUTPUT = "StackName"

SKIP_INGRESS = "ingress"
SKIP_DEMO = "demo"


class StackRole(Enum):
    """Role of a stack within a zone."""

    VPC = "vpc"
    CONTROL_PLANE = "control-plane"
    INGRESS = "ingress"
    REDIS = "redis"
    DEMO_APP = "demo-app"


def stack_identity(zone_name: str, role: StackRole) -> str:
    """Stack name for a role: ``<zone>-<role>``."""
    return f"{zone_name}-{role.value}"


@dataclass
class BindingContext:
    """Everything a stack's parameter set can be built from.

    ``outputs`` only ever holds outputs harvested from stacks applied during
    this invocation.
    """

    request: DeploymentRequest
    secret_refs: dict[SecretPurpose, str] = field(default_factory=dict)
    outputs: dict[StackRole, dict[str, str]] = field(default_factory=dict)

    def has_outputs(self, role: StackRole) -> bool:
        return role in self.outputs

    def output(self, role: StackRole, key: str) -> str:
        """Return a harvested output of an applied stack.

        Raises:
            KeyError: the stack was not applied or does not expose the output.
        """
        return self.outputs[role][key]

    def stack_name(self, role: StackRole) -> str:
        return self.output(role, STACK_NAME_OUTPUT)


def _vpc_parameters(ctx: BindingContext) -> dict[str, str]:
    network = ctx.request.network
    return {
        "ZoneIdentifier": ctx.request.zone_name,
        "VpcCIDR": network.vpc_cidr,
        "PublicSubnet1CIDR": network.subnet1_cidr,
        "PublicSubnet2CIDR": network.subnet2_cidr,
    }


def _control_plane_parameters(ctx: BindingContext) -> dict[str, str]:
    params = {
        "VPCStackName": ctx.stack_name(StackRole.VPC),
        "ZoneName": ctx.request.zone_name,
        "ServerKeySecret": ctx.secret_refs[SecretPurpose.TLS_KEY],
        "ServerCertSecret": ctx.secret_refs[SecretPurpose.TLS_CERT],
        "GlobalKDSAddress": ctx.request.kds_address,
        "GlobalCPTokenSecret": ctx.secret_refs[SecretPurpose.GLOBAL_TOKEN],
        "KonnectCPId": ctx.request.cp_id,
    }
    license_ref = ctx.secret_refs.get(SecretPurpose.LICENSE)
    if license_ref:
        params["LicenseSecret"] = license_ref
    return params


def _workload_parameters(ctx: BindingContext) -> dict[str, str]:
    return {
        "VPCStackName": ctx.stack_name(StackRole.VPC),
        "CPStackName": ctx.stack_name(StackRole.CONTROL_PLANE),
    }


@dataclass(frozen=True)
class StackDefinition:
    """Static description of one stack role."""

    role: StackRole
    template: str
    parameters: Callable[[BindingContext], dict[str, str]]
    depends_on: tuple[StackRole, ...] = ()
    skip_group: str | None = None
    settle_after_apply: bool = False

    def stack_name(self, zone_name: str) -> str:
        return stack_identity(zone_name, self.role)


# Declared order doubles as the tie-break among stacks with no ordering
# dependency on each other (redis before demo-app).
ZONE_STACKS: tuple[StackDefinition, ...] = (
    StackDefinition(StackRole.VPC, "vpc.yaml", _vpc_parameters),
    StackDefinition(
        StackRole.CONTROL_PLANE,
        "controlplane.yaml",
        _control_plane_parameters,
        depends_on=(StackRole.VPC,),
        settle_after_apply=True,
    ),
    StackDefinition(
        StackRole.INGRESS,
        "ingress.yaml",
        _workload_parameters,
        depends_on=(StackRole.VPC, StackRole.CONTROL_PLANE),
        skip_group=SKIP_INGRESS,
    ),
    StackDefinition(
        StackRole.REDIS,
        "counter-demo/redis.yaml",
        _workload_parameters,
        depends_on=(StackRole.VPC, StackRole.CONTROL_PLANE),
        skip_group=SKIP_DEMO,
    ),
    StackDefinition(
        StackRole.DEMO_APP,
        "counter-demo/demo-app.yaml",
        _workload_parameters,
        depends_on=(StackRole.VPC, StackRole.CONTROL_PLANE),
        skip_group=SKIP_DEMO,
    ),
)


def topological_order(definitions: Iterable[StackDefinition]) -> list[StackDefinition]:
    """Sort definitions dependencies-first, ties broken by declared order.

    Raises:
        ValueError: a dependency is missing from the set or the graph has a cycle.
    """
    ordered = list(definitions)
    by_role = {d.role: d for d in ordered}
    order_index = {d.role: idx for idx, d in enumerate(ordered)}

    dependents: dict[StackRole, set[StackRole]] = defaultdict(set)
    indegree: dict[StackRole, int] = {}
    for definition in ordered:
        missing = [dep for dep in definition.depends_on if dep not in by_role]
        if missing:
            names = ", ".join(dep.value for dep in missing)
            raise ValueError(f"Stack '{definition.role.value}' depends on unplanned {names}")
        indegree[definition.role] = len(set(definition.depends_on))
        for dep in set(definition.depends_on):
            dependents[dep].add(definition.role)

    ready = sorted((r for r, n in indegree.items() if n == 0), key=order_index.__getitem__)
    result: list[StackDefinition] = []
    while ready:
        role = ready.pop(0)
        result.append(by_role[role])
        for child in dependents[role]:
            indegree[child] -= 1
            if indegree[child] == 0:
                ready.append(child)
        ready.sort(key=order_index.__getitem__)

    if len(result) != len(ordered):
        stuck = sorted(r.value for r, n in indegree.items() if n > 0)
        raise ValueError(f"Cyclic dependency detected involving: {', '.join(stuck)}")
    return result


@dataclass(frozen=True)
class DeploymentPlan:
    """Topologically sorted stacks of one zone. Derived, never persisted."""

    zone_name: str
    stacks: tuple[StackDefinition, ...]
    graph: tuple[StackDefinition, ...] = ZONE_STACKS

    @property
    def apply_order(self) -> tuple[StackDefinition, ...]:
        return self.stacks

    @property
    def teardown_order(self) -> tuple[StackDefinition, ...]:
        return tuple(reversed(self.stacks))

    @property
    def roles(self) -> tuple[StackRole, ...]:
        return tuple(d.role for d in self.stacks)

    def stack_names(self) -> list[str]:
        return [d.stack_name(self.zone_name) for d in self.stacks]

    def contains(self, role: StackRole) -> bool:
        return role in self.roles

    def split_after(self, role: StackRole) -> tuple[DeploymentPlan, DeploymentPlan]:
        """Split into the stacks up to and including role, and the rest."""
        index = self.roles.index(role) + 1
        return (
            DeploymentPlan(self.zone_name, self.stacks[:index], self.graph),
            DeploymentPlan(self.zone_name, self.stacks[index:], self.graph),
        )

    def dependents_of(self, role: StackRole) -> list[StackDefinition]:
        """Stacks in the full graph that declare role in depends_on."""
        return [d for d in self.graph if role in d.depends_on]


def build_plan(
    zone_name: str,
    skip_ingress: bool = False,
    skip_demo: bool = False,
    definitions: tuple[StackDefinition, ...] = ZONE_STACKS,
) -> DeploymentPlan:
    """Compute the deployment plan for a zone.

    Skipped groups are removed entirely, so they appear in neither the apply
    nor the teardown order.
    """
    skipped = set()
    if skip_ingress:
        skipped.add(SKIP_INGRESS)
    if skip_demo:
        skipped.add(SKIP_DEMO)

    selected = [d for d in definitions if d.skip_group not in skipped]
    return DeploymentPlan(zone_name, tuple(topological_order(selected)), definitions)

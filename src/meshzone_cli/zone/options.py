"""Option model for zone deploy and teardown.

Turns the raw values collected by the CLI into immutable, validated request
objects. Validation has no side effects beyond reading the filesystem to
check that a license file exists.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from pathlib import Path

from ..config import DEFAULT_REGION, DEFAULT_SETTLE_SECONDS
from ..errors import InvalidPath, InvalidValue, MissingRequiredParameter
from ..shared.paths import DEFAULT_TEMPLATES_DIR

DEFAULT_VPC_CIDR = "10.0.0.0/16"
DEFAULT_SUBNET1_CIDR = "10.0.0.0/24"
DEFAULT_SUBNET2_CIDR = "10.0.1.0/24"

# Zone names become part of stack and secret names, so keep them to a
# CloudFormation-safe fragment.
ZONE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]{0,31}$")


@dataclass(frozen=True)
class NetworkRanges:
    """VPC block and the two public subnets carved out of it."""

    vpc_cidr: str = DEFAULT_VPC_CIDR
    subnet1_cidr: str = DEFAULT_SUBNET1_CIDR
    subnet2_cidr: str = DEFAULT_SUBNET2_CIDR


@dataclass(frozen=True)
class DeploymentRequest:
    """Validated options for one deploy invocation. Never mutated."""

    zone_name: str
    kds_address: str
    cp_id: str
    connectivity_token: str = field(repr=False)
    network: NetworkRanges = field(default_factory=NetworkRanges)
    region: str = DEFAULT_REGION
    license_file: Path | None = None
    skip_demo: bool = False
    skip_ingress: bool = False
    reuse_secrets: bool = False
    settle_seconds: int = DEFAULT_SETTLE_SECONDS
    templates_dir: Path = DEFAULT_TEMPLATES_DIR

    @property
    def self_hosted(self) -> bool:
        """True when a license file was supplied."""
        return self.license_file is not None


@dataclass(frozen=True)
class TeardownRequest:
    """Validated options for one teardown invocation. Never mutated."""

    zone_name: str
    region: str = DEFAULT_REGION
    keep_secrets: bool = False
    skip_demo: bool = False
    skip_ingress: bool = False
    assume_yes: bool = False


def validate_zone_name(zone_name: str) -> str:
    """Check a zone name is usable as a stack/secret name fragment."""
    if not ZONE_NAME_PATTERN.match(zone_name):
        raise InvalidValue(
            message=(
                f"'{zone_name}' is not a valid zone name (letters, digits and '-', "
                "starting with a letter, at most 32 characters)"
            ),
            option="--zone-name",
        )
    return zone_name


def _parse_network(option: str, value: str) -> ipaddress.IPv4Network:
    try:
        network = ipaddress.ip_network(value, strict=True)
    except ValueError as e:
        raise InvalidValue(
            message=f"'{value}' is not a valid CIDR block ({e})", option=option
        ) from e
    if not isinstance(network, ipaddress.IPv4Network):
        raise InvalidValue(message=f"'{value}' is not an IPv4 CIDR block", option=option)
    return network


def validate_network(vpc_cidr: str, subnet1_cidr: str, subnet2_cidr: str) -> NetworkRanges:
    """Validate the VPC block and subnets.

    Both subnets must sit inside the VPC block and must not overlap.
    """
    vpc = _parse_network("--vpc-cidr", vpc_cidr)
    subnet1 = _parse_network("--subnet1-cidr", subnet1_cidr)
    subnet2 = _parse_network("--subnet2-cidr", subnet2_cidr)

    for option, subnet in (("--subnet1-cidr", subnet1), ("--subnet2-cidr", subnet2)):
        if not subnet.subnet_of(vpc):
            raise InvalidValue(message=f"{subnet} is not inside VPC block {vpc}", option=option)

    if subnet1.overlaps(subnet2):
        raise InvalidValue(message=f"{subnet2} overlaps {subnet1}", option="--subnet2-cidr")

    return NetworkRanges(str(vpc), str(subnet1), str(subnet2))


def _require(**values: str | None) -> None:
    missing = tuple(
        "--" + name.replace("_", "-") for name, value in values.items() if not value
    )
    if missing:
        raise MissingRequiredParameter(parameters=missing)


def build_deployment_request(
    *,
    zone_name: str | None,
    kds_address: str | None,
    cp_id: str | None,
    connectivity_token: str | None,
    license_file: str | Path | None = None,
    vpc_cidr: str = DEFAULT_VPC_CIDR,
    subnet1_cidr: str = DEFAULT_SUBNET1_CIDR,
    subnet2_cidr: str = DEFAULT_SUBNET2_CIDR,
    region: str = DEFAULT_REGION,
    skip_demo: bool = False,
    skip_ingress: bool = False,
    reuse_secrets: bool = False,
    settle_seconds: int = DEFAULT_SETTLE_SECONDS,
    templates_dir: str | Path = DEFAULT_TEMPLATES_DIR,
) -> DeploymentRequest:
    """Validate deploy options and build the immutable request.

    Raises:
        MissingRequiredParameter: zone name, KDS address, CP id or token absent.
        InvalidPath: the license file does not exist.
        InvalidValue: malformed zone name, CIDR, or settle time.
    """
    _require(
        zone_name=zone_name,
        kds_address=kds_address,
        cp_id=cp_id,
        connectivity_token=connectivity_token,
    )

    validate_zone_name(zone_name)

    license_path: Path | None = None
    if license_file:
        license_path = Path(license_file)
        if not license_path.is_file():
            raise InvalidPath(message="License file not found", path=str(license_file))

    if settle_seconds < 0:
        raise InvalidValue(message="must not be negative", option="--settle-seconds")

    return DeploymentRequest(
        zone_name=zone_name,
        kds_address=kds_address,
        cp_id=cp_id,
        connectivity_token=connectivity_token,
        network=validate_network(vpc_cidr, subnet1_cidr, subnet2_cidr),
        region=region or DEFAULT_REGION,
        license_file=license_path,
        skip_demo=skip_demo,
        skip_ingress=skip_ingress,
        reuse_secrets=reuse_secrets,
        settle_seconds=settle_seconds,
        templates_dir=Path(templates_dir),
    )


def build_teardown_request(
    *,
    zone_name: str | None,
    region: str = DEFAULT_REGION,
    keep_secrets: bool = False,
    skip_demo: bool = False,
    skip_ingress: bool = False,
    assume_yes: bool = False,
) -> TeardownRequest:
    """Validate teardown options and build the immutable request."""
    _require(zone_name=zone_name)

    return TeardownRequest(
        zone_name=validate_zone_name(zone_name),
        region=region or DEFAULT_REGION,
        keep_secrets=keep_secrets,
        skip_demo=skip_demo,
        skip_ingress=skip_ingress,
        assume_yes=assume_yes,
    )

"""Unit tests for the zone option model."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from meshzone_cli.errors import InvalidPath, InvalidValue, MissingRequiredParameter
from meshzone_cli.zone.options import (
    DEFAULT_SUBNET1_CIDR,
    DEFAULT_SUBNET2_CIDR,
    DEFAULT_VPC_CIDR,
    build_deployment_request,
    build_teardown_request,
    validate_network,
    validate_zone_name,
)

REQUIRED = {
    "zone_name": "zone1",
    "kds_address": "grpcs://us.mesh.sync.konghq.tech:443",
    "cp_id": "cp-1234",
    "connectivity_token": "spat_token",
}


@pytest.mark.cli_unit
class TestBuildDeploymentRequest:
    """Tests for build_deployment_request."""

    def test_defaults(self):
        """Test only the required values yield a request with defaults."""
        request = build_deployment_request(**REQUIRED)

        assert request.zone_name == "zone1"
        assert request.region == "us-east-2"
        assert request.network.vpc_cidr == DEFAULT_VPC_CIDR
        assert request.network.subnet1_cidr == DEFAULT_SUBNET1_CIDR
        assert request.network.subnet2_cidr == DEFAULT_SUBNET2_CIDR
        assert request.license_file is None
        assert request.self_hosted is False
        assert request.skip_demo is False
        assert request.skip_ingress is False
        assert request.settle_seconds == 30
        assert request.templates_dir == Path("deploy")

    def test_missing_zone_name(self):
        """Test a missing zone name is reported by its option."""
        values = dict(REQUIRED, zone_name=None)
        with pytest.raises(MissingRequiredParameter) as exc_info:
            build_deployment_request(**values)
        assert exc_info.value.parameters == ("--zone-name",)

    def test_missing_parameters_are_all_reported(self):
        """Test every missing parameter is reported at once."""
        with pytest.raises(MissingRequiredParameter) as exc_info:
            build_deployment_request(
                zone_name="zone1", kds_address=None, cp_id="", connectivity_token=None
            )
        assert exc_info.value.parameters == ("--kds-address", "--cp-id", "--connectivity-token")
        assert "--cp-id" in str(exc_info.value)

    def test_missing_license_file(self, tmp_path):
        """Test a missing license file is reported before any secret is written."""
        with pytest.raises(InvalidPath) as exc_info:
            build_deployment_request(**REQUIRED, license_file=tmp_path / "missing.json")
        assert "missing.json" in str(exc_info.value)

    def test_license_file_enables_self_hosted(self, license_file):
        """Test a license file switches to self-hosted mode."""
        request = build_deployment_request(**REQUIRED, license_file=str(license_file))
        assert request.license_file == license_file
        assert request.self_hosted is True

    def test_invalid_zone_name(self):
        """Test an invalid zone name names its option."""
        with pytest.raises(InvalidValue) as exc_info:
            build_deployment_request(**dict(REQUIRED, zone_name="zone_1!"))
        assert exc_info.value.option == "--zone-name"

    def test_negative_settle_seconds(self):
        """Test a negative settle time is rejected."""
        with pytest.raises(InvalidValue):
            build_deployment_request(**REQUIRED, settle_seconds=-1)

    def test_request_is_immutable(self):
        """Test the request cannot be modified."""
        request = build_deployment_request(**REQUIRED)
        with pytest.raises(FrozenInstanceError):
            request.zone_name = "other"

    def test_token_not_in_repr(self):
        """Test the connectivity token stays out of the repr."""
        request = build_deployment_request(**REQUIRED)
        assert "spat_token" not in repr(request)


@pytest.mark.cli_unit
class TestValidateZoneName:
    """Tests for validate_zone_name."""

    @pytest.mark.parametrize("name", ["zone1", "a", "prod-east-2", "Z" + "a" * 31])
    def test_valid(self, name):
        """Test valid zone names are accepted."""
        assert validate_zone_name(name) == name

    @pytest.mark.parametrize("name", ["", "1zone", "-zone", "zone/1", "zone_1", "a" * 33])
    def test_invalid(self, name):
        """Test invalid zone names are rejected."""
        with pytest.raises(InvalidValue):
            validate_zone_name(name)


@pytest.mark.cli_unit
class TestValidateNetwork:
    """Tests for validate_network."""

    def test_defaults_are_valid(self):
        """Test the default network passes validation."""
        network = validate_network(DEFAULT_VPC_CIDR, DEFAULT_SUBNET1_CIDR, DEFAULT_SUBNET2_CIDR)
        assert network.vpc_cidr == "10.0.0.0/16"

    def test_malformed_cidr(self):
        """Test a malformed CIDR names its option."""
        with pytest.raises(InvalidValue) as exc_info:
            validate_network("10.0.0.0/33", DEFAULT_SUBNET1_CIDR, DEFAULT_SUBNET2_CIDR)
        assert exc_info.value.option == "--vpc-cidr"

    def test_host_bits_set(self):
        """Test a CIDR with host bits set is rejected."""
        with pytest.raises(InvalidValue):
            validate_network("10.0.0.1/16", DEFAULT_SUBNET1_CIDR, DEFAULT_SUBNET2_CIDR)

    def test_ipv6_rejected(self):
        """Test IPv6 ranges are rejected."""
        with pytest.raises(InvalidValue):
            validate_network("fd00::/48", DEFAULT_SUBNET1_CIDR, DEFAULT_SUBNET2_CIDR)

    def test_subnet_outside_vpc(self):
        """Test a subnet outside the VPC is rejected."""
        with pytest.raises(InvalidValue) as exc_info:
            validate_network("10.0.0.0/16", "10.1.0.0/24", DEFAULT_SUBNET2_CIDR)
        assert exc_info.value.option == "--subnet1-cidr"

    def test_overlapping_subnets(self):
        """Test overlapping subnets are rejected."""
        with pytest.raises(InvalidValue) as exc_info:
            validate_network("10.0.0.0/16", "10.0.0.0/23", "10.0.1.0/24")
        assert exc_info.value.option == "--subnet2-cidr"


@pytest.mark.cli_unit
class TestBuildTeardownRequest:
    """Tests for build_teardown_request."""

    def test_only_zone_name_required(self):
        """Test a teardown request needs only the zone name."""
        request = build_teardown_request(zone_name="zone1")
        assert request.zone_name == "zone1"
        assert request.region == "us-east-2"
        assert request.keep_secrets is False
        assert request.assume_yes is False

    def test_missing_zone_name(self):
        """Test a teardown request without a zone name is rejected."""
        with pytest.raises(MissingRequiredParameter):
            build_teardown_request(zone_name=None)

    def test_flags(self):
        """Test teardown flags are carried on the request."""
        request = build_teardown_request(
            zone_name="zone1", region="eu-west-1", keep_secrets=True, skip_demo=True
        )
        assert request.region == "eu-west-1"
        assert request.keep_secrets is True
        assert request.skip_demo is True

"""Deploy and teardown control flow for a zone.

Deploy:   secrets (license, token) → network stack → certificate →
          TLS secrets → control plane, ingress, workloads.
Teardown: stacks in reverse plan order → secrets (unless kept).

Both return a result object instead of raising so the caller can always
report what remains.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ..errors import ApplyFailure, InvalidPath, SecretConflictError, SecretStoreError, ZoneError
from ..shared.logging import get_logger
from .certs import CertificateProvisioner, certificate_hostnames
from .graph import CP_ADDRESS_OUTPUT, BindingContext, DeploymentPlan, StackRole, build_plan
from .options import DeploymentRequest, TeardownRequest
from .orchestrator import StackOrchestrator, StackRecord
from .secrets import OPTIONAL_PURPOSES, SecretLifecycleManager, SecretPurpose
from .templates import StackState

logger = get_logger(__name__)

# Secret outcome actions
CREATED = "created"
REUSED = "reused"
DELETED = "deleted"
ABSENT = "absent"
KEPT = "kept"
FAILED = "failed"


@dataclass
class SecretOutcome:
    """What happened to one secret during this invocation."""

    purpose: SecretPurpose
    key: str
    action: str
    reference: str | None = None
    error: ZoneError | None = None


SecretCallback = Callable[[SecretOutcome], None]


def _read_license(path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise InvalidPath(message=f"Cannot read license file ({e.strerror})", path=str(path)) from e


@dataclass
class DeployResult:
    """Result of a deploy invocation."""

    request: DeploymentRequest
    plan: DeploymentPlan
    records: list[StackRecord] = field(default_factory=list)
    secrets: list[SecretOutcome] = field(default_factory=list)
    cp_address: str | None = None
    certificate_reused: bool = False
    warnings: list[str] = field(default_factory=list)
    error: ZoneError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def applied_stacks(self) -> list[str]:
        return [r.stack_name for r in self.records if r.state == StackState.APPLIED]

    @property
    def failed_stack(self) -> str | None:
        for record in self.records:
            if record.state == StackState.FAILED:
                return record.stack_name
        return None


@dataclass
class TeardownResult:
    """Result of a teardown invocation."""

    request: TeardownRequest
    plan: DeploymentPlan
    records: list[StackRecord] = field(default_factory=list)
    secrets: list[SecretOutcome] = field(default_factory=list)

    @property
    def removed_stacks(self) -> list[str]:
        return [r.stack_name for r in self.records if r.state == StackState.DELETED]

    @property
    def remaining_stacks(self) -> list[str]:
        return [r.stack_name for r in self.records if r.state != StackState.DELETED]

    @property
    def failures(self) -> list[ZoneError]:
        errors = [r.error for r in self.records if r.error is not None]
        errors.extend(s.error for s in self.secrets if s.error is not None)
        return errors

    @property
    def complete(self) -> bool:
        return not self.failures


class ZoneDeployer:
    """Provision a zone: secrets, stacks and the control-plane certificate."""

    def __init__(
        self,
        orchestrator: StackOrchestrator,
        secrets: SecretLifecycleManager,
        certificates: CertificateProvisioner,
        on_secret: SecretCallback | None = None,
    ):
        self.orchestrator = orchestrator
        self.secrets = secrets
        self.certificates = certificates
        self.on_secret = on_secret

    def deploy(self, request: DeploymentRequest, plan: DeploymentPlan | None = None) -> DeployResult:
        plan = plan or build_plan(request.zone_name, request.skip_ingress, request.skip_demo)
        result = DeployResult(request, plan)
        context = BindingContext(request)

        log = logger.bind(zone=request.zone_name)
        log.info("deploy_started", plan=plan.stack_names())

        try:
            self._credential_secrets(request, context, result)

            network, rest = plan.split_after(StackRole.VPC)
            self.orchestrator.apply(network, context)

            try:
                result.cp_address = context.output(StackRole.VPC, CP_ADDRESS_OUTPUT)
            except KeyError as e:
                raise ApplyFailure(
                    stack=network.stack_names()[-1],
                    reason=f"stack does not expose output {CP_ADDRESS_OUTPUT}",
                ) from e

            self._tls_secrets(request, context, result)

            self.orchestrator.apply(rest, context)
        except ZoneError as e:
            log.error("deploy_failed", error=str(e))
            result.error = e
        else:
            log.info("deploy_finished")

        result.records = list(self.orchestrator.records)
        return result

    def _record(self, result: DeployResult, outcome: SecretOutcome) -> None:
        result.secrets.append(outcome)
        if self.on_secret:
            self.on_secret(outcome)

    def _obtain(
        self,
        purpose: SecretPurpose,
        payload: Callable[[], bytes | str],
        reuse: bool,
        result: DeployResult,
    ) -> str:
        """Reuse an existing secret (when allowed) or create it."""
        key = self.secrets.key(purpose)
        if reuse:
            reference = self.secrets.lookup(purpose)
            if reference:
                self._record(result, SecretOutcome(purpose, key, REUSED, reference))
                return reference

        reference = self.secrets.create(purpose, payload())
        self._record(result, SecretOutcome(purpose, key, CREATED, reference))
        return reference

    def _credential_secrets(
        self,
        request: DeploymentRequest,
        context: BindingContext,
        result: DeployResult,
    ) -> None:
        license_file = request.license_file
        if license_file is not None:
            context.secret_refs[SecretPurpose.LICENSE] = self._obtain(
                SecretPurpose.LICENSE,
                lambda: _read_license(license_file),
                request.reuse_secrets,
                result,
            )

        context.secret_refs[SecretPurpose.GLOBAL_TOKEN] = self._obtain(
            SecretPurpose.GLOBAL_TOKEN,
            lambda: request.connectivity_token,
            request.reuse_secrets,
            result,
        )
        if result.secrets[-1].action == REUSED:
            stored = self.secrets.read(context.secret_refs[SecretPurpose.GLOBAL_TOKEN])
            if stored != request.connectivity_token.encode("utf-8"):
                key = self.secrets.key(SecretPurpose.GLOBAL_TOKEN)
                logger.warning("connectivity_token_mismatch", zone=request.zone_name, key=key)
                result.warnings.append(
                    f"Stored token {key} differs from the supplied connectivity token; "
                    "the stored token is used"
                )

    def _check_reused_certificate(self, cert_ref: str, cp_address: str) -> None:
        """Refuse a stored certificate that does not name the current CP address.

        A kept-secrets teardown removes the network stack, so a redeploy may
        discover a different load-balancer address than the one certified.
        """
        hostnames = certificate_hostnames(self.secrets.read(cert_ref))
        if cp_address not in hostnames:
            logger.error(
                "certificate_reuse_rejected", cp_address=cp_address, hostnames=hostnames
            )
            raise SecretConflictError(
                message=(
                    f"Stored TLS certificate does not cover {cp_address}; "
                    "delete the TLS secrets to issue a new one"
                ),
                key=self.secrets.key(SecretPurpose.TLS_CERT),
            )

    def _tls_secrets(
        self,
        request: DeploymentRequest,
        context: BindingContext,
        result: DeployResult,
    ) -> None:
        if request.reuse_secrets:
            key_ref = self.secrets.lookup(SecretPurpose.TLS_KEY)
            cert_ref = self.secrets.lookup(SecretPurpose.TLS_CERT)
            if key_ref and cert_ref:
                self._check_reused_certificate(cert_ref, result.cp_address or "")
                result.certificate_reused = True
                for purpose, reference in (
                    (SecretPurpose.TLS_KEY, key_ref),
                    (SecretPurpose.TLS_CERT, cert_ref),
                ):
                    context.secret_refs[purpose] = reference
                    self._record(
                        result,
                        SecretOutcome(purpose, self.secrets.key(purpose), REUSED, reference),
                    )
                return
            if key_ref or cert_ref:
                existing = SecretPurpose.TLS_KEY if key_ref else SecretPurpose.TLS_CERT
                raise SecretConflictError(
                    message="Only one half of the TLS key pair exists; delete it first",
                    key=self.secrets.key(existing),
                )

        pair = self.certificates.generate(result.cp_address or "")
        context.secret_refs[SecretPurpose.TLS_KEY] = self._obtain(
            SecretPurpose.TLS_KEY, lambda: pair.key, False, result
        )
        context.secret_refs[SecretPurpose.TLS_CERT] = self._obtain(
            SecretPurpose.TLS_CERT, lambda: pair.cert, False, result
        )


class ZoneTeardown:
    """Remove a zone's stacks and, unless kept, its secrets."""

    def __init__(
        self,
        orchestrator: StackOrchestrator,
        secrets: SecretLifecycleManager,
        on_secret: SecretCallback | None = None,
    ):
        self.orchestrator = orchestrator
        self.secrets = secrets
        self.on_secret = on_secret

    def teardown(
        self, request: TeardownRequest, plan: DeploymentPlan | None = None
    ) -> TeardownResult:
        plan = plan or build_plan(request.zone_name, request.skip_ingress, request.skip_demo)
        result = TeardownResult(request, plan)

        log = logger.bind(zone=request.zone_name)
        log.info("teardown_started", order=[d.role.value for d in plan.teardown_order])

        result.records = self.orchestrator.teardown(plan)

        for purpose in SecretPurpose:
            outcome = self._secret(purpose, request.keep_secrets)
            if outcome is None:
                continue
            result.secrets.append(outcome)
            if self.on_secret:
                self.on_secret(outcome)

        log.info(
            "teardown_finished",
            removed=result.removed_stacks,
            remaining=result.remaining_stacks,
        )
        return result

    def _secret(self, purpose: SecretPurpose, keep: bool) -> SecretOutcome | None:
        """Keep or delete one secret. Returns None for an unused optional secret."""
        key = self.secrets.key(purpose)
        try:
            if purpose in OPTIONAL_PURPOSES and not self.secrets.exists(purpose):
                logger.debug("secret_not_used", zone=self.secrets.zone_name, key=key)
                return None
            if keep:
                return SecretOutcome(purpose, key, KEPT)
            deleted = self.secrets.delete(purpose)
        except SecretStoreError as e:
            logger.error("secret_delete_failed", key=key, error=str(e))
            return SecretOutcome(purpose, key, FAILED, error=e)
        return SecretOutcome(purpose, key, DELETED if deleted else ABSENT)

"""Zone orchestration for meshzone-cli.

Provides the option model, secret and certificate provisioning, the stack
dependency graph, and deploy/teardown traversals over a template engine.
"""

from .backends import ZoneBackends, create_backends
from .certs import CertificatePair, CertificateProvisioner, KumactlCertificateTool
from .confirm import ConfirmationDecision, ConfirmationGate, RemovalSet, build_removal_set
from .graph import (
    ZONE_STACKS,
    BindingContext,
    DeploymentPlan,
    StackDefinition,
    StackRole,
    build_plan,
    stack_identity,
)
from .options import (
    DeploymentRequest,
    NetworkRanges,
    TeardownRequest,
    build_deployment_request,
    build_teardown_request,
)
from .orchestrator import StackEvent, StackOrchestrator, StackRecord
from .prerequisites import PrerequisiteChecker, PrerequisiteReport
from .secrets import SecretLifecycleManager, SecretPurpose, SecretsManagerStore
from .state import ZoneState, ZoneStateInspector
from .templates import CloudFormationEngine, StackState
from .workflow import DeployResult, TeardownResult, ZoneDeployer, ZoneTeardown

__all__ = [
    # Options
    "DeploymentRequest",
    "TeardownRequest",
    "NetworkRanges",
    "build_deployment_request",
    "build_teardown_request",
    # Secrets and certificates
    "SecretPurpose",
    "SecretLifecycleManager",
    "SecretsManagerStore",
    "CertificatePair",
    "CertificateProvisioner",
    "KumactlCertificateTool",
    # Graph
    "StackRole",
    "StackDefinition",
    "ZONE_STACKS",
    "BindingContext",
    "DeploymentPlan",
    "build_plan",
    "stack_identity",
    # Orchestration
    "StackState",
    "StackRecord",
    "StackEvent",
    "StackOrchestrator",
    "CloudFormationEngine",
    # Confirmation
    "ConfirmationDecision",
    "ConfirmationGate",
    "RemovalSet",
    "build_removal_set",
    # State
    "ZoneState",
    "ZoneStateInspector",
    "PrerequisiteChecker",
    "PrerequisiteReport",
    # Workflow
    "ZoneDeployer",
    "ZoneTeardown",
    "DeployResult",
    "TeardownResult",
    # Backends
    "ZoneBackends",
    "create_backends",
]

"""Template engine contract and its CloudFormation implementation.

The orchestrator never looks inside templates. It only asks the engine to
apply a template with a parameter set, to destroy a stack, and to describe
a stack's current remote state. ``apply`` and ``destroy`` block until the
provider reports a terminal state.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ..errors import TemplateEngineError
from ..shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CAPABILITIES = ("CAPABILITY_IAM",)

# Stacks in this state cannot be updated, only deleted
UNUPDATABLE_STATUSES = {"ROLLBACK_COMPLETE", "ROLLBACK_FAILED", "DELETE_FAILED"}


class StackState(Enum):
    """Lifecycle state of a stack as tracked by the orchestrator."""

    NOT_APPLIED = "not_applied"
    APPLYING = "applying"
    APPLIED = "applied"
    DELETING = "deleting"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass
class StackDescription:
    """Remote view of a stack."""

    exists: bool
    status: str | None = None
    outputs: dict[str, str] = field(default_factory=dict)
    reason: str | None = None


@dataclass
class ApplyResult:
    """Terminal result of an apply call."""

    state: StackState
    outputs: dict[str, str] = field(default_factory=dict)
    status: str | None = None
    reason: str | None = None


@dataclass
class DestroyResult:
    """Terminal result of a destroy call."""

    state: StackState
    status: str | None = None
    reason: str | None = None


class TemplateEngine(Protocol):
    """Apply/destroy/describe contract for remote stacks."""

    def apply(
        self,
        stack_name: str,
        template: Path,
        parameters: dict[str, str],
        capabilities: Sequence[str] = DEFAULT_CAPABILITIES,
    ) -> ApplyResult: ...

    def destroy(self, stack_name: str) -> DestroyResult: ...

    def describe(self, stack_name: str) -> StackDescription: ...


def _is_missing_stack(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    return error.get("Code") == "ValidationError" and "does not exist" in error.get("Message", "")


def _is_no_op_update(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    return error.get("Code") == "ValidationError" and "No updates are to be performed" in error.get(
        "Message", ""
    )


class CloudFormationEngine:
    """TemplateEngine backed by AWS CloudFormation."""

    def __init__(
        self,
        client: Any,
        waiter_delay: int | None = None,
        waiter_max_attempts: int | None = None,
    ):
        """Initialize engine.

        Args:
            client: boto3 ``cloudformation`` client.
            waiter_delay: Seconds between status polls (provider default if None).
            waiter_max_attempts: Poll limit (provider default if None).
        """
        self._client = client
        self._waiter_config: dict[str, int] = {}
        if waiter_delay is not None:
            self._waiter_config["Delay"] = waiter_delay
        if waiter_max_attempts is not None:
            self._waiter_config["MaxAttempts"] = waiter_max_attempts

    def describe(self, stack_name: str) -> StackDescription:
        try:
            response = self._client.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if _is_missing_stack(e):
                return StackDescription(exists=False)
            raise TemplateEngineError(
                message=f"Failed to describe stack {stack_name}: {e}", stack=stack_name
            ) from e
        except BotoCoreError as e:
            raise TemplateEngineError(
                message=f"Failed to describe stack {stack_name}: {e}", stack=stack_name
            ) from e

        stacks = response.get("Stacks", [])
        if not stacks or stacks[0].get("StackStatus") == "DELETE_COMPLETE":
            return StackDescription(exists=False)

        stack = stacks[0]
        outputs = {o["OutputKey"]: o.get("OutputValue", "") for o in stack.get("Outputs", [])}
        return StackDescription(
            exists=True,
            status=stack.get("StackStatus"),
            outputs=outputs,
            reason=stack.get("StackStatusReason"),
        )

    def apply(
        self,
        stack_name: str,
        template: Path,
        parameters: dict[str, str],
        capabilities: Sequence[str] = DEFAULT_CAPABILITIES,
    ) -> ApplyResult:
        try:
            body = Path(template).read_text()
        except OSError as e:
            raise TemplateEngineError(
                message=f"Cannot read template {template}: {e}", stack=stack_name
            ) from e

        current = self.describe(stack_name)
        if current.exists and current.status in UNUPDATABLE_STATUSES:
            return ApplyResult(
                StackState.FAILED,
                status=current.status,
                reason=f"stack is in {current.status}; delete it before redeploying",
            )

        kwargs = {
            "StackName": stack_name,
            "TemplateBody": body,
            "Parameters": [
                {"ParameterKey": key, "ParameterValue": value} for key, value in parameters.items()
            ],
            "Capabilities": list(capabilities),
        }

        try:
            if current.exists:
                logger.debug("cloudformation_update_stack", stack=stack_name)
                self._client.update_stack(**kwargs)
                waiter_name = "stack_update_complete"
            else:
                logger.debug("cloudformation_create_stack", stack=stack_name)
                self._client.create_stack(**kwargs)
                waiter_name = "stack_create_complete"
        except ClientError as e:
            if current.exists and _is_no_op_update(e):
                logger.info("cloudformation_no_changes", stack=stack_name)
                return ApplyResult(StackState.APPLIED, current.outputs, current.status)
            raise TemplateEngineError(
                message=f"Failed to submit stack {stack_name}: {e}", stack=stack_name
            ) from e
        except BotoCoreError as e:
            raise TemplateEngineError(
                message=f"Failed to submit stack {stack_name}: {e}", stack=stack_name
            ) from e

        if not self._wait(waiter_name, stack_name):
            final = self.describe(stack_name)
            return ApplyResult(
                StackState.FAILED,
                status=final.status,
                reason=self._failure_reason(stack_name) or final.reason,
            )

        final = self.describe(stack_name)
        return ApplyResult(StackState.APPLIED, final.outputs, final.status)

    def destroy(self, stack_name: str) -> DestroyResult:
        try:
            self._client.delete_stack(StackName=stack_name)
        except (ClientError, BotoCoreError) as e:
            raise TemplateEngineError(
                message=f"Failed to delete stack {stack_name}: {e}", stack=stack_name
            ) from e

        if not self._wait("stack_delete_complete", stack_name):
            final = self.describe(stack_name)
            if not final.exists:
                return DestroyResult(StackState.DELETED)
            return DestroyResult(
                StackState.FAILED,
                status=final.status,
                reason=self._failure_reason(stack_name) or final.reason,
            )
        return DestroyResult(StackState.DELETED)

    def _wait(self, waiter_name: str, stack_name: str) -> bool:
        """Block until a terminal state. False when the stack failed.

        Raises:
            TemplateEngineError: the wait itself errored (state indeterminate).
        """
        waiter = self._client.get_waiter(waiter_name)
        kwargs: dict[str, Any] = {"StackName": stack_name}
        if self._waiter_config:
            kwargs["WaiterConfig"] = dict(self._waiter_config)
        try:
            waiter.wait(**kwargs)
        except WaiterError as e:
            reason = e.kwargs.get("reason", "")
            errored = bool(e.last_response and "Error" in e.last_response)
            if "terminal failure state" in reason and not errored:
                logger.debug("cloudformation_wait_failed", stack=stack_name, error=str(e))
                return False
            # Max attempts exceeded or an API error: the outcome is unknown
            raise TemplateEngineError(
                message=f"Waiting for {stack_name} failed: {e}", stack=stack_name
            ) from e
        except BotoCoreError as e:
            raise TemplateEngineError(
                message=f"Waiting for {stack_name} failed: {e}", stack=stack_name
            ) from e
        return True

    def _failure_reason(self, stack_name: str) -> str | None:
        """First failed resource event, which names the root cause."""
        try:
            response = self._client.describe_stack_events(StackName=stack_name)
        except (ClientError, BotoCoreError):
            return None
        failed = [
            event
            for event in response.get("StackEvents", [])
            if event.get("ResourceStatus", "").endswith("FAILED")
            and event.get("ResourceStatusReason")
        ]
        if not failed:
            return None
        # Events are newest first
        event = failed[-1]
        return f"{event.get('LogicalResourceId', '?')}: {event['ResourceStatusReason']}"

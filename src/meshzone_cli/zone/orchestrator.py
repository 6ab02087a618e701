"""Stack dependency orchestration.

Applies a deployment plan in topological order, threading the outputs of
each applied stack into the parameters of its dependents, and tears a plan
down in reverse order.

The two directions use different failure policies and are implemented as
two traversals over the same plan:

- ``DeployTraversal`` is fail-fast. The first stack that does not reach
  APPLIED aborts the rest of the plan. Stacks applied before it are left in
  place; there is no rollback.
- ``TeardownTraversal`` is continue-on-error. A stack that fails to delete
  is recorded and the traversal moves on to the next one. Stacks absent
  remotely count as already deleted.

Neither traversal caches remote state between invocations: every decision
is made from a fresh ``describe`` call or from outputs harvested during the
current run.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import (
    ApplyFailure,
    DestroyFailure,
    InvalidStateTransition,
    TemplateEngineError,
    ZoneError,
)
from ..shared.logging import get_logger
from ..shared.paths import DEFAULT_TEMPLATES_DIR
from .graph import STACK_NAME_OUTPUT, BindingContext, DeploymentPlan, StackDefinition
from .templates import DEFAULT_CAPABILITIES, StackState, TemplateEngine

logger = get_logger(__name__)


ALLOWED_TRANSITIONS = {
    StackState.NOT_APPLIED: {StackState.APPLYING},
    StackState.APPLYING: {StackState.APPLIED, StackState.FAILED},
    StackState.APPLIED: {StackState.DELETING},
    StackState.DELETING: {StackState.DELETED, StackState.FAILED},
    StackState.FAILED: {StackState.DELETING},
}


@dataclass
class StackRecord:
    """What happened to one stack during this invocation."""

    definition: StackDefinition
    stack_name: str
    state: StackState = StackState.NOT_APPLIED
    status: str | None = None
    reason: str | None = None
    outputs: dict[str, str] = field(default_factory=dict)
    error: ZoneError | None = None
    already_absent: bool = False
    blocked_by: list[str] = field(default_factory=list)

    @property
    def role(self):
        return self.definition.role


class StackStateMachine:
    @staticmethod
    def transition(record: StackRecord, new_state: StackState) -> StackRecord:
        current = record.state
        if current == new_state:
            return record

        if new_state not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(
                message=(
                    f"Cannot transition {record.stack_name} from "
                    f"{current.value} to {new_state.value}"
                )
            )

        logger.debug(
            "stack_transition",
            stack=record.stack_name,
            from_state=current.value,
            to_state=new_state.value,
        )
        record.state = new_state
        return record


@dataclass
class StackEvent:
    """Progress notification passed to the ``on_event`` callback."""

    kind: str
    record: StackRecord
    detail: str | None = None


# Event kinds
APPLY_STARTED = "apply_started"
APPLIED = "applied"
APPLY_FAILED = "apply_failed"
SETTLING = "settling"
DELETE_STARTED = "delete_started"
DELETED = "deleted"
ALREADY_ABSENT = "already_absent"
DELETE_FAILED = "delete_failed"
DELETE_BLOCKED = "delete_blocked"

EventCallback = Callable[[StackEvent], None]


class DeployTraversal:
    """Fail-fast application of a plan."""

    def __init__(
        self,
        engine: TemplateEngine,
        templates_dir: Path,
        log: list[StackRecord],
        on_event: EventCallback | None = None,
        settle_seconds: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine = engine
        self.templates_dir = templates_dir
        self.log = log
        self.on_event = on_event
        self.settle_seconds = settle_seconds
        self.sleep = sleep

    def _emit(self, kind: str, record: StackRecord, detail: str | None = None) -> None:
        if self.on_event:
            self.on_event(StackEvent(kind, record, detail))

    def run(self, plan: DeploymentPlan, context: BindingContext) -> list[StackRecord]:
        """Apply every stack of the plan in order.

        Raises:
            ApplyFailure: a stack failed or its state became indeterminate.
                Remaining stacks are left NOT_APPLIED.
        """
        records = [StackRecord(d, d.stack_name(plan.zone_name)) for d in plan.apply_order]
        self.log.extend(records)

        for index, record in enumerate(records):
            self._apply_one(record, context)

            is_last = index == len(records) - 1
            if record.definition.settle_after_apply and self.settle_seconds > 0 and not is_last:
                self._emit(SETTLING, record, f"{self.settle_seconds}s")
                logger.info("stack_settling", stack=record.stack_name, seconds=self.settle_seconds)
                self.sleep(self.settle_seconds)

        return records

    def _apply_one(self, record: StackRecord, context: BindingContext) -> None:
        definition = record.definition

        unmet = [dep.value for dep in definition.depends_on if not context.has_outputs(dep)]
        if unmet:
            raise ApplyFailure(
                stack=record.stack_name,
                reason=f"dependencies not applied: {', '.join(unmet)}",
            )

        try:
            parameters = definition.parameters(context)
        except KeyError as e:
            raise ApplyFailure(
                stack=record.stack_name, reason=f"missing parameter input {e}"
            ) from e

        StackStateMachine.transition(record, StackState.APPLYING)
        self._emit(APPLY_STARTED, record)
        logger.info("stack_apply_started", stack=record.stack_name, template=definition.template)

        try:
            result = self.engine.apply(
                record.stack_name,
                self.templates_dir / definition.template,
                parameters,
                DEFAULT_CAPABILITIES,
            )
        except TemplateEngineError as e:
            # The engine call errored; the remote state is unknown
            record.error = e
            record.reason = str(e)
            StackStateMachine.transition(record, StackState.FAILED)
            self._emit(APPLY_FAILED, record, record.reason)
            logger.error("stack_apply_indeterminate", stack=record.stack_name, error=str(e))
            raise ApplyFailure(stack=record.stack_name, reason=str(e)) from e

        record.status = result.status
        if result.state != StackState.APPLIED:
            record.reason = result.reason or result.status
            record.error = ApplyFailure(stack=record.stack_name, reason=record.reason)
            StackStateMachine.transition(record, StackState.FAILED)
            self._emit(APPLY_FAILED, record, record.reason)
            logger.error(
                "stack_apply_failed",
                stack=record.stack_name,
                status=result.status,
                reason=result.reason,
            )
            raise record.error

        StackStateMachine.transition(record, StackState.APPLIED)
        record.outputs = dict(result.outputs)
        record.outputs[STACK_NAME_OUTPUT] = record.stack_name
        context.outputs[definition.role] = record.outputs
        self._emit(APPLIED, record)
        logger.info("stack_apply_finished", stack=record.stack_name, status=result.status)


class TeardownTraversal:
    """Continue-on-error removal of a plan, last stack first."""

    def __init__(
        self,
        engine: TemplateEngine,
        log: list[StackRecord],
        on_event: EventCallback | None = None,
    ):
        self.engine = engine
        self.log = log
        self.on_event = on_event

    def _emit(self, kind: str, record: StackRecord, detail: str | None = None) -> None:
        if self.on_event:
            self.on_event(StackEvent(kind, record, detail))

    def run(self, plan: DeploymentPlan) -> list[StackRecord]:
        """Delete every stack of the plan in reverse order.

        Never raises for a single stack: failures are recorded on the
        returned records with a DestroyFailure error.
        """
        records: dict[str, StackRecord] = {}
        for definition in plan.teardown_order:
            record = self._teardown_one(definition, plan, records)
            records[record.stack_name] = record
            self.log.append(record)
        return list(records.values())

    def _fail(self, record: StackRecord, reason: str, kind: str = DELETE_FAILED) -> StackRecord:
        record.reason = reason
        record.error = DestroyFailure(stack=record.stack_name, reason=reason)
        self._emit(kind, record, reason)
        logger.error("stack_delete_failed", stack=record.stack_name, reason=reason)
        return record

    def _teardown_one(
        self,
        definition: StackDefinition,
        plan: DeploymentPlan,
        done: dict[str, StackRecord],
    ) -> StackRecord:
        stack_name = definition.stack_name(plan.zone_name)
        record = StackRecord(definition, stack_name)

        try:
            description = self.engine.describe(stack_name)
        except TemplateEngineError as e:
            record.state = StackState.FAILED
            return self._fail(record, str(e))

        if not description.exists:
            record.state = StackState.DELETED
            record.already_absent = True
            self._emit(ALREADY_ABSENT, record)
            logger.warning("stack_already_absent", stack=stack_name)
            return record

        record.state = StackState.APPLIED
        record.status = description.status

        record.blocked_by = self._remaining_dependents(definition, plan, done)
        if record.blocked_by:
            return self._fail(
                record,
                f"dependent stacks still present: {', '.join(record.blocked_by)}",
                DELETE_BLOCKED,
            )

        StackStateMachine.transition(record, StackState.DELETING)
        self._emit(DELETE_STARTED, record)
        logger.info("stack_delete_started", stack=stack_name)

        try:
            result = self.engine.destroy(stack_name)
        except TemplateEngineError as e:
            StackStateMachine.transition(record, StackState.FAILED)
            return self._fail(record, str(e))

        record.status = result.status
        if result.state != StackState.DELETED:
            StackStateMachine.transition(record, StackState.FAILED)
            return self._fail(record, result.reason or result.status or "delete failed")

        StackStateMachine.transition(record, StackState.DELETED)
        self._emit(DELETED, record)
        logger.info("stack_delete_finished", stack=stack_name)
        return record

    def _remaining_dependents(
        self,
        definition: StackDefinition,
        plan: DeploymentPlan,
        done: dict[str, StackRecord],
    ) -> list[str]:
        """Dependents that are neither DELETED nor absent remotely."""
        remaining = []
        for dependent in plan.dependents_of(definition.role):
            name = dependent.stack_name(plan.zone_name)
            if name in done:
                if done[name].state != StackState.DELETED:
                    remaining.append(name)
                continue
            # Outside this plan (skipped): ask the provider
            try:
                if self.engine.describe(name).exists:
                    remaining.append(name)
            except TemplateEngineError:
                remaining.append(name)
        return remaining


class StackOrchestrator:
    """Runs deploy and teardown traversals and keeps this run's records."""

    def __init__(
        self,
        engine: TemplateEngine,
        templates_dir: Path = DEFAULT_TEMPLATES_DIR,
        on_event: EventCallback | None = None,
        settle_seconds: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine = engine
        self.templates_dir = Path(templates_dir)
        self.on_event = on_event
        self.settle_seconds = settle_seconds
        self.sleep = sleep
        self.records: list[StackRecord] = []

    def apply(self, plan: DeploymentPlan, context: BindingContext) -> list[StackRecord]:
        traversal = DeployTraversal(
            self.engine,
            self.templates_dir,
            self.records,
            on_event=self.on_event,
            settle_seconds=self.settle_seconds,
            sleep=self.sleep,
        )
        return traversal.run(plan, context)

    def teardown(self, plan: DeploymentPlan) -> list[StackRecord]:
        return TeardownTraversal(self.engine, self.records, on_event=self.on_event).run(plan)

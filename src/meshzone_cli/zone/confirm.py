"""Confirmation gate for destructive actions.

The decision itself is a pure function of the user's response, so the gate
can be bypassed (``--yes``) without touching the teardown traversal.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import click

from .graph import DeploymentPlan
from .secrets import OPTIONAL_PURPOSES, SecretLifecycleManager, SecretPurpose

PROMPT = "Are you sure you want to proceed? (yes/no)"

AFFIRMATIVE = re.compile(r"^yes$", re.IGNORECASE)


class ConfirmationDecision(Enum):
    """Outcome of the confirmation gate."""

    PROCEED = "proceed"
    ABORT = "abort"


def decide(response: str | None) -> ConfirmationDecision:
    """Only an explicit ``yes`` (any case) proceeds."""
    if response is not None and AFFIRMATIVE.match(response.strip()):
        return ConfirmationDecision.PROCEED
    return ConfirmationDecision.ABORT


@dataclass(frozen=True)
class RemovalSet:
    """Exactly what a teardown will remove."""

    zone_name: str
    stacks: tuple[str, ...]
    secrets: tuple[str, ...] = ()
    optional_secrets: tuple[str, ...] = ()


def build_removal_set(
    plan: DeploymentPlan,
    secrets: SecretLifecycleManager | None,
) -> RemovalSet:
    """Stacks in teardown order plus, unless secrets are kept, every zone secret.

    Args:
        plan: Teardown plan.
        secrets: Secret manager of the zone, or None when secrets are kept.
    """
    stacks = tuple(d.stack_name(plan.zone_name) for d in plan.teardown_order)
    if secrets is None:
        return RemovalSet(plan.zone_name, stacks)
    return RemovalSet(
        plan.zone_name,
        stacks,
        secrets=tuple(secrets.key(p) for p in SecretPurpose),
        optional_secrets=tuple(secrets.key(p) for p in SecretPurpose if p in OPTIONAL_PURPOSES),
    )


def _click_prompt(text: str) -> str:
    return click.prompt(text, default="", show_default=False)


class ConfirmationGate:
    """Ask for explicit confirmation before removing a zone."""

    def __init__(
        self,
        prompt: Callable[[str], str | None] = _click_prompt,
        render: Callable[[RemovalSet], None] | None = None,
    ):
        self.prompt = prompt
        self.render = render

    def confirm(self, removal: RemovalSet, assume_yes: bool = False) -> ConfirmationDecision:
        if assume_yes:
            return ConfirmationDecision.PROCEED

        if self.render:
            self.render(removal)

        try:
            response = self.prompt(PROMPT)
        except (click.Abort, EOFError, KeyboardInterrupt):
            response = None
        return decide(response)

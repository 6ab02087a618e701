"""CLI output formatting helpers.

Severity-tagged messages, banners and progress lines for the zone commands.
Everything is printed through one rich Console so tests can capture it.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from .zone.confirm import RemovalSet
from .zone.orchestrator import (
    ALREADY_ABSENT,
    APPLIED,
    APPLY_FAILED,
    APPLY_STARTED,
    DELETE_BLOCKED,
    DELETE_FAILED,
    DELETE_STARTED,
    DELETED,
    SETTLING,
    StackEvent,
)
from .zone.workflow import ABSENT, CREATED, FAILED, KEPT, REUSED, SecretOutcome
from .zone.workflow import DELETED as SECRET_DELETED

console = Console(highlight=False, soft_wrap=True)

BANNER_WIDTH = 48


def _tagged(tag: str, color: str, message: str) -> None:
    console.print(f"[{color}]\\[{tag}][/{color}] {escape(message)}")


def info(message: str) -> None:
    _tagged("INFO", "blue", message)


def success(message: str) -> None:
    _tagged("SUCCESS", "green", message)


def warning(message: str) -> None:
    _tagged("WARNING", "yellow", message)


def error(message: str) -> None:
    _tagged("ERROR", "red", message)


def banner(title: str) -> None:
    """Print a section banner."""
    rule = "=" * BANNER_WIDTH
    console.print()
    console.print(rule)
    console.print(escape(title))
    console.print(rule)
    console.print()


def print_removal_set(removal: RemovalSet) -> None:
    """Show exactly what a teardown will remove."""
    warning(f"This will delete all resources for zone: {removal.zone_name}")
    console.print()
    console.print("The following stacks will be deleted:")
    for stack in removal.stacks:
        console.print(f"  - {escape(stack)}")
    console.print()

    if removal.secrets:
        console.print("The following secrets will be deleted:")
        for key in removal.secrets:
            suffix = " (if license was used)" if key in removal.optional_secrets else ""
            console.print(f"  - {escape(key)}{suffix}")
        console.print()
    else:
        info("Secrets will be kept (--keep-secrets)")
        console.print()


def print_plan(stack_names: list[str], teardown_names: list[str]) -> None:
    console.print("Apply order:")
    for index, name in enumerate(stack_names, 1):
        console.print(f"  {index}. {escape(name)}")
    console.print("Teardown order:")
    for index, name in enumerate(teardown_names, 1):
        console.print(f"  {index}. {escape(name)}")


def print_stack_event(event: StackEvent) -> None:
    """Progress printer passed to the orchestrator as ``on_event``."""
    name = event.record.stack_name
    kind = event.kind

    if kind == APPLY_STARTED:
        info(f"Deploying stack: {name}")
    elif kind == APPLIED:
        success(f"Stack deployed: {name}")
    elif kind == APPLY_FAILED:
        error(f"Stack failed: {name} ({event.detail})")
    elif kind == SETTLING:
        info(f"Waiting {event.detail} for {name} to stabilize...")
    elif kind == DELETE_STARTED:
        info(f"Deleting stack: {name}")
    elif kind == DELETED:
        success(f"Stack deleted: {name}")
    elif kind == ALREADY_ABSENT:
        warning(f"Stack {name} does not exist, skipping")
    elif kind == DELETE_BLOCKED:
        warning(f"Not deleting {name}: {event.detail}")
    elif kind == DELETE_FAILED:
        error(f"Failed to delete stack {name} ({event.detail})")


def print_secret_outcome(outcome: SecretOutcome) -> None:
    """Progress printer for secret creation, reuse and deletion."""
    key = outcome.key
    action = outcome.action

    if action == CREATED:
        success(f"Secret created: {key}")
    elif action == REUSED:
        info(f"Reusing existing secret: {key}")
    elif action == SECRET_DELETED:
        success(f"Secret deleted: {key}")
    elif action == ABSENT:
        warning(f"Secret {key} does not exist, skipping")
    elif action == FAILED:
        error(f"Failed to delete secret {key} ({outcome.error})")
    elif action == KEPT:
        info(f"Keeping secret: {key}")

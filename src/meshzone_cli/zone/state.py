"""Zone state detection.

The orchestrator is stateless between invocations: the current state of a
zone is always re-derived from the stack and secret stores.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..errors import SecretStoreError, TemplateEngineError
from ..shared.logging import get_logger
from .graph import ZONE_STACKS, StackDefinition, StackRole
from .secrets import SecretLifecycleManager, SecretPurpose
from .templates import TemplateEngine

logger = get_logger(__name__)


@dataclass
class StackPresence:
    """Remote presence of one stack. ``exists`` is None when unknown."""

    stack_name: str
    role: StackRole
    exists: bool | None
    status: str | None = None
    outputs: dict[str, str] = field(default_factory=dict)


@dataclass
class SecretPresence:
    """Remote presence of one secret. ``exists`` is None when unknown."""

    key: str
    purpose: SecretPurpose
    exists: bool | None


@dataclass
class ZoneState:
    """Current remote state of a zone."""

    zone_name: str
    stacks: list[StackPresence] = field(default_factory=list)
    secrets: list[SecretPresence] = field(default_factory=list)

    @property
    def present_stacks(self) -> list[str]:
        return [s.stack_name for s in self.stacks if s.exists]

    @property
    def absent_stacks(self) -> list[str]:
        return [s.stack_name for s in self.stacks if s.exists is False]

    @property
    def present_secrets(self) -> list[str]:
        return [s.key for s in self.secrets if s.exists]

    @property
    def absent_secrets(self) -> list[str]:
        return [s.key for s in self.secrets if s.exists is False]

    @property
    def deployed(self) -> bool:
        return bool(self.present_stacks)

    def stack(self, role: StackRole) -> StackPresence | None:
        for presence in self.stacks:
            if presence.role == role:
                return presence
        return None


class ZoneStateInspector:
    """Query the remote stores for a zone's stacks and secrets."""

    def __init__(self, engine: TemplateEngine, secrets: SecretLifecycleManager):
        self.engine = engine
        self.secrets = secrets

    @property
    def zone_name(self) -> str:
        return self.secrets.zone_name

    def detect_state(
        self,
        definitions: Iterable[StackDefinition] = ZONE_STACKS,
        purposes: Iterable[SecretPurpose] = tuple(SecretPurpose),
    ) -> ZoneState:
        """Describe every stack and check every secret.

        Lookup errors are logged and reported as unknown presence rather
        than raised, so a summary can always be printed.
        """
        state = ZoneState(self.zone_name)

        for definition in definitions:
            name = definition.stack_name(self.zone_name)
            try:
                description = self.engine.describe(name)
            except TemplateEngineError as e:
                logger.warning("stack_describe_failed", stack=name, error=str(e))
                state.stacks.append(StackPresence(name, definition.role, None, "unknown"))
                continue
            state.stacks.append(
                StackPresence(
                    name,
                    definition.role,
                    description.exists,
                    description.status,
                    description.outputs,
                )
            )

        for purpose in purposes:
            key = self.secrets.key(purpose)
            try:
                exists: bool | None = self.secrets.exists(purpose)
            except SecretStoreError as e:
                logger.warning("secret_describe_failed", key=key, error=str(e))
                exists = None
            state.secrets.append(SecretPresence(key, purpose, exists))

        return state

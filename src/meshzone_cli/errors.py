"""Error taxonomy for meshzone-cli.

Every fatal condition raised by the zone orchestrator is a ZoneError. The
CLI layer renders it as a severity-tagged message and exits with
``exit_code``. Provider errors (botocore, subprocess) are translated into
these classes at the backend boundary.
"""

from __future__ import annotations

from dataclasses import dataclass

EXIT_FAILURE = 1


@dataclass
class ZoneError(Exception):
    """Base error class for zone orchestration errors."""

    message: str
    exit_code: int = EXIT_FAILURE

    def __str__(self) -> str:
        return self.message


# ── Validation (before any side effect) ──


@dataclass
class ValidationError(ZoneError):
    """Invalid command-line input. Rendered together with the usage text."""

    message: str = "Invalid options"


@dataclass
class MissingRequiredParameter(ValidationError):
    """One or more required options were not supplied."""

    message: str = "Missing required parameters"
    parameters: tuple[str, ...] = ()

    def __str__(self) -> str:
        if self.parameters:
            return f"{self.message}: {', '.join(self.parameters)}"
        return self.message


@dataclass
class InvalidPath(ValidationError):
    """A supplied file path does not exist."""

    message: str = "File not found"
    path: str = ""

    def __str__(self) -> str:
        return f"{self.message}: {self.path}" if self.path else self.message


@dataclass
class UnknownOption(ValidationError):
    """An option the command does not recognize."""

    message: str = "Unknown option"
    option: str = ""

    def __str__(self) -> str:
        return f"{self.message}: {self.option}" if self.option else self.message


@dataclass
class InvalidValue(ValidationError):
    """An option value failed validation (zone name, CIDR, ...)."""

    message: str = "Invalid value"
    option: str = ""

    def __str__(self) -> str:
        return f"{self.option}: {self.message}" if self.option else self.message


# ── Environment ──


@dataclass
class PrerequisiteError(ZoneError):
    """A required external tool or credential is unavailable."""

    message: str = "Prerequisites not met"
    missing: tuple[str, ...] = ()


@dataclass
class CertificateError(ZoneError):
    """TLS key/certificate generation failed."""

    message: str = "Certificate generation failed"


# ── Secrets ──


@dataclass
class SecretStoreError(ZoneError):
    """The secret store rejected or failed an operation."""

    message: str = "Secret store error"
    key: str = ""


@dataclass
class SecretConflictError(SecretStoreError):
    """A secret with the same name already exists. No implicit overwrite."""

    message: str = "Secret already exists"

    def __str__(self) -> str:
        return f"{self.message}: {self.key}" if self.key else self.message


# Name used by the secret store contract.
SecretAlreadyExists = SecretConflictError


# ── Stacks ──


@dataclass
class TemplateEngineError(ZoneError):
    """The template engine call itself errored; stack state is indeterminate."""

    message: str = "Template engine error"
    stack: str = ""


@dataclass
class ApplyFailure(ZoneError):
    """A stack reached a failed terminal state while being applied.

    Stacks applied earlier in the plan are left in place.
    """

    message: str = "Stack apply failed"
    stack: str = ""
    reason: str | None = None

    def __str__(self) -> str:
        text = f"{self.message}: {self.stack}" if self.stack else self.message
        return f"{text} ({self.reason})" if self.reason else text


@dataclass
class DestroyFailure(ZoneError):
    """A stack failed to delete. Logged during teardown, never fatal."""

    message: str = "Stack delete failed"
    stack: str = ""
    reason: str | None = None

    def __str__(self) -> str:
        text = f"{self.message}: {self.stack}" if self.stack else self.message
        return f"{text} ({self.reason})" if self.reason else text


@dataclass
class NotFoundError(ZoneError):
    """A stack or secret is absent. Not an error during teardown."""

    message: str = "Resource not found"


@dataclass
class InvalidStateTransition(ZoneError):
    """The orchestrator attempted an illegal stack state transition."""

    message: str = "Invalid stack state transition"

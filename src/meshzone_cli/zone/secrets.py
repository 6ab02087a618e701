"""Secret lifecycle management for a zone.

Secrets live in an external key/value store under ``<zone>/<purpose>``.
Creation is not idempotent (a duplicate name is a conflict) while deletion
is (an absent secret is a no-op success).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import NotFoundError, SecretConflictError, SecretStoreError
from ..shared.logging import get_logger

logger = get_logger(__name__)


class SecretPurpose(Enum):
    """What a zone secret holds."""

    LICENSE = "license"
    GLOBAL_TOKEN = "global-token"
    TLS_KEY = "tls-key"
    TLS_CERT = "tls-cert"


# Purposes that only exist for some deployments (self-hosted mode)
OPTIONAL_PURPOSES = frozenset({SecretPurpose.LICENSE})


DESCRIPTIONS = {
    SecretPurpose.LICENSE: "Kong Mesh license for {zone}",
    SecretPurpose.GLOBAL_TOKEN: "Konnect global control plane token for {zone}",
    SecretPurpose.TLS_KEY: "TLS private key for {zone} control plane",
    SecretPurpose.TLS_CERT: "TLS certificate for {zone} control plane",
}


class SecretStore(Protocol):
    """Key/value secret store contract."""

    def put(self, key: str, payload: bytes, description: str = "") -> str:
        """Store payload under key and return its reference.

        Raises SecretConflictError when the key already exists.
        """
        ...

    def get(self, reference: str) -> bytes: ...

    def delete(self, key: str) -> bool:
        """Delete key. Returns False when it did not exist."""
        ...

    def exists(self, key: str) -> bool: ...

    def lookup(self, key: str) -> str | None:
        """Return the reference of an existing key, or None."""
        ...


class SecretsManagerStore:
    """SecretStore backed by AWS Secrets Manager."""

    def __init__(self, client: Any):
        """Initialize store.

        Args:
            client: boto3 ``secretsmanager`` client.
        """
        self._client = client

    @staticmethod
    def _error_code(exc: ClientError) -> str:
        return exc.response.get("Error", {}).get("Code", "")

    def put(self, key: str, payload: bytes, description: str = "") -> str:
        kwargs: dict[str, Any] = {"Name": key, "Description": description}
        try:
            kwargs["SecretString"] = payload.decode("utf-8")
        except UnicodeDecodeError:
            kwargs["SecretBinary"] = payload

        try:
            response = self._client.create_secret(**kwargs)
        except ClientError as e:
            if self._error_code(e) == "ResourceExistsException":
                raise SecretConflictError(key=key) from e
            raise SecretStoreError(message=f"Failed to create secret {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise SecretStoreError(message=f"Failed to create secret {key}: {e}", key=key) from e
        return response["ARN"]

    def get(self, reference: str) -> bytes:
        try:
            response = self._client.get_secret_value(SecretId=reference)
        except ClientError as e:
            if self._error_code(e) == "ResourceNotFoundException":
                raise NotFoundError(message=f"Secret not found: {reference}") from e
            raise SecretStoreError(
                message=f"Failed to read secret {reference}: {e}", key=reference
            ) from e
        except BotoCoreError as e:
            raise SecretStoreError(
                message=f"Failed to read secret {reference}: {e}", key=reference
            ) from e
        if "SecretString" in response:
            return response["SecretString"].encode("utf-8")
        return response["SecretBinary"]

    def lookup(self, key: str) -> str | None:
        try:
            response = self._client.describe_secret(SecretId=key)
        except ClientError as e:
            if self._error_code(e) == "ResourceNotFoundException":
                return None
            raise SecretStoreError(message=f"Failed to describe secret {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise SecretStoreError(message=f"Failed to describe secret {key}: {e}", key=key) from e
        # A secret scheduled for deletion still describes but cannot be used
        if response.get("DeletedDate"):
            return None
        return response["ARN"]

    def exists(self, key: str) -> bool:
        return self.lookup(key) is not None

    def delete(self, key: str) -> bool:
        if not self.exists(key):
            return False
        try:
            self._client.delete_secret(SecretId=key, ForceDeleteWithoutRecovery=True)
        except ClientError as e:
            if self._error_code(e) == "ResourceNotFoundException":
                return False
            raise SecretStoreError(message=f"Failed to delete secret {key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise SecretStoreError(message=f"Failed to delete secret {key}: {e}", key=key) from e
        return True


class SecretLifecycleManager:
    """Create, look up and delete the secrets of one zone."""

    def __init__(self, store: SecretStore, zone_name: str):
        self.store = store
        self.zone_name = zone_name

    def key(self, purpose: SecretPurpose) -> str:
        """Store key for a purpose: ``<zone>/<purpose>``."""
        return f"{self.zone_name}/{purpose.value}"

    def create(self, purpose: SecretPurpose, payload: bytes | str) -> str:
        """Store a new secret and return its reference.

        Raises:
            SecretConflictError: the secret already exists.
        """
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        key = self.key(purpose)
        description = DESCRIPTIONS[purpose].format(zone=self.zone_name)

        reference = self.store.put(key, payload, description)
        logger.info("secret_created", zone=self.zone_name, key=key, reference=reference)
        return reference

    def lookup(self, purpose: SecretPurpose) -> str | None:
        return self.store.lookup(self.key(purpose))

    def read(self, reference: str) -> bytes:
        """Return the payload stored behind a reference."""
        return self.store.get(reference)

    def exists(self, purpose: SecretPurpose) -> bool:
        return self.store.exists(self.key(purpose))

    def delete(self, purpose: SecretPurpose) -> bool:
        """Delete a secret without a recovery window.

        Returns:
            True if the secret was deleted, False if it was already absent.
        """
        key = self.key(purpose)
        deleted = self.store.delete(key)
        if deleted:
            logger.info("secret_deleted", zone=self.zone_name, key=key)
        else:
            logger.warning("secret_delete_skipped", zone=self.zone_name, key=key, reason="absent")
        return deleted

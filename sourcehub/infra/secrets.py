"""Secret reference resolution for service credentials."""

import logging
import os
from pathlib import Path
from typing import Optional

# Vault is an optional backend; references fall back to None without it
try:
    import hvac
    HAS_VAULT = True
except ImportError:
    HAS_VAULT = False

logger = logging.getLogger(__name__)


class SecretsManager:
    """Resolves `vault://`, `env://` and `file://` references to secret values.

    Service credentials (connectors API secret, managed embedding key,
    master key) are configured as references so deployments can keep them
    out of plain environment variables.
    """

    SCHEMES = ("vault://", "env://", "file://")

    def __init__(self):
        self.vault_client = None
        self._init_vault()

    def _init_vault(self):
        """Initialize HashiCorp Vault client if configured."""
        if not HAS_VAULT:
            return

        vault_url = os.getenv("VAULT_ADDR")
        vault_token = os.getenv("VAULT_TOKEN")

        if vault_url and vault_token:
            try:
                self.vault_client = hvac.Client(url=vault_url, token=vault_token)
                if not self.vault_client.is_authenticated():
                    logger.warning("Vault token rejected; vault:// references will not resolve")
                    self.vault_client = None
            except Exception as e:
                logger.warning(f"Could not connect to Vault at {vault_url}: {e}")
                self.vault_client = None

    def get_secret(self, secret_ref: str) -> Optional[str]:
        """
        Resolve a secret reference.

        Supports:
        - vault://secret/path/key - HashiCorp Vault (KV v2)
        - env://VAR_NAME - Environment variable
        - file:///run/secrets/name - File contents, trailing newline stripped
        - Direct value (if not a reference)

        Args:
            secret_ref: Secret reference or direct value

        Returns:
            Secret value or None if not found
        """
        if not secret_ref:
            return None

        if not secret_ref.startswith(self.SCHEMES):
            return secret_ref

        if secret_ref.startswith("vault://"):
            return self._get_vault_secret(secret_ref)

        if secret_ref.startswith("file://"):
            return self._get_file_secret(secret_ref)

        return os.getenv(secret_ref[len("env://"):])

    def _get_file_secret(self, file_ref: str) -> Optional[str]:
        """Read a mounted secret file (Docker or Kubernetes secrets)."""
        path = Path(file_ref[len("file://"):])
        try:
            return path.read_text().rstrip("\n") or None
        except OSError as e:
            logger.warning(f"Could not read secret file {path}: {e}")
            return None

    def _get_vault_secret(self, vault_ref: str) -> Optional[str]:
        """Get secret from HashiCorp Vault."""
        if not self.vault_client:
            return None

        path = vault_ref[len("vault://"):]
        parts = path.split("/")
        if len(parts) < 2:
            return None

        secret_path = "/".join(parts[:-1])
        key = parts[-1]

        try:
            response = self.vault_client.secrets.kv.v2.read_secret_version(path=secret_path)
        except Exception as e:
            logger.error(f"Vault read failed for {secret_path}: {e}")
            return None

        data = response.get("data", {}).get("data", {})
        return data.get(key)


secrets_manager = SecretsManager()


def get_secret(secret_ref: str, fallback: Optional[str] = None) -> Optional[str]:
    """
    Convenience function to get a secret.

    Args:
        secret_ref: Secret reference (vault://, env://) or direct value
        fallback: Fallback value if secret not found

    Returns:
        Secret value or fallback
    """
    value = secrets_manager.get_secret(secret_ref)
    return value if value is not None else fallback

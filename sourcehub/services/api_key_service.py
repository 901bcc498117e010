"""API key service: key hashing, verification and tenant system keys."""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

import bcrypt
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sourcehub.infra.database import get_db_session
from sourcehub.infra.error_handler import CredentialError, describe_storage_error
from sourcehub.models.data_source import SystemAPIKey

logger = logging.getLogger(__name__)

SYSTEM_KEY_NAME = "system"


@dataclass(frozen=True)
class APIKeyOwner:
    """Tenant owning a verified key, and whether the key is its system key."""
    tenant_id: str
    is_system: bool = False


def generate_api_key() -> str:
    """
    Generate a secure random API key.

    Returns:
        A secure random API key string (64 characters, URL-safe)
    """
    return secrets.token_urlsafe(48)


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key using bcrypt.

    Args:
        api_key: Plain text API key

    Returns:
        Bcrypt hashed key
    """
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(api_key.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_api_key(api_key: str, key_hash: str) -> bool:
    """
    Verify an API key against its hash.

    Args:
        api_key: Plain text API key to verify
        key_hash: Bcrypt hash to verify against

    Returns:
        True if key matches hash, False otherwise
    """
    try:
        return bcrypt.checkpw(api_key.encode('utf-8'), key_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def get_key_prefix(api_key: str) -> str:
    """First 8 characters of the key, used for lookup and display."""
    return api_key[:8] if len(api_key) >= 8 else api_key


def _find_system_key(session: Session, tenant_id: str) -> Optional[SystemAPIKey]:
    row = session.execute(
        text("""
            SELECT id, tenant_id, secret
            FROM api_keys
            WHERE tenant_id = :tenant_id
              AND is_system = TRUE
              AND is_active = TRUE
            ORDER BY created_at ASC
            LIMIT 1
        """),
        {"tenant_id": tenant_id}
    ).fetchone()

    if not row:
        return None
    return SystemAPIKey(key_id=str(row.id), tenant_id=str(row.tenant_id), secret=row.secret)


async def get_or_create_system_api_key(tenant_id: str) -> SystemAPIKey:
    """
    Return the tenant's system API key, creating it on first use.

    System keys authenticate calls other services make back into the hub on
    the tenant's behalf (e.g. a connector pushing documents). Unlike user keys
    their secret is retrievable, so it is stored alongside the bcrypt hash.

    Args:
        tenant_id: Tenant ID

    Returns:
        SystemAPIKey; `created` is True when this call inserted it

    Raises:
        CredentialError: If the key cannot be read or stored
    """
    try:
        with get_db_session(tenant_id) as session:
            existing = _find_system_key(session, tenant_id)
            if existing:
                return existing

            api_key = generate_api_key()
            row = session.execute(
                text("""
                    INSERT INTO api_keys (
                        tenant_id, key_hash, key_prefix, name, description,
                        is_active, is_system, secret, created_by
                    ) VALUES (
                        :tenant_id, :key_hash, :key_prefix, :name, :description,
                        TRUE, TRUE, :secret, 'system'
                    )
                    RETURNING id
                """),
                {
                    "tenant_id": tenant_id,
                    "key_hash": hash_api_key(api_key),
                    "key_prefix": get_key_prefix(api_key),
                    "name": SYSTEM_KEY_NAME,
                    "description": "System key for managed data sources",
                    "secret": api_key,
                }
            ).fetchone()

        logger.info("Created system API key", extra={"tenant_id": tenant_id, "key_id": str(row.id)})
        return SystemAPIKey(key_id=str(row.id), tenant_id=tenant_id, secret=api_key, created=True)

    except IntegrityError:
        # Another request created the key first (one active system key per tenant)
        try:
            with get_db_session(tenant_id) as session:
                existing = _find_system_key(session, tenant_id)
        except SQLAlchemyError as e:
            raise CredentialError(
                "Could not read the system API key",
                upstream=describe_storage_error(e),
            ) from e
        if existing:
            return existing
        raise CredentialError("System API key creation conflicted but no key was found")

    except SQLAlchemyError as e:
        upstream = describe_storage_error(e)
        logger.error(
            "Could not create the system API key",
            extra={"tenant_id": tenant_id, "upstream_error": upstream},
        )
        raise CredentialError(
            "Could not create a system API key for the managed data source",
            upstream=upstream,
        ) from e


async def resolve_api_key(api_key: str, db: Session) -> Optional[APIKeyOwner]:
    """
    Verify an API key and return its owner.

    This function is used by the authentication dependency.

    Args:
        api_key: Plain text API key to verify
        db: Database session

    Returns:
        APIKeyOwner if the key is valid, None otherwise
    """
    key_prefix = get_key_prefix(api_key)

    # bcrypt is slow, so narrow candidates by prefix first
    rows = db.execute(
        text("""
            SELECT id, tenant_id, key_hash, is_system
            FROM api_keys
            WHERE key_prefix = :key_prefix
              AND is_active = TRUE
              AND (expires_at IS NULL OR expires_at > NOW())
        """),
        {"key_prefix": key_prefix}
    ).fetchall()

    for row in rows:
        if verify_api_key(api_key, row.key_hash):
            db.execute(
                text("""
                    UPDATE api_keys
                    SET last_used_at = NOW()
                    WHERE id = :key_id
                """),
                {"key_id": row.id}
            )
            db.commit()
            return APIKeyOwner(tenant_id=str(row.tenant_id), is_system=bool(row.is_system))

    return None

"""Local persistence of data source records."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sourcehub.infra.database import get_db_session
from sourcehub.infra.error_handler import (
    ConflictError,
    LocalRecordError,
    ProvisioningStep,
    describe_storage_error,
)
from sourcehub.models.data_source import LocalDataSourceRecord

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, tenant_id, name, description, visibility, configuration,
    remote_workspace_id, connector_id, connector_provider_kind,
    created_at, updated_at
"""

UPDATABLE_FIELDS = ("description", "connector_id", "connector_provider_kind")

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def _row_to_record(row) -> LocalDataSourceRecord:
    return LocalDataSourceRecord(
        id=str(row.id),
        tenant_id=str(row.tenant_id),
        name=row.name,
        description=row.description,
        visibility=row.visibility,
        configuration=row.configuration,
        remote_workspace_id=row.remote_workspace_id,
        connector_id=row.connector_id,
        connector_provider_kind=row.connector_provider_kind,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class DataSourceStore:
    """Reads and writes rows of the `data_sources` table.

    `(tenant_id, name)` is unique in the table; a duplicate insert surfaces
    as ConflictError. Records are never deleted here.
    """

    def create(
        self,
        tenant_id: str,
        name: str,
        description: Optional[str],
        visibility: str,
        configuration: str,
        remote_workspace_id: str,
    ) -> LocalDataSourceRecord:
        """
        Insert a data source record without a connector binding.

        Raises:
            ConflictError: If the tenant already has a data source with this name
            LocalRecordError: On any other storage failure
        """
        try:
            with get_db_session(tenant_id) as session:
                row = session.execute(
                    text(f"""
                        INSERT INTO data_sources (
                            id, tenant_id, name, description, visibility,
                            configuration, remote_workspace_id
                        ) VALUES (
                            :id, :tenant_id, :name, :description, :visibility,
                            :configuration, :remote_workspace_id
                        )
                        RETURNING {_COLUMNS}
                    """),
                    {
                        "id": uuid.uuid4(),
                        "tenant_id": tenant_id,
                        "name": name,
                        "description": description,
                        "visibility": visibility,
                        "configuration": configuration,
                        "remote_workspace_id": remote_workspace_id,
                    }
                ).fetchone()
        except IntegrityError as e:
            if getattr(e.orig, "pgcode", None) != UNIQUE_VIOLATION:
                raise LocalRecordError(
                    "Failed to write the data source record.", upstream=describe_storage_error(e)
                ) from e
            logger.warning(
                "Duplicate data source name",
                extra={"tenant_id": tenant_id, "data_source": name},
            )
            raise ConflictError(
                f"A data source named '{name}' already exists for this tenant.",
                upstream=describe_storage_error(e),
            ) from e
        except SQLAlchemyError as e:
            raise LocalRecordError(
                "Failed to write the data source record.", upstream=describe_storage_error(e)
            ) from e

        return _row_to_record(row)

    def update(self, record: LocalDataSourceRecord, patch: Dict[str, Any]) -> LocalDataSourceRecord:
        """
        Apply a patch to an existing record.

        Args:
            record: Record previously returned by `create` or `get`
            patch: Column values to set; only UPDATABLE_FIELDS are allowed

        Raises:
            ValueError: If the patch is empty or names a column that cannot change
            LocalRecordError: On storage failure or if the record vanished
        """
        unknown = set(patch) - set(UPDATABLE_FIELDS)
        if unknown or not patch:
            raise ValueError(f"Invalid data source patch: {sorted(unknown) or 'empty'}")

        assignments = ", ".join(f"{column} = :{column}" for column in patch)
        params = dict(patch, id=record.id, tenant_id=record.tenant_id)

        try:
            with get_db_session(record.tenant_id) as session:
                row = session.execute(
                    text(f"""
                        UPDATE data_sources
                        SET {assignments}, updated_at = now()
                        WHERE id = :id AND tenant_id = :tenant_id
                        RETURNING {_COLUMNS}
                    """),
                    params
                ).fetchone()
        except SQLAlchemyError as e:
            raise LocalRecordError(
                "Failed to update the data source record.",
                upstream=describe_storage_error(e),
                step=ProvisioningStep.CONNECTOR_BINDING,
            ) from e

        if not row:
            raise LocalRecordError(
                f"Data source record {record.id} no longer exists.",
                step=ProvisioningStep.CONNECTOR_BINDING,
            )
        return _row_to_record(row)

    def get(self, tenant_id: str, name: str) -> Optional[LocalDataSourceRecord]:
        """Record by name, or None."""
        with get_db_session(tenant_id) as session:
            row = session.execute(
                text(f"""
                    SELECT {_COLUMNS}
                    FROM data_sources
                    WHERE tenant_id = :tenant_id AND name = :name
                """),
                {"tenant_id": tenant_id, "name": name}
            ).fetchone()
        return _row_to_record(row) if row else None

    def list(self, tenant_id: str) -> List[LocalDataSourceRecord]:
        """All records of a tenant, newest first."""
        with get_db_session(tenant_id) as session:
            rows = session.execute(
                text(f"""
                    SELECT {_COLUMNS}
                    FROM data_sources
                    WHERE tenant_id = :tenant_id
                    ORDER BY created_at DESC
                """),
                {"tenant_id": tenant_id}
            ).fetchall()
        return [_row_to_record(row) for row in rows]


data_source_store = DataSourceStore()

"""
Direct insert transport.

Encrypts the credential data the way n8n does and inserts the row straight
into n8n's credentials_entity table.
"""

from datetime import UTC, datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import N8NConfig, N8NDatabaseConfig
from ..constants import N8N_CREDENTIALS_TABLE
from ..db.db_config import create_db_engine
from ..exceptions import ErrorCode, TransportError
from ..schemas.credential_schemas import CredentialRecord, InjectionPayload
from ..utils.encryption_utils import encrypt_payload
from .base import InjectionTransport

INSERT_CREDENTIAL_SQL = text(
    f"INSERT INTO {N8N_CREDENTIALS_TABLE} "
    '(id, name, type, data, "createdAt", "updatedAt") '
    "VALUES (:id, :name, :type, :data, :created_at, :updated_at)"
)


class DirectInsertTransport(InjectionTransport):
    """Deliver credentials by writing encrypted rows into n8n's database."""

    method_name = "n8n_db_insert"

    def __init__(
        self,
        n8n_config: N8NConfig,
        n8n_db_config: N8NDatabaseConfig,
        engine: Optional[Engine] = None,
    ):
        super().__init__()
        self.n8n_config = n8n_config
        self.n8n_db_config = n8n_db_config
        self._engine = engine
        self._owns_engine = engine is None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_db_engine(self.n8n_db_config.get_connection_string())
        return self._engine

    def prepare(self) -> None:
        """
        Verify the n8n database is reachable.

        Raises:
            TransportError: If the connection check fails
        """
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise TransportError(
                f"Cannot connect to n8n database: {e}",
                transport=self.method_name,
                error_code=ErrorCode.CONNECTION_ERROR,
                cause=e,
                host=self.n8n_db_config.host,
                database=self.n8n_db_config.database,
            ) from e

        self._prepared = True
        self.logger.info(
            "Connected to n8n database",
            extra={"host": self.n8n_db_config.host, "database": self.n8n_db_config.database},
        )

    def _deliver(
        self, payload: InjectionPayload, record: CredentialRecord
    ) -> Tuple[str, Dict[str, Any]]:
        encrypted = encrypt_payload(
            payload.data.model_dump(mode="json", by_alias=True),
            self.n8n_config.encryption_key,
        )
        now = datetime.now(UTC)

        try:
            with self.engine.begin() as connection:
                connection.execute(
                    INSERT_CREDENTIAL_SQL,
                    {
                        "id": payload.id,
                        "name": payload.name,
                        "type": payload.type,
                        "data": encrypted,
                        "created_at": now,
                        "updated_at": now,
                    },
                )
        except SQLAlchemyError as e:
            raise TransportError(
                f"Insert into {N8N_CREDENTIALS_TABLE} failed: {e}",
                transport=self.method_name,
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                error_type="db_insert_error",
            ) from e

        self.logger.info(
            "Credential row inserted into n8n database",
            extra={"user_id": record.user_id, "provider": record.provider, "credential_id": payload.id},
        )
        return payload.id, {"table": N8N_CREDENTIALS_TABLE}

    def close(self) -> None:
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
        self._prepared = False

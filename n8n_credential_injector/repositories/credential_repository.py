"""
Repository for the injection queue stored in user_social_credentials.

A row is pending while injection_requested is true and injected_to_n8n is
false. Every processed row leaves the pending set through update_status().
"""

from typing import List, NoReturn, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_credential_models import UserSocialCredential
from ..exceptions import ErrorCode, RepositoryError, WriteBackError
from ..schemas.credential_schemas import CredentialRecord, InjectionStatusUpdate
from ..utils.logger import get_logger


class CredentialRepository:
    """
    Reads pending credential rows and persists injection outcomes.

    Holds a single session for the whole batch run.
    """

    def __init__(self, session: Session):
        self.session = session
        self.logger = get_logger()

    def _handle_db_error(
        self, e: Exception, operation_name: str, error_class=RepositoryError, **context
    ) -> NoReturn:
        """
        Roll back and translate a database failure.

        Raises:
            RepositoryError: Or the given subclass, chained to the original error
        """
        if isinstance(e, RepositoryError):
            raise e

        self.session.rollback()
        raise error_class(
            f"Database operation '{operation_name}' failed: {e}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            operation=operation_name,
            **context,
        ) from e

    def fetch_pending(
        self, user_id: Optional[str] = None, provider: Optional[str] = None
    ) -> List[UserSocialCredential]:
        """
        Get all pending rows, oldest request first.

        Args:
            user_id: Optional selector narrowing the batch to one user
            provider: Optional selector narrowing the batch to one provider

        Returns:
            Rows ordered by injection_requested_at ascending

        Raises:
            RepositoryError: If the query fails
        """
        self.logger.info(
            "Querying database for pending injection requests",
            extra={"user_id": user_id, "provider": provider},
        )

        stmt = select(UserSocialCredential).where(
            and_(
                UserSocialCredential.injection_requested.is_(True),
                UserSocialCredential.injected_to_n8n.is_(False),
            )
        )
        if user_id:
            stmt = stmt.where(UserSocialCredential.user_id == user_id)
        if provider:
            stmt = stmt.where(UserSocialCredential.provider == provider)
        stmt = stmt.order_by(UserSocialCredential.injection_requested_at.asc().nulls_last())

        try:
            rows = list(self.session.scalars(stmt))
        except SQLAlchemyError as e:
            self._handle_db_error(e, "fetch_pending", user_id=user_id, provider=provider)

        self.logger.info("Pending credential query finished", extra={"count": len(rows)})
        return rows

    def update_status(self, record: CredentialRecord, status: InjectionStatusUpdate) -> int:
        """
        Persist the outcome of one attempt and clear the request flag.

        Args:
            record: The record that was processed
            status: Column values to write

        Returns:
            Number of rows updated

        Raises:
            WriteBackError: If the update cannot be committed or matches no row
        """
        stmt = (
            update(UserSocialCredential)
            .where(
                and_(
                    UserSocialCredential.user_id == record.user_id,
                    UserSocialCredential.provider == record.provider,
                    UserSocialCredential.token_source == record.token_source,
                )
            )
            .values(**status.to_columns())
            .execution_options(synchronize_session=False)
        )

        try:
            result = self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "update_status", error_class=WriteBackError, **record.key())

        if result.rowcount == 0:
            raise WriteBackError(
                f"Status update matched no rows for {record.user_id}/{record.provider}",
                error_code=ErrorCode.NOT_FOUND,
                operation="update_status",
                **record.key(),
            )

        self.logger.info(
            "Database updated successfully",
            extra={
                **record.key(),
                "success": status.injected_to_n8n,
                "credential_id": status.n8n_credential_id,
            },
        )
        return result.rowcount

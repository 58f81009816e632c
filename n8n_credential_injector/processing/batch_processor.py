"""
Batch orchestration: fetch pending credentials, inject each one, record the outcome.

Records are processed strictly one after another in request order. A
record-level failure is written back and the batch moves on; only fetch,
transport preparation and write-back failures abort the run.
"""

import uuid
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config import InjectionConfig
from ..constants import BatchState
from ..db.db_base import utc_now
from ..db.db_credential_models import UserSocialCredential
from ..exceptions import (
    BaseError,
    RecordValidationError,
    UnsupportedProviderError,
    clear_correlation_id,
    set_correlation_id,
)
from ..repositories.credential_repository import CredentialRepository
from ..schemas.credential_schemas import CredentialRecord, InjectionStatusUpdate
from ..services.payload_builder import build_payload, generate_credential_id
from ..transports.base import InjectionResult, InjectionTransport
from ..utils.logger import get_logger
from .batch_result import BatchResult, RecordOutcome, RecordStatus


class BatchProcessor:
    """
    Drives one batch run over the injection queue.

    State moves IDLE -> AUTHENTICATED -> PROCESSING -> DONE. AUTHENTICATED is only
    entered by transports whose prepare() logs in to n8n.
    A run with nothing to inject goes straight from IDLE to DONE without
    preparing the transport.
    """

    def __init__(
        self,
        repository: CredentialRepository,
        transport: InjectionTransport,
        injection_config: InjectionConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.transport = transport
        self.injection_config = injection_config
        self.clock = clock
        self.logger = get_logger()
        self.state = BatchState.IDLE
        self.state_history: List[BatchState] = [BatchState.IDLE]
        self.current_index: Optional[int] = None

    def run(self) -> BatchResult:
        """
        Execute the batch.

        Returns:
            BatchResult; exit_code is FATAL when the run was aborted

        Raises:
            Exception: Only for errors outside the injector's own error hierarchy
        """
        run_id = str(uuid.uuid4())
        set_correlation_id(run_id)
        result = BatchResult(run_id=run_id, transport=self.transport.method_name)

        try:
            self.logger.info(
                "Processing all credentials with injection_requested flag",
                extra={
                    **self.transport.get_transport_info(),
                    "user_id": self.injection_config.user_id,
                    "provider": self.injection_config.provider,
                },
            )

            rows = self.repository.fetch_pending(
                user_id=self.injection_config.user_id,
                provider=self.injection_config.provider,
            )
            result.total_fetched = len(rows)
            records = self._select_valid(rows, result)

            if not records:
                self.logger.info("No pending credentials found for injection")
                self._transition(BatchState.DONE)
                result.mark_completed()
                return result

            self.transport.prepare()
            if self.transport.authenticates:
                self._transition(BatchState.AUTHENTICATED)

            self._transition(BatchState.PROCESSING)
            for index, record in enumerate(records):
                self.current_index = index
                result.add_outcome(self.process_record(record))

            self._transition(BatchState.DONE)
            result.mark_completed()

            if result.failed:
                self.logger.warning(
                    f"Batch completed with {result.failed} error(s)", extra=result.to_dict()
                )
            else:
                self.logger.info("Batch processing completed", extra=result.to_dict())
            return result

        except BaseError as e:
            # Already logged on construction
            result.mark_aborted(e.message)
            self.logger.error("Credential injection batch failed", extra=result.to_dict())
            return result
        finally:
            clear_correlation_id()

    def _transition(self, state: BatchState) -> None:
        self.logger.debug(f"Batch state {self.state.value} -> {state.value}")
        self.state = state
        self.state_history.append(state)

    def _select_valid(
        self, rows: List[UserSocialCredential], result: BatchResult
    ) -> List[CredentialRecord]:
        """Convert rows to records, skipping the ones that cannot be injected."""
        records = []
        for row in rows:
            try:
                record = CredentialRecord.from_row(row)
            except PydanticValidationError as e:
                self.logger.warning(
                    "Skipping unreadable credential row",
                    extra={"user_id": getattr(row, "user_id", None), "errors": e.error_count()},
                )
                continue

            if not record.is_complete:
                self.logger.warning(
                    f"Skipping incomplete credential: {record.user_id}/{record.provider}",
                    extra={
                        "has_access_token": bool(record.access_token),
                        "has_client_id": bool(record.client_id),
                        "has_client_secret": bool(record.client_secret),
                    },
                )
                result.add_outcome(
                    RecordOutcome.for_record(
                        record,
                        RecordStatus.SKIPPED,
                        error_message=f"Missing fields: {', '.join(record.missing_fields())}",
                    )
                )
                continue

            records.append(record)

        self.logger.info(
            f"Validated {len(records)} credential(s) for processing",
            extra={"fetched": len(rows)},
        )
        return records

    def process_record(self, record: CredentialRecord) -> RecordOutcome:
        """
        Build, inject and write back a single record.

        Raises:
            WriteBackError: If the outcome cannot be persisted
        """
        self.logger.info(
            f"Processing credential for user: {record.user_id}, provider: {record.provider}",
            extra={"index": self.current_index},
        )
        attempted_at = self.clock()

        try:
            payload = build_payload(
                record,
                attempted_at,
                credential_id=generate_credential_id(
                    record, self.injection_config.credential_id_strategy
                ),
            )
        except (UnsupportedProviderError, RecordValidationError) as e:
            injection = InjectionResult.create_failure(
                transport_name=type(self.transport).__name__,
                message=e.message,
                execution_duration_ms=0.0,
                error_code=e.error_code.value,
                details={
                    "error_type": "processing_error",
                    "timestamp": attempted_at,
                    "user_id": record.user_id,
                    "provider": record.provider,
                    **e.to_dict(),
                },
            )
        else:
            self.logger.debug(
                "Generated credential template",
                extra={"credential_id": payload.id, "name": payload.name, "type": payload.type},
            )
            injection = self.transport.inject(payload, record)

        status = InjectionStatusUpdate.build(
            success=injection.success,
            attempted_at=attempted_at,
            injection_method=self.transport.method_name,
            platform=self.injection_config.platform,
            credential_id=injection.credential_id if injection.success else None,
            message=injection.message,
            details=injection.details,
        )
        self.repository.update_status(record, status)

        if injection.success:
            self.logger.info(
                "Credential injection completed",
                extra={
                    **record.key(),
                    "credential_id": injection.credential_id,
                    "duration_ms": round(injection.execution_duration_ms, 1),
                },
            )
            return RecordOutcome.for_record(
                record,
                RecordStatus.SUCCEEDED,
                credential_id=injection.credential_id,
                execution_duration_ms=injection.execution_duration_ms,
            )

        self.logger.error(
            f"Failed to process credential for {record.user_id}/{record.provider}",
            extra={**record.key(), "error": injection.message},
        )
        return RecordOutcome.for_record(
            record,
            RecordStatus.FAILED,
            error_message=status.injection_error,
            execution_duration_ms=injection.execution_duration_ms,
        )

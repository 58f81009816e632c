"""
Result structures for a batch run.

A BatchResult collects one RecordOutcome per fetched record and derives
the counts and the process exit code from them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..constants import ExitCode
from ..schemas.credential_schemas import CredentialRecord


class RecordStatus(str, Enum):
    """What happened to a single record."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RecordOutcome(BaseModel):
    """Outcome of one record in a batch."""

    user_id: str
    provider: str
    token_source: str
    status: RecordStatus
    credential_id: Optional[str] = None
    error_message: Optional[str] = None
    execution_duration_ms: Optional[float] = None

    @classmethod
    def for_record(cls, record: CredentialRecord, status: RecordStatus, **kwargs) -> "RecordOutcome":
        return cls(**record.key(), status=status, **kwargs)


class BatchResult(BaseModel):
    """
    Result of a batch run.

    Contains per-record outcomes, timing, and the exit code for the process.
    """

    run_id: str = Field(description="Correlation id stamped on every log line of the run")
    transport: str = Field(description="Injection method used")

    total_fetched: int = Field(default=0, description="Pending rows returned by the query")
    outcomes: List[RecordOutcome] = Field(default_factory=list, description="Per-record outcomes")

    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Run start timestamp"
    )
    completed_at: Optional[datetime] = Field(default=None, description="Run completion timestamp")

    exit_code: ExitCode = Field(default=ExitCode.SUCCESS, description="Process exit code")
    error_message: Optional[str] = Field(default=None, description="Reason the run was aborted")

    def _count(self, status: RecordStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(RecordStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(RecordStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(RecordStatus.SKIPPED)

    def add_outcome(self, outcome: RecordOutcome) -> None:
        self.outcomes.append(outcome)

    def mark_completed(self) -> None:
        self.completed_at = datetime.now(timezone.utc)

    def mark_aborted(self, error_message: str) -> None:
        """Record a fatal error; the run exits non-zero."""
        self.exit_code = ExitCode.FATAL
        self.error_message = error_message
        self.mark_completed()

    @property
    def duration_ms(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Summary for the final log line."""
        return {
            "run_id": self.run_id,
            "transport": self.transport,
            "total": self.total_fetched,
            "skipped": self.skipped,
            "success": self.succeeded,
            "errors": self.failed,
            "exit_code": int(self.exit_code),
            "duration_ms": self.duration_ms,
        }

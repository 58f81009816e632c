"""
Batch processing for the credential injection queue.
"""

from .batch_processor import BatchProcessor
from .batch_result import BatchResult, RecordOutcome, RecordStatus

__all__ = [
    "BatchProcessor",
    "BatchResult",
    "RecordOutcome",
    "RecordStatus",
]

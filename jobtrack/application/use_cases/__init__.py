from .cancel_job import CANCELLED_MESSAGE, CancelJobUseCase
from .submit_batch import BatchSubmissionResult, SubmitBatchUseCase

__all__ = [
    "BatchSubmissionResult",
    "CANCELLED_MESSAGE",
    "CancelJobUseCase",
    "SubmitBatchUseCase",
]

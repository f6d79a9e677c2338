from .executor import TransactionExecutor
from .models import Operation, OperationKind, Status
from .queue import OperationQueue
from .scan import ScanExecutor

__all__ = [
    "Operation",
    "OperationKind",
    "OperationQueue",
    "ScanExecutor",
    "Status",
    "TransactionExecutor",
]

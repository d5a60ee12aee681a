"""
Unit of work demarcation: a connection is acquired, switched to manual
commit and bound to the calling task until commit or rollback.
"""

from .coordinator import TransactionCoordinator
from .interfaces import TransactionState, UnitOfWork

__all__ = [
    "TransactionCoordinator",
    "TransactionState",
    "UnitOfWork",
]

"""
Reentrancy guard shared by every mutating entry point.

A value transfer may hand control to the recipient, which may call back
into the auction. The guard makes any such nested call fail immediately,
before it reads or writes state.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sda.core.errors import ReentrantCall


class ReentrancyGuard:
    """Non-reentrant lock for a single logical transaction."""

    def __init__(self):
        self.operation: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self.operation is not None

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        """
        Hold the guard for the duration of operation.
        
        Raises:
            ReentrantCall: If another guarded operation is in progress
        """
        if self.operation is not None:
            raise ReentrantCall(f"Reentrant call to {operation} during {self.operation}")
        self.operation = operation
        try:
            yield
        finally:
            self.operation = None

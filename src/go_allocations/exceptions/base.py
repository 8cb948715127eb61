"""Base exception for go-allocations."""

from typing import Dict, Optional


class GoAllocationsError(Exception):
    """Base exception for all go-allocations errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class OperationCancelled(GoAllocationsError):
    """Raised at a suspension point once the shared cancellation signal fired.

    Cancellation is not a failure: callers convert it into a silent stop.
    """

    def __init__(self, operation: str = "operation"):
        super().__init__(f"{operation} cancelled", details={"operation": operation})
        self.operation = operation

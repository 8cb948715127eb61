"""Navigation exceptions."""

from .base import GoAllocationsError


class NavigationError(GoAllocationsError):
    """Raised when a source location cannot be opened in an editor."""

    def __init__(self, target: str, reason: str):
        super().__init__(f"Cannot open {target}: {reason}", details={"target": target})
        self.target = target
        self.reason = reason

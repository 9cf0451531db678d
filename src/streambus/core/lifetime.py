"""
Variable-strength references.
"""

import weakref
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class LifetimeHandle(Generic[T]):
    """
    A reference that can switch between owning and observing its target.

    A strong handle keeps the target alive. A weak handle only watches it:
    once nothing else owns the target it is reclaimed, and the handle reports
    so. Switching back to strong never resurrects a reclaimed target.

    The handle starts strong.
    """

    def __init__(self, target: T) -> None:
        self._strong: Optional[T] = target
        self._weak = weakref.ref(target)

    @property
    def is_strong(self) -> bool:
        """Whether this handle currently owns its target."""
        return self._strong is not None

    def is_reclaimed(self) -> bool:
        """Whether the target is gone because nothing owned it any more."""
        return self._weak() is None

    def set_strong(self, strong: bool) -> None:
        """
        Set whether this handle contributes to owning the target.

        Args:
            strong: True to own the target, False to only observe it.
        """
        self._strong = self._weak() if strong else None

    def value(self) -> Optional[T]:
        """
        Get the target.

        Returns:
            The target, or None if it has been reclaimed.
        """
        return self._weak()

    def __repr__(self) -> str:
        if self.is_reclaimed():
            state = "reclaimed"
        else:
            state = "strong" if self.is_strong else "weak"
        return f"<LifetimeHandle {state}>"

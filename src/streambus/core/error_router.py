"""
Hierarchical, type-keyed routing of subscriber errors.
"""

import logging
from typing import Callable, Dict, Optional, Type

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException], None]


def log_uncaught(exc: BaseException) -> None:
    """Default sink: log the error with its traceback and carry on."""
    logger.error("Uncaught exception: %s", exc, exc_info=exc)


class ErrorRouter:
    """
    Dispatches errors to handlers registered per exception type.

    Each node first looks for a handler along the error's MRO, most-derived
    type first. If none of its own handlers match, the parent node gets the
    same chance. The root node ends the chain with its default handler.

    A bus owns the root; every subscription gets a fork of it, so handlers
    registered on a subscription take precedence over the bus-level ones.
    """

    def __init__(
        self,
        default_handler: Optional[ErrorHandler] = None,
        parent: Optional["ErrorRouter"] = None,
    ) -> None:
        self.parent = parent
        self._handlers: Dict[type, ErrorHandler] = {}
        self._default = None if parent is not None else (default_handler or log_uncaught)

    @property
    def is_root(self) -> bool:
        """Whether this node terminates the chain."""
        return self.parent is None

    def register(self, exc_type: Type[BaseException], handler: ErrorHandler) -> None:
        """
        Register a handler for an exception type on this node.

        A later registration for the same type replaces the earlier one.
        """
        if not (isinstance(exc_type, type) and issubclass(exc_type, BaseException)):
            raise TypeError(f"{exc_type!r} is not an exception type")
        self._handlers[exc_type] = handler

    def fork(self) -> "ErrorRouter":
        """Create a child node with no handlers of its own."""
        return ErrorRouter(parent=self)

    def handle(self, exc: BaseException) -> None:
        """
        Route an error to the closest matching handler.

        Never raises: a handler that fails is logged and its failure goes to
        the root's default handler.
        """
        node: Optional[ErrorRouter] = self
        while node is not None:
            handler = node._lookup(type(exc))
            if handler is not None:
                self._invoke(handler, exc)
                return
            if node.parent is None:
                break
            node = node.parent

        self._root()._invoke_default(exc)

    def _lookup(self, exc_type: type) -> Optional[ErrorHandler]:
        for cls in exc_type.__mro__:
            handler = self._handlers.get(cls)
            if handler is not None:
                return handler
        return None

    def _root(self) -> "ErrorRouter":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def _invoke(self, handler: ErrorHandler, exc: BaseException) -> None:
        try:
            handler(exc)
        except Exception as handler_exc:
            logger.exception("Error handler %r failed while handling %r", handler, exc)
            self._root()._invoke_default(handler_exc)

    def _invoke_default(self, exc: BaseException) -> None:
        try:
            self._default(exc)
        except Exception:
            logger.exception("Default error handler failed while handling %r", exc)


def split_registration(
    exc_type_or_handler, handler: Optional[ErrorHandler] = None
) -> tuple:
    """
    Normalise the two ``error(...)`` call forms to ``(exc_type, handler)``.

    ``error(handler)`` is a catch-all for ``Exception``;
    ``error(exc_type, handler)`` registers for one type.
    """
    if handler is None:
        if isinstance(exc_type_or_handler, type) or not callable(exc_type_or_handler):
            raise TypeError("error() needs a handler")
        return Exception, exc_type_or_handler
    return exc_type_or_handler, handler

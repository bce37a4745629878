"""Database sessions and the ambient session of the current context."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "NoSessionError",
    "TransactionAlreadyBegunError",
    "TransactionNotBegunError",
    "Session",
    "Transaction",
    "TransactionSession",
    "use_session",
    "session_from_context",
]


class NoSessionError(LookupError):
    """Raised when the current context holds no session."""

    def __init__(self, message: str = "no session found in context") -> None:
        super().__init__(message)


class TransactionAlreadyBegunError(RuntimeError):
    """Raised when a transaction is begun twice."""

    def __init__(self, message: str = "transaction already begun") -> None:
        super().__init__(message)


class TransactionNotBegunError(RuntimeError):
    """Raised when a transaction is used before it was begun."""

    def __init__(self, message: str = "transaction not begun") -> None:
        super().__init__(message)


@runtime_checkable
class Session(Protocol):
    """A connection or transaction that statements run against."""

    def query(self, query: str, *args: Any) -> Any:
        """Run a query and return its rows."""

    def execute(self, query: str, *args: Any) -> Any:
        """Run a statement that returns no rows and return its result."""

    def prepare(self, query: str) -> Any:
        """Prepare a statement for later queries or executions."""


@runtime_checkable
class Transaction(Protocol):
    """Something that can be committed or rolled back."""

    def commit(self) -> None:
        """Make the changes permanent."""

    def rollback(self) -> None:
        """Discard the changes."""


@runtime_checkable
class TransactionSession(Session, Transaction, Protocol):
    """A session that is also a transaction."""


_current_session: ContextVar[Any] = ContextVar("juicekit_session", default=None)


@contextmanager
def use_session(session: Session) -> Iterator[Session]:
    """Make ``session`` the current session for the duration of the block."""
    token = _current_session.set(session)
    try:
        yield session
    finally:
        _current_session.reset(token)


def session_from_context() -> Session:
    """Return the current session or raise NoSessionError."""
    session = _current_session.get()
    if not isinstance(session, Session):
        raise NoSessionError()
    return session
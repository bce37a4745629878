"""Transactions run in the ambient scope of a manager."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol, TypeVar, runtime_checkable

from juicekit.session import Transaction, TransactionNotBegunError

__all__ = [
    "InvalidManagerError",
    "CommitOnSpecific",
    "IsolationLevel",
    "TxOptions",
    "with_isolation_level",
    "with_read_only",
    "use_manager",
    "manager_from_context",
    "is_tx_manager",
    "transaction",
    "nested_transaction",
]

T = TypeVar("T")

_current_manager: ContextVar[Any] = ContextVar("juicekit_manager", default=None)


class InvalidManagerError(TypeError):
    """Raised when the current manager cannot start transactions."""

    def __init__(self, message: str = "juice: invalid manager") -> None:
        super().__init__(message)


class CommitOnSpecific(Exception):
    """Raised by a transaction handler to commit anyway and report this error."""

    def __init__(self, message: str = "juice: commit on specific transaction") -> None:
        super().__init__(message)


class IsolationLevel(IntEnum):
    """Transaction isolation levels."""

    DEFAULT = 0
    READ_UNCOMMITTED = 1
    READ_COMMITTED = 2
    WRITE_COMMITTED = 3
    REPEATABLE_READ = 4
    SNAPSHOT = 5
    SERIALIZABLE = 6
    LINEARIZABLE = 7

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()


@dataclass
class TxOptions:
    """Options a transaction is started with."""

    isolation: IsolationLevel = IsolationLevel.DEFAULT
    read_only: bool = False


TransactionOption = Callable[[TxOptions], None]


@runtime_checkable
class _TransactionFactory(Protocol):
    def context_tx(self, options: TxOptions | None) -> Any:
        """Return a new, not yet begun transaction."""


def with_isolation_level(level: IsolationLevel) -> TransactionOption:
    """Return an option that sets the isolation level."""

    def apply(options: TxOptions) -> None:
        options.isolation = IsolationLevel(level)

    return apply


def with_read_only(read_only: bool) -> TransactionOption:
    """Return an option that sets the read-only flag."""

    def apply(options: TxOptions) -> None:
        options.read_only = read_only

    return apply


@contextmanager
def use_manager(manager: Any) -> Iterator[Any]:
    """Make ``manager`` the current manager for the duration of the block."""
    token = _current_manager.set(manager)
    try:
        yield manager
    finally:
        _current_manager.reset(token)


def manager_from_context() -> Any:
    """Return the current manager, or None when there is none."""
    return _current_manager.get()


def is_tx_manager(manager: Any) -> bool:
    """Tell whether ``manager`` is a transaction that is already running."""
    return isinstance(manager, Transaction)


def _rollback(tx: Any, error: BaseException | None) -> None:
    """Roll back ``tx``; a transaction that is already finished is ignored."""
    try:
        tx.rollback()
    except TransactionNotBegunError:
        return
    except Exception as rollback_error:
        if error is None:
            raise
        raise rollback_error from error


def _options_from(opts: tuple[TransactionOption, ...]) -> TxOptions | None:
    if not opts:
        return None
    options = TxOptions()
    for opt in opts:
        opt(options)
    return options


def transaction(handler: Callable[[], T], *opts: TransactionOption) -> T | None:
    """Run ``handler`` inside a new transaction of the current manager.

    The transaction becomes the current manager while the handler runs. It
    is committed when the handler returns, and rolled back when it raises.
    A handler that raises :class:`CommitOnSpecific` has its work committed
    and the error raised afterwards.
    """
    manager = manager_from_context()
    if not isinstance(manager, _TransactionFactory):
        raise InvalidManagerError()

    tx = manager.context_tx(_options_from(opts))
    tx.begin()

    pending: CommitOnSpecific | None = None
    result: T | None = None
    try:
        with use_manager(tx):
            try:
                result = handler()
            except CommitOnSpecific as exc:
                pending = exc
        try:
            tx.commit()
        except Exception as commit_error:
            if pending is not None:
                raise commit_error from pending
            raise
    except BaseException as exc:
        _rollback(tx, exc)
        raise
    _rollback(tx, None)

    if pending is not None:
        raise pending
    return result


def nested_transaction(handler: Callable[[], T], *opts: TransactionOption) -> T | None:
    """Run ``handler`` in the running transaction, or in a new one if there is none."""
    if is_tx_manager(manager_from_context()):
        return handler()
    return transaction(handler, *opts)
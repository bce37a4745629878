"""SQL statements and the row-scanning extension point."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Action",
    "ResultMapNotSetError",
    "EmptyQueryError",
    "RowScanner",
    "Statement",
    "RawSQLStatement",
    "fnv1a_64",
]

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = (1 << 64) - 1


class Action(str, Enum):
    """The kind of work a statement performs."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


class ResultMapNotSetError(LookupError):
    """Raised when a statement has no result map."""

    def __init__(self, message: str = "result map not set") -> None:
        super().__init__(message)


class EmptyQueryError(ValueError):
    """Raised when building a statement yields an empty query."""

    def __init__(self, message: str = "empty query") -> None:
        super().__init__(message)


@runtime_checkable
class RowScanner(Protocol):
    """An object that maps result rows onto itself without reflection."""

    def scan_rows(self, rows: Any) -> None:
        """Fill this object from the current row of ``rows``."""


@runtime_checkable
class Statement(Protocol):
    """A SQL statement that can be built into a query and arguments."""

    @property
    def id(self) -> str:
        """The statement's identifier."""

    @property
    def name(self) -> str:
        """The statement's unique name."""

    @property
    def action(self) -> Action:
        """The kind of work the statement performs."""

    @property
    def configuration(self) -> Any:
        """The configuration the statement belongs to."""

    def attribute(self, key: str) -> str:
        """Return the attribute ``key``, empty when absent."""

    def result_map(self) -> Any:
        """Return the statement's result map."""

    def build(self, translator: Any, param: Any) -> tuple[str, list[Any]]:
        """Return the final query text and its arguments."""


def fnv1a_64(data: bytes | str) -> int:
    """Return the 64-bit FNV-1a hash of ``data`` (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode()
    value = _FNV64_OFFSET
    for byte in data:
        value = ((value ^ byte) * _FNV64_PRIME) & _MASK64
    return value


@dataclass(frozen=True)
class RawSQLStatement:
    """A statement given directly as SQL text, identified by its hash."""

    query: str
    configuration: Any
    action: Action

    def _hash_hex(self) -> str:
        return format(fnv1a_64(self.query), "x")

    @property
    def id(self) -> str:
        """``"id:"`` followed by the hexadecimal hash of the query."""
        return "id:" + self._hash_hex()

    @property
    def name(self) -> str:
        """The hexadecimal hash of the query."""
        return self._hash_hex()

    def attribute(self, key: str) -> str:
        """Raw statements carry no attributes; always empty."""
        return ""

    def result_map(self) -> Any:
        """Raw statements have no result map."""
        raise ResultMapNotSetError()